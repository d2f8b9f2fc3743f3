from typing import Optional, Dict, Any

class NsconError(Exception):
    """Base exception for all nscon errors."""
    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        exit_code: int = 1,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.exit_code = exit_code
        self.details = details or {}

class CollaboratorError(NsconError):
    """Raised when a cloud or cluster API call fails during a scan."""
    def __init__(self, message: str, code: str = "collaborator_error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, exit_code=3, details=details)

class ClusterScanError(CollaboratorError):
    """Raised when a single cluster aborts the scan of its project."""
    def __init__(self, project_id: str, cluster: str, reason: str):
        super().__init__(
            f"cluster {cluster} in project {project_id}: {reason}",
            code="cluster_scan_error",
            details={"project": project_id, "cluster": cluster},
        )
        self.project_id = project_id
        self.cluster = cluster
        self.reason = reason

class PersistenceError(NsconError):
    """Raised when the inventory file cannot be read or written."""
    def __init__(self, message: str, code: str = "persistence_error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, exit_code=4, details=details)

class ParseError(NsconError):
    """Raised when stored or encoded data does not have the expected shape."""
    def __init__(self, message: str, code: str = "parse_error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, exit_code=5, details=details)

class InventoryParseError(ParseError):
    """Raised when the inventory file content is malformed."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="inventory_parse_error", details=details)

class ClusterIdentityError(ParseError):
    """Raised when an encoded cluster name does not follow prefix_project_location_name."""
    def __init__(self, identity: str):
        super().__init__(
            f"malformed cluster identity '{identity}', expected prefix_project_location_name",
            code="cluster_identity_error",
            details={"identity": identity},
        )

class NotFoundError(NsconError):
    """Raised when a lookup has no match. Surfaced to the operator with a hint."""
    hint = "If you are sure the namespace exists use --scan to update the namespace inventory"

    def __init__(self, message: str, code: str = "not_found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, exit_code=1, details=details)

class InventoryNotFoundError(NotFoundError):
    """Raised when the inventory file does not exist yet."""
    hint = "Run 'nscon --scan' to create the namespace inventory"

    def __init__(self, path: str):
        super().__init__(f"namespace inventory {path} does not exist", code="inventory_not_found", details={"path": path})

class ProfileNotFoundError(NotFoundError):
    """Raised when no gcloud configuration matches a project."""
    hint = "Create a gcloud configuration for this project with 'gcloud config configurations create'"

    def __init__(self, project_id: str):
        super().__init__(
            f"gcloud configuration for project {project_id} not found",
            code="profile_not_found",
            details={"project": project_id},
        )

class InputError(NsconError):
    """Raised when operator input cannot be used."""
    def __init__(self, message: str, code: str = "input_error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, exit_code=2, details=details)

class SelectionError(InputError):
    """Raised when the disambiguation choice is not a valid index."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="selection_error", details=details)

class ConfigurationError(NsconError):
    """Raised when nscon or gcloud configuration is invalid or missing."""
    def __init__(self, message: str, code: str = "config_error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, exit_code=6, details=details)

class UnsupportedPlatformError(ConfigurationError):
    """Raised when switching cluster context on a platform gcloud wiring does not support."""
    def __init__(self, platform: str):
        super().__init__(f"can't switch cluster context on {platform}", code="unsupported_platform", details={"platform": platform})
