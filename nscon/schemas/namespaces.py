"""
Namespace Discovery Schemas

Scan results (ephemeral, one per project/cluster) and the location records
the inventory is made of.
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from nscon.core.exceptions import ClusterIdentityError

GKE_PREFIX = "gke"


class ClusterIdentity(BaseModel):
    """Encoded cluster name: prefix_projectId_location_clusterShortName."""
    model_config = ConfigDict(frozen=True)

    prefix: str
    project_id: str
    location: str
    cluster: str

    @classmethod
    def parse(cls, identity: str) -> "ClusterIdentity":
        parts = identity.split("_")
        if len(parts) != 4 or not all(parts):
            raise ClusterIdentityError(identity)
        prefix, project_id, location, cluster = parts
        return cls(prefix=prefix, project_id=project_id, location=location, cluster=cluster)

    @classmethod
    def for_gke(cls, project_id: str, location: str, cluster: str) -> "ClusterIdentity":
        return cls(prefix=GKE_PREFIX, project_id=project_id, location=location, cluster=cluster)

    def encode(self) -> str:
        return f"{self.prefix}_{self.project_id}_{self.location}_{self.cluster}"


class NamespaceLocation(BaseModel):
    """One place a namespace was observed."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    cluster: str = Field(alias="clusterName")
    project_id: str = Field(alias="projectId")
    location: str = Field(alias="clusterLocation")

    def to_record(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


class ClusterNamespaces(BaseModel):
    cluster_name: str
    namespaces: List[str] = Field(default_factory=list)

    @property
    def identity(self) -> ClusterIdentity:
        return ClusterIdentity.parse(self.cluster_name)


class ProjectNamespaces(BaseModel):
    """Scan result for one project. A failed scan keeps its slot with `error` set."""
    project_id: str
    clusters: List[ClusterNamespaces] = Field(default_factory=list)
    error: Optional[str] = None
    failed_cluster: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, project_id: str, error: str, failed_cluster: Optional[str] = None) -> "ProjectNamespaces":
        return cls(project_id=project_id, error=error, failed_cluster=failed_cluster)
