from abc import ABC, abstractmethod
from typing import List, Optional

from nscon.schemas.namespaces import ProjectNamespaces


class ClusterLister(ABC):
    """
    Abstract Base Class for per-project cluster/namespace enumeration.

    A single failing cluster fails the whole project: implementations raise
    ClusterScanError naming the cluster instead of returning a partial result.
    One instance is shared by every concurrent project scan, so implementations
    keep no per-project state.
    """

    @abstractmethod
    async def list_project_namespaces(self, project_id: str) -> ProjectNamespaces:
        """Return every cluster of the project with its namespace names."""
        raise NotImplementedError()


class ProjectLister(ABC):
    """Source of the project identifiers to scan."""

    @abstractmethod
    def list_projects(self, account_filter: Optional[str] = None) -> List[str]:
        raise NotImplementedError()
