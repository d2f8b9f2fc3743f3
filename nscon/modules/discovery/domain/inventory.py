"""
Namespace Inventory

Point-in-time mapping from namespace name to every location it was observed
in. Each scan rebuilds it from scratch and `persist` replaces the file on disk
wholesale; nothing is merged with the previous snapshot.
"""

import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union
import structlog
import yaml
from pydantic import ValidationError

from nscon.core.exceptions import InventoryNotFoundError, InventoryParseError, PersistenceError
from nscon.modules.discovery.domain.scanner import ScanReport
from nscon.schemas.namespaces import ClusterIdentity, NamespaceLocation, ProjectNamespaces

logger = structlog.get_logger()

INVENTORY_FILE_MODE = 0o644

ScanResults = Union[ScanReport, Iterable[ProjectNamespaces]]


class Inventory:
    """Namespace name -> ordered list of NamespaceLocation."""

    def __init__(self, locations: Optional[Mapping[str, List[NamespaceLocation]]] = None):
        self._locations: Dict[str, List[NamespaceLocation]] = {
            name: list(items) for name, items in (locations or {}).items()
        }

    def build(self, scan_results: ScanResults) -> "Inventory":
        """Replace the mapping with one derived only from `scan_results`."""
        results = scan_results.results if isinstance(scan_results, ScanReport) else scan_results
        locations: Dict[str, List[NamespaceLocation]] = {}
        for project in results:
            for cluster in project.clusters:
                identity = ClusterIdentity.parse(cluster.cluster_name)
                location = NamespaceLocation(
                    cluster=identity.cluster,
                    project_id=project.project_id,
                    location=identity.location,
                )
                for namespace in cluster.namespaces:
                    locations.setdefault(namespace, []).append(location)
        self._locations = locations
        logger.info("inventory_built", namespaces=len(locations))
        return self

    def lookup(self, name: str) -> List[NamespaceLocation]:
        return list(self._locations.get(name, []))

    def filter_by_cluster(self, name: str, cluster: str) -> List[NamespaceLocation]:
        return [loc for loc in self.lookup(name) if cluster in loc.cluster]

    def filter_by_project(self, name: str, project: str) -> List[NamespaceLocation]:
        return [loc for loc in self.lookup(name) if project in loc.project_id]

    def namespaces(self) -> List[str]:
        return sorted(self._locations)

    def to_dict(self) -> Dict[str, List[Dict[str, str]]]:
        return {
            name: [location.to_record() for location in items]
            for name, items in self._locations.items()
        }

    def persist(self, path: Union[str, Path]) -> Path:
        """Write the inventory as YAML, atomically replacing the previous file."""
        target = Path(path).expanduser()
        payload = yaml.safe_dump(self.to_dict(), sort_keys=True, default_flow_style=False)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.chmod(tmp_name, INVENTORY_FILE_MODE)
                os.replace(tmp_name, target)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            logger.error("inventory_persist_failed", path=str(target), error=str(exc))
            raise PersistenceError(
                f"can't write namespace inventory {target}: {exc}", details={"path": str(target)}
            ) from exc

        logger.info("inventory_persisted", path=str(target), namespaces=len(self))
        return target

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Inventory":
        source = Path(path).expanduser()
        if not source.exists():
            raise InventoryNotFoundError(str(source))
        try:
            raw = yaml.safe_load(source.read_bytes())
        except OSError as exc:
            raise PersistenceError(
                f"can't read namespace inventory {source}: {exc}", details={"path": str(source)}
            ) from exc
        except yaml.YAMLError as exc:
            # undecodable bytes surface here as a ReaderError
            raise InventoryParseError(
                f"namespace inventory {source} is not valid YAML: {exc}",
                details={"path": str(source)},
            ) from exc
        return cls.from_dict(raw, source=str(source))

    @classmethod
    def from_dict(cls, raw: Any, source: str = "<memory>") -> "Inventory":
        # an empty file is a valid, empty inventory
        if raw is None:
            return cls()
        if not isinstance(raw, dict):
            raise InventoryParseError(
                f"namespace inventory {source} must map namespace names to locations",
                details={"path": source},
            )

        locations: Dict[str, List[NamespaceLocation]] = {}
        for name, records in raw.items():
            if not isinstance(name, str) or not isinstance(records, list):
                raise InventoryParseError(
                    f"namespace inventory {source}: entry {name!r} must be a list of locations",
                    details={"path": source, "namespace": str(name)},
                )
            try:
                locations[name] = [NamespaceLocation.model_validate(record) for record in records]
            except ValidationError as exc:
                raise InventoryParseError(
                    f"namespace inventory {source}: invalid location for {name}: {exc}",
                    details={"path": source, "namespace": name},
                ) from exc
        return cls(locations)

    def __len__(self) -> int:
        return len(self._locations)

    def __contains__(self, name: object) -> bool:
        return name in self._locations

    def __iter__(self) -> Iterator[str]:
        return iter(self._locations)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Inventory):
            return NotImplemented
        return self._locations == other._locations
