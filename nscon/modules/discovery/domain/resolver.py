from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence
import structlog
from rich.console import Console
from rich.table import Table

from nscon.core.exceptions import SelectionError
from nscon.modules.discovery.domain.inventory import Inventory
from nscon.schemas.namespaces import NamespaceLocation
from nscon.shared.core.config import LookupFilter

logger = structlog.get_logger()


class ResolutionStatus(str, Enum):
    NOT_FOUND = "not_found"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class Resolution:
    status: ResolutionStatus
    query: LookupFilter
    location: Optional[NamespaceLocation] = None
    candidates: List[NamespaceLocation] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.status == ResolutionStatus.RESOLVED


class Disambiguator:
    """
    Asks the operator to pick one of several locations by zero-based index.

    Bad input re-prompts until `max_attempts` lines have been read; after that,
    or when input ends, SelectionError is raised.
    """

    def __init__(
        self,
        console: Optional[Console] = None,
        read_line: Optional[Callable[[str], str]] = None,
        max_attempts: int = 3,
    ):
        self.console = console or Console()
        self.read_line = read_line or self.console.input
        self.max_attempts = max(1, max_attempts)

    def render(self, candidates: Sequence[NamespaceLocation]) -> Table:
        table = Table(show_header=True, header_style="bold green", row_styles=["", "cyan"])
        table.add_column("#", justify="right")
        table.add_column("cluster")
        table.add_column("project")
        table.add_column("location")
        for index, candidate in enumerate(candidates):
            table.add_row(str(index), candidate.cluster, candidate.project_id, candidate.location)
        return table

    def choose(self, candidates: Sequence[NamespaceLocation]) -> NamespaceLocation:
        if not candidates:
            raise SelectionError("nothing to choose from")

        self.console.print("[green]This namespace exists in multiple locations:[/green]")
        self.console.print(self.render(candidates))

        last_input = ""
        for attempt in range(1, self.max_attempts + 1):
            try:
                raw = self.read_line("where do you want to connect (pick option number): ")
            except EOFError as exc:
                raise SelectionError("no selection made, input closed") from exc

            last_input = raw.strip()
            index = self._parse_index(last_input, len(candidates))
            if index is not None:
                logger.debug("location_selected", index=index, attempt=attempt)
                return candidates[index]

            logger.warning("invalid_location_selection", value=last_input, attempt=attempt)
            if attempt < self.max_attempts:
                self.console.print(
                    f"[red]'{last_input}' is not an option, pick a number between 0 and {len(candidates) - 1}[/red]"
                )

        raise SelectionError(
            f"invalid selection '{last_input}', expected a number between 0 and {len(candidates) - 1}",
            details={"value": last_input, "options": len(candidates)},
        )

    @staticmethod
    def _parse_index(value: str, size: int) -> Optional[int]:
        try:
            index = int(value)
        except ValueError:
            return None
        if 0 <= index < size:
            return index
        return None


class LocationResolver:
    """Narrows inventory candidates for a lookup and settles on one location."""

    def __init__(self, inventory: Inventory, disambiguator: Optional[Disambiguator] = None):
        self.inventory = inventory
        self.disambiguator = disambiguator or Disambiguator()

    def candidates(self, query: LookupFilter) -> List[NamespaceLocation]:
        # substring containment: "web" matches "webapp-1"
        if query.cluster:
            found = self.inventory.filter_by_cluster(query.namespace, query.cluster)
        else:
            found = self.inventory.lookup(query.namespace)
        if query.project:
            in_project = set(self.inventory.filter_by_project(query.namespace, query.project))
            found = [loc for loc in found if loc in in_project]
        return found

    def resolve(self, query: LookupFilter) -> Resolution:
        found = self.candidates(query)
        if not found:
            logger.info("namespace_not_found", query=query.describe())
            return Resolution(status=ResolutionStatus.NOT_FOUND, query=query)
        if len(found) == 1:
            return Resolution(
                status=ResolutionStatus.RESOLVED, query=query, location=found[0], candidates=found
            )
        chosen = self.disambiguator.choose(found)
        return Resolution(
            status=ResolutionStatus.RESOLVED, query=query, location=chosen, candidates=found
        )
