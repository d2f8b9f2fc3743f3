import subprocess
import sys
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence
import structlog
from rich.console import Console

from nscon.core.exceptions import UnsupportedPlatformError
from nscon.schemas.namespaces import NamespaceLocation
from nscon.shared.adapters.gcloud import GcloudConfigurations

logger = structlog.get_logger()

GCLOUD_BINARY = "gcloud"


@dataclass(frozen=True)
class CommandResult:
    args: List[str]
    returncode: int
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GcloudConnector:
    """
    Switches the active gcloud profile and kube context to a namespace location.

    A missing profile is fatal. Failing gcloud commands are reported and the
    next step still runs.
    """

    def __init__(
        self,
        configurations: GcloudConfigurations,
        runner: Callable[..., Any] = subprocess.run,
        console: Optional[Console] = None,
        platform: str = sys.platform,
    ):
        self.configurations = configurations
        self.runner = runner
        self.console = console or Console()
        self.platform = platform

    def connect(self, location: NamespaceLocation) -> List[CommandResult]:
        if self.platform.startswith("win"):
            raise UnsupportedPlatformError(self.platform)

        self.console.print(f"[green]Connecting to {location.project_id} GCP project[/green]")
        profile = self.configurations.profile_for_project(location.project_id)

        results = [
            self._run([GCLOUD_BINARY, "config", "configurations", "activate", profile.name])
        ]
        self.console.print(f"[green]Connecting to {location.cluster} cluster[/green]")
        results.append(
            self._run(
                [
                    GCLOUD_BINARY,
                    "container",
                    "clusters",
                    "get-credentials",
                    location.cluster,
                    "--region",
                    location.location,
                ]
            )
        )
        return results

    def _run(self, args: Sequence[str]) -> CommandResult:
        command = list(args)
        logger.debug("gcloud_command_started", command=" ".join(command))
        try:
            completed = self.runner(command, capture_output=True, text=True, check=False)
        except FileNotFoundError as exc:
            logger.warning("gcloud_command_unavailable", command=command[0], error=str(exc))
            self.console.print(f"[red]{command[0]} not found: {exc}[/red]")
            return CommandResult(args=command, returncode=127, stderr=str(exc))

        result = CommandResult(
            args=command, returncode=completed.returncode, stderr=(completed.stderr or "").strip()
        )
        if not result.ok:
            logger.warning(
                "gcloud_command_failed",
                command=" ".join(command),
                returncode=result.returncode,
                stderr=result.stderr,
            )
            self.console.print(
                f"[red]'{' '.join(command)}' exited with {result.returncode}[/red]"
                + (f"\n{result.stderr}" if result.stderr else "")
            )
        return result
