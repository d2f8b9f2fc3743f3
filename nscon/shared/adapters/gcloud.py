import configparser
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
import structlog

from nscon.core.exceptions import ConfigurationError, ProfileNotFoundError
from nscon.shared.adapters.base import ProjectLister

logger = structlog.get_logger()

CONFIG_FILE_PREFIX = "config_"


@dataclass(frozen=True)
class GcloudProfile:
    """A named gcloud configuration (~/.config/gcloud/configurations/config_<name>)."""

    name: str
    account: str
    project: str


class GcloudConfigurations(ProjectLister):
    """Reads gcloud configuration files to list projects and find the profile of a project."""

    def __init__(self, config_dir: Path):
        self.config_dir = Path(config_dir)

    def profiles(self) -> List[GcloudProfile]:
        files = self._config_files()
        if not files:
            raise ConfigurationError(
                f"no google cloud configuration files found in {self.config_dir}",
                details={"config_dir": str(self.config_dir)},
            )
        return [self._read_profile(path) for path in files]

    def list_projects(self, account_filter: Optional[str] = None) -> List[str]:
        projects: List[str] = []
        for profile in self.profiles():
            if not profile.project:
                continue
            if account_filter and account_filter not in profile.account:
                logger.debug("gcloud_profile_skipped", profile=profile.name, account=profile.account)
                continue
            if profile.project not in projects:
                projects.append(profile.project)
        logger.info("gcloud_projects_listed", count=len(projects))
        return projects

    def profile_for_project(self, project_id: str) -> GcloudProfile:
        for profile in self.profiles():
            if profile.project.casefold() == project_id.casefold():
                return profile
        raise ProfileNotFoundError(project_id)

    def _config_files(self) -> List[Path]:
        if not self.config_dir.is_dir():
            return []
        return sorted(
            path
            for path in self.config_dir.iterdir()
            if path.is_file() and path.name.startswith(CONFIG_FILE_PREFIX)
        )

    def _read_profile(self, path: Path) -> GcloudProfile:
        parser = configparser.ConfigParser()
        try:
            with path.open(encoding="utf-8") as handle:
                parser.read_file(handle)
        except (OSError, configparser.Error) as exc:
            raise ConfigurationError(
                f"can't parse configuration file {path.name}: {exc}",
                details={"file": str(path)},
            ) from exc
        return GcloudProfile(
            name=path.name[len(CONFIG_FILE_PREFIX):],
            account=parser.get("core", "account", fallback=""),
            project=parser.get("core", "project", fallback=""),
        )
