import asyncio
from dataclasses import dataclass, field
from typing import Dict, Iterable, List
import structlog

from nscon.core.exceptions import ClusterScanError
from nscon.schemas.namespaces import ProjectNamespaces
from nscon.shared.adapters.base import ClusterLister
from nscon.shared.core.config import ScanOptions

logger = structlog.get_logger()


@dataclass
class ScanReport:
    """
    Aggregate of one scan run, one result per distinct project.

    Failed projects keep a placeholder result (no clusters, `error` set) so
    `attempted` always equals the number of projects asked for.
    """

    results: List[ProjectNamespaces] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for result in self.results if result.ok)

    @property
    def failed(self) -> List[ProjectNamespaces]:
        return [result for result in self.results if not result.ok]

    @property
    def failures(self) -> Dict[str, str]:
        return {result.project_id: str(result.error) for result in self.failed}


class NamespaceScanCoordinator:
    """
    Fans project scans out to a bounded pool of worker tasks and waits for
    exactly one result per project.

    Workers pull project ids from a work queue and push their single result to
    a result queue; this coordinator is the only consumer of that queue.
    Results are not streamed and come back in completion order.
    """

    def __init__(self, lister: ClusterLister, options: ScanOptions | None = None):
        self.lister = lister
        self.options = options or ScanOptions()

    async def scan(self, project_ids: Iterable[str]) -> ScanReport:
        projects = list(dict.fromkeys(project_ids))
        if not projects:
            logger.info("namespace_scan_skipped", reason="no_projects")
            return ScanReport()

        work: asyncio.Queue[str] = asyncio.Queue()
        for project_id in projects:
            work.put_nowait(project_id)
        outcomes: asyncio.Queue[ProjectNamespaces] = asyncio.Queue()

        worker_count = min(self.options.max_workers, len(projects))
        workers = [
            asyncio.create_task(self._worker(work, outcomes), name=f"nscon-scan-{i}")
            for i in range(worker_count)
        ]
        logger.info("namespace_scan_started", projects=len(projects), workers=worker_count)

        report = ScanReport()
        try:
            while len(report.results) < len(projects):
                result = await outcomes.get()
                self._progress(
                    "project_indexed",
                    project=result.project_id,
                    clusters=len(result.clusters),
                    ok=result.ok,
                )
                report.results.append(result)
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        logger.info(
            "namespace_scan_complete",
            attempted=report.attempted,
            succeeded=report.succeeded,
        )
        return report

    async def _worker(
        self, work: "asyncio.Queue[str]", outcomes: "asyncio.Queue[ProjectNamespaces]"
    ) -> None:
        while True:
            try:
                project_id = work.get_nowait()
            except asyncio.QueueEmpty:
                return
            await outcomes.put(await self._scan_project(project_id))

    async def _scan_project(self, project_id: str) -> ProjectNamespaces:
        self._progress("project_scan_started", project=project_id)
        try:
            scan = self.lister.list_project_namespaces(project_id)
            if self.options.project_timeout_seconds is not None:
                result = await asyncio.wait_for(scan, timeout=self.options.project_timeout_seconds)
            else:
                result = await scan
        except asyncio.TimeoutError:
            logger.error(
                "project_scan_timeout",
                project=project_id,
                timeout=self.options.project_timeout_seconds,
            )
            return ProjectNamespaces.failure(
                project_id, f"timed out after {self.options.project_timeout_seconds}s"
            )
        except ClusterScanError as e:
            logger.error("project_scan_failed", project=project_id, cluster=e.cluster, error=e.reason)
            return ProjectNamespaces.failure(project_id, e.message, failed_cluster=e.cluster)
        except Exception as e:
            logger.error("project_scan_failed", project=project_id, error=str(e))
            return ProjectNamespaces.failure(project_id, str(e))

        if result.project_id != project_id:
            # the aggregate is keyed by the project we asked for
            result = result.model_copy(update={"project_id": project_id})
        return result

    def _progress(self, event: str, **kwargs: object) -> None:
        if self.options.verbose:
            logger.info(event, **kwargs)
        else:
            logger.debug(event, **kwargs)
