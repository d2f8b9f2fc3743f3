"""
Tests for the namespace scan coordinator

These tests verify:
1. One result per distinct project, whatever the completion order
2. Per-project failures are reported without stopping the other projects
3. The worker pool never exceeds its bound
"""
import asyncio

import pytest

from nscon.core.exceptions import ClusterScanError, CollaboratorError
from nscon.modules.discovery.domain.scanner import NamespaceScanCoordinator, ScanReport
from nscon.schemas.namespaces import ClusterNamespaces, ProjectNamespaces
from nscon.shared.adapters.base import ClusterLister
from nscon.shared.core.config import ScanOptions


class FakeClusterLister(ClusterLister):
    def __init__(self, failures=None, delays=None, hang=None):
        self.failures = failures or {}
        self.delays = delays or {}
        self.hang = hang or set()
        self.calls = []
        self.active = 0
        self.max_active = 0

    async def list_project_namespaces(self, project_id):
        self.calls.append(project_id)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if project_id in self.hang:
                await asyncio.Event().wait()
            await asyncio.sleep(self.delays.get(project_id, 0))
            if project_id in self.failures:
                raise self.failures[project_id]
            return ProjectNamespaces(
                project_id=project_id,
                clusters=[
                    ClusterNamespaces(
                        cluster_name=f"gke_{project_id}_us-central1_main",
                        namespaces=["default", f"{project_id}-app"],
                    )
                ],
            )
        finally:
            self.active -= 1


@pytest.mark.asyncio
@pytest.mark.parametrize("count", [0, 1, 5, 20])
async def test_scan_returns_one_result_per_project(count):
    projects = [f"proj-{i}" for i in range(count)]
    coordinator = NamespaceScanCoordinator(FakeClusterLister(), ScanOptions(max_workers=4))

    report = await coordinator.scan(projects)

    assert report.attempted == count
    assert report.succeeded == count
    assert sorted(r.project_id for r in report.results) == sorted(projects)
    assert report.failures == {}


@pytest.mark.asyncio
async def test_scan_collapses_duplicate_projects():
    lister = FakeClusterLister()
    coordinator = NamespaceScanCoordinator(lister)

    report = await coordinator.scan(["a", "b", "a"])

    assert report.attempted == 2
    assert sorted(lister.calls) == ["a", "b"]


@pytest.mark.asyncio
async def test_scan_results_follow_completion_order():
    lister = FakeClusterLister(delays={"slow": 0.05, "fast": 0})
    coordinator = NamespaceScanCoordinator(lister, ScanOptions(max_workers=2))

    report = await coordinator.scan(["slow", "fast"])

    assert [r.project_id for r in report.results] == ["fast", "slow"]


@pytest.mark.asyncio
async def test_failed_project_keeps_placeholder_and_others_complete():
    lister = FakeClusterLister(failures={"broken": CollaboratorError("permission denied")})
    coordinator = NamespaceScanCoordinator(lister, ScanOptions(max_workers=3))

    report = await coordinator.scan(["ok-1", "broken", "ok-2"])

    assert report.attempted == 3
    assert report.succeeded == 2
    assert [r.project_id for r in report.failed] == ["broken"]
    assert report.failures == {"broken": "permission denied"}
    placeholder = report.failed[0]
    assert placeholder.clusters == []
    assert not placeholder.ok


@pytest.mark.asyncio
async def test_cluster_failure_names_the_cluster():
    error = ClusterScanError("proj", "gke_proj_europe-west1_flaky", "failed to list namespaces: 403")
    coordinator = NamespaceScanCoordinator(FakeClusterLister(failures={"proj": error}))

    report = await coordinator.scan(["proj"])

    result = report.results[0]
    assert result.failed_cluster == "gke_proj_europe-west1_flaky"
    assert "gke_proj_europe-west1_flaky" in result.error


@pytest.mark.asyncio
async def test_unexpected_exception_is_contained():
    coordinator = NamespaceScanCoordinator(
        FakeClusterLister(failures={"boom": RuntimeError("unexpected")})
    )

    report = await coordinator.scan(["boom", "fine"])

    assert report.succeeded == 1
    assert report.failures == {"boom": "unexpected"}


@pytest.mark.asyncio
async def test_worker_pool_is_bounded():
    lister = FakeClusterLister(delays={f"p{i}": 0.01 for i in range(10)})
    coordinator = NamespaceScanCoordinator(lister, ScanOptions(max_workers=3))

    report = await coordinator.scan([f"p{i}" for i in range(10)])

    assert report.attempted == 10
    assert lister.max_active <= 3


@pytest.mark.asyncio
async def test_project_timeout_turns_into_failure():
    lister = FakeClusterLister(hang={"stuck"})
    coordinator = NamespaceScanCoordinator(
        lister, ScanOptions(max_workers=2, project_timeout_seconds=0.05)
    )

    report = await coordinator.scan(["stuck", "fine"])

    assert report.attempted == 2
    assert report.succeeded == 1
    assert "timed out" in report.failures["stuck"]


@pytest.mark.asyncio
async def test_result_is_keyed_by_requested_project():
    class MislabellingLister(ClusterLister):
        async def list_project_namespaces(self, project_id):
            return ProjectNamespaces(project_id="something-else")

    report = await NamespaceScanCoordinator(MislabellingLister()).scan(["asked-for"])

    assert report.results[0].project_id == "asked-for"


def test_empty_report_counts():
    report = ScanReport()

    assert report.attempted == 0
    assert report.succeeded == 0
    assert report.failed == []
