import asyncio
import base64
import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from google.api_core.exceptions import PermissionDenied

from nscon.core.exceptions import ClusterScanError, CollaboratorError
from nscon.shared.adapters.gke import GKEClusterLister

CA_CERT = base64.b64encode(b"-----BEGIN CERTIFICATE-----\nMIIB\n-----END CERTIFICATE-----\n").decode()


def _cluster(name, location="us-central1", ca=CA_CERT):
    cluster = MagicMock()
    cluster.name = name
    cluster.location = location
    cluster.endpoint = f"10.0.0.{len(name)}"
    cluster.master_auth.cluster_ca_certificate = ca
    return cluster


@pytest.fixture
def credentials():
    return MagicMock(valid=True, token="ya29.token")


def _lister(credentials, clusters=None, error=None):
    client = MagicMock()
    if error is not None:
        client.list_clusters = AsyncMock(side_effect=error)
    else:
        client.list_clusters = AsyncMock(return_value=MagicMock(clusters=clusters or []))
    return GKEClusterLister(credentials=credentials, cluster_client=client), client


@pytest.mark.asyncio
async def test_lists_namespaces_of_every_cluster(credentials):
    lister, client = _lister(
        credentials, [_cluster("webapp-1"), _cluster("billing", location="europe-west1-b")]
    )

    with patch.object(
        GKEClusterLister, "_read_namespaces", AsyncMock(side_effect=[["default", "payments"], ["payments"]])
    ):
        result = await lister.list_project_namespaces("proj1")

    client.list_clusters.assert_awaited_once_with(parent="projects/proj1/locations/-")
    assert result.ok
    assert [c.cluster_name for c in result.clusters] == [
        "gke_proj1_us-central1_webapp-1",
        "gke_proj1_europe-west1-b_billing",
    ]
    assert result.clusters[0].namespaces == ["default", "payments"]


@pytest.mark.asyncio
async def test_namespaces_are_read_with_bearer_token_and_ca_file(credentials):
    lister, _ = _lister(credentials, [_cluster("webapp-1")])
    seen = {}

    async def fake_read(self, host, ca_path, token):
        seen.update(host=host, token=token, ca_path=ca_path)
        with open(ca_path, "rb") as handle:
            seen["ca"] = handle.read()
        return ["default"]

    with patch.object(GKEClusterLister, "_read_namespaces", fake_read):
        await lister.list_project_namespaces("proj1")

    assert seen["host"] == "https://10.0.0.8"
    assert seen["token"] == "ya29.token"
    assert seen["ca"].startswith(b"-----BEGIN CERTIFICATE-----")
    assert not os.path.exists(seen["ca_path"])


@pytest.mark.asyncio
async def test_project_without_clusters_is_empty(credentials):
    lister, _ = _lister(credentials, [])

    result = await lister.list_project_namespaces("empty-project")

    assert result.project_id == "empty-project"
    assert result.clusters == []


@pytest.mark.asyncio
async def test_one_failing_cluster_aborts_the_project(credentials):
    lister, _ = _lister(credentials, [_cluster("good"), _cluster("flaky"), _cluster("never")])
    read = AsyncMock(side_effect=[["default"], RuntimeError("connection refused"), ["default"]])

    with patch.object(GKEClusterLister, "_read_namespaces", read):
        with pytest.raises(ClusterScanError) as exc_info:
            await lister.list_project_namespaces("proj1")

    assert exc_info.value.cluster == "gke_proj1_us-central1_flaky"
    assert "connection refused" in exc_info.value.reason
    assert read.await_count == 2


@pytest.mark.asyncio
async def test_invalid_certificate_is_a_cluster_failure(credentials):
    lister, _ = _lister(credentials, [_cluster("broken", ca="not base64!!")])
    read = AsyncMock(return_value=[])

    with patch.object(GKEClusterLister, "_read_namespaces", read):
        with pytest.raises(ClusterScanError, match="invalid certificate"):
            await lister.list_project_namespaces("proj1")

    read.assert_not_awaited()


@pytest.mark.asyncio
async def test_cluster_listing_error_is_a_collaborator_error(credentials):
    lister, _ = _lister(credentials, error=PermissionDenied("caller lacks container.clusters.list"))

    with pytest.raises(CollaboratorError) as exc_info:
        await lister.list_project_namespaces("proj1")

    assert not isinstance(exc_info.value, ClusterScanError)
    assert exc_info.value.details == {"project": "proj1"}
    assert "proj1" in exc_info.value.message


@pytest.mark.asyncio
async def test_expired_credentials_are_refreshed():
    credentials = MagicMock(valid=False, token="fresh")
    lister, _ = _lister(credentials, [_cluster("webapp-1")])

    with patch.object(GKEClusterLister, "_read_namespaces", AsyncMock(return_value=["default"])):
        await lister.list_project_namespaces("proj1")

    credentials.refresh.assert_called()


@pytest.mark.asyncio
async def test_concurrent_scans_share_one_cluster_client():
    # refreshing yields to the event loop while the client is still unset
    credentials = MagicMock(valid=False, token="ya29.token")
    lister = GKEClusterLister(credentials=credentials)
    client = MagicMock()
    client.list_clusters = AsyncMock(return_value=MagicMock(clusters=[]))

    with patch(
        "nscon.shared.adapters.gke.container_v1.ClusterManagerAsyncClient", return_value=client
    ) as client_cls:
        results = await asyncio.gather(
            *(lister.list_project_namespaces(f"proj{i}") for i in range(5))
        )

    client_cls.assert_called_once_with(credentials=credentials)
    assert client.list_clusters.await_count == 5
    assert [r.project_id for r in results] == [f"proj{i}" for i in range(5)]


@pytest.mark.asyncio
async def test_failed_project_does_not_leak_into_later_projects(credentials):
    lister, client = _lister(credentials)
    client.list_clusters = AsyncMock(
        side_effect=[PermissionDenied("denied"), MagicMock(clusters=[_cluster("webapp-1")])]
    )

    with pytest.raises(CollaboratorError):
        await lister.list_project_namespaces("proj1")
    with patch.object(GKEClusterLister, "_read_namespaces", AsyncMock(return_value=["default"])):
        result = await lister.list_project_namespaces("proj2")

    assert result.ok
    assert result.clusters[0].cluster_name == "gke_proj2_us-central1_webapp-1"
    assert not hasattr(lister, "last_error")
