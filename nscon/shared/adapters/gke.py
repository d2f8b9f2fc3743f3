import asyncio
import base64
import binascii
import os
import tempfile
from typing import Any, List
import structlog
import google.auth
import google.auth.exceptions
import google.auth.transport.requests
from google.api_core.exceptions import GoogleAPICallError
from google.cloud import container_v1
from kubernetes_asyncio import client as k8s_client

from nscon.core.exceptions import ClusterScanError, CollaboratorError
from nscon.schemas.namespaces import ClusterIdentity, ClusterNamespaces, ProjectNamespaces
from nscon.shared.adapters.base import ClusterLister

logger = structlog.get_logger()

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
# "-" asks GKE for clusters in every zone and region of the project
ALL_LOCATIONS = "-"


class GKEClusterLister(ClusterLister):
    """
    Lists GKE clusters of a project and the namespaces inside each of them.

    Cluster discovery uses the Container API; namespaces are read straight from
    each control plane with a bearer token from Application Default Credentials.
    """

    def __init__(self, credentials: Any = None, cluster_client: Any = None):
        self._credentials = credentials
        self._cluster_client = cluster_client
        self._credentials_lock = asyncio.Lock()

    async def _refresh_credentials(self) -> None:
        # caller holds _credentials_lock
        if self._credentials is None:
            self._credentials, _ = await asyncio.to_thread(
                google.auth.default, scopes=[CLOUD_PLATFORM_SCOPE]
            )
        if not self._credentials.valid:
            await asyncio.to_thread(
                self._credentials.refresh, google.auth.transport.requests.Request()
            )

    async def _access_token(self) -> str:
        async with self._credentials_lock:
            await self._refresh_credentials()
            return str(self._credentials.token)

    async def _get_cluster_client(self) -> Any:
        async with self._credentials_lock:
            if self._cluster_client is None:
                await self._refresh_credentials()
                self._cluster_client = container_v1.ClusterManagerAsyncClient(
                    credentials=self._credentials
                )
            return self._cluster_client

    async def _list_clusters(self, project_id: str) -> List[Any]:
        try:
            client = await self._get_cluster_client()
            response = await client.list_clusters(
                parent=f"projects/{project_id}/locations/{ALL_LOCATIONS}"
            )
        except (GoogleAPICallError, google.auth.exceptions.GoogleAuthError) as exc:
            raise CollaboratorError(
                f"clusters list project={project_id}: {exc}", details={"project": project_id}
            ) from exc
        return list(getattr(response, "clusters", None) or [])

    async def list_project_namespaces(self, project_id: str) -> ProjectNamespaces:
        result = ProjectNamespaces(project_id=project_id)
        try:
            for cluster in await self._list_clusters(project_id):
                identity = ClusterIdentity.for_gke(project_id, cluster.location, cluster.name)
                namespaces = await self._list_namespaces(project_id, identity, cluster)
                result.clusters.append(
                    ClusterNamespaces(cluster_name=identity.encode(), namespaces=namespaces)
                )
        except CollaboratorError as exc:
            logger.error("gke_project_scan_failed", project=project_id, error=str(exc))
            raise

        logger.debug("gke_project_scanned", project=project_id, clusters=len(result.clusters))
        return result

    async def _list_namespaces(
        self, project_id: str, identity: ClusterIdentity, cluster: Any
    ) -> List[str]:
        name = identity.encode()
        try:
            ca_data = base64.b64decode(cluster.master_auth.cluster_ca_certificate, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ClusterScanError(project_id, name, f"invalid certificate: {exc}") from exc

        try:
            token = await self._access_token()
        except google.auth.exceptions.GoogleAuthError as exc:
            raise ClusterScanError(project_id, name, f"failed to obtain access token: {exc}") from exc

        ca_path = _write_ca_file(ca_data)
        try:
            return await self._read_namespaces(f"https://{cluster.endpoint}", ca_path, token)
        except Exception as exc:
            raise ClusterScanError(project_id, name, f"failed to list namespaces: {exc}") from exc
        finally:
            os.unlink(ca_path)

    async def _read_namespaces(self, host: str, ca_path: str, token: str) -> List[str]:
        configuration = k8s_client.Configuration()
        configuration.host = host
        configuration.ssl_ca_cert = ca_path
        configuration.api_key = {"authorization": token}
        configuration.api_key_prefix = {"authorization": "Bearer"}

        async with k8s_client.ApiClient(configuration) as api_client:
            v1 = k8s_client.CoreV1Api(api_client)
            namespace_list = await v1.list_namespace()
        return [item.metadata.name for item in namespace_list.items]


def _write_ca_file(ca_data: bytes) -> str:
    # kubernetes_asyncio only accepts the CA bundle as a file path
    with tempfile.NamedTemporaryFile("wb", suffix=".crt", delete=False) as handle:
        handle.write(ca_data)
        return handle.name
