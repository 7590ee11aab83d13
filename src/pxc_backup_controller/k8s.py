from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, TypeVar

from kubernetes import client, config
from kubernetes.client import ApiException

from .errors import ObjectAlreadyExists, ObjectNotFound, StateStoreError
from .models import (
    API_GROUP,
    API_VERSION,
    BACKUP_KIND,
    BACKUP_PLURAL,
    CLUSTER_PLURAL,
    VOLUME_UNDEFINED,
    BackupRequest,
    BackupStatus,
    ClusterConfig,
    JobRunState,
    backup_status_to_dict,
    format_timestamp,
    parse_backup_request,
    parse_cluster_config,
)

DEFAULT_REQUEST_TIMEOUT_SECONDS = 20
T = TypeVar("T")


@dataclass(frozen=True)
class KubernetesClients:
    api_client: client.ApiClient
    core_api: client.CoreV1Api
    batch_api: client.BatchV1Api
    custom_api: client.CustomObjectsApi


class KubernetesAuthenticationError(RuntimeError):
    """Raised when Kubernetes authentication configuration fails."""


def load_kubernetes_clients(
    *,
    kubeconfig_path: str | None,
    context: str | None,
    in_cluster: bool,
) -> KubernetesClients:
    expanded = _expand_kubeconfig_path(kubeconfig_path)
    try:
        if in_cluster:
            config.load_incluster_config()
        else:
            config.load_kube_config(config_file=expanded, context=context)
    except Exception as error:  # pylint: disable=broad-except
        raise KubernetesAuthenticationError(
            _format_authentication_error(
                in_cluster=in_cluster,
                kubeconfig_path=expanded,
                context=context,
                error=error,
            )
        ) from error

    api_client = client.ApiClient()
    return KubernetesClients(
        api_client=api_client,
        core_api=client.CoreV1Api(api_client),
        batch_api=client.BatchV1Api(api_client),
        custom_api=client.CustomObjectsApi(api_client),
    )


class KubernetesStateStore:
    def __init__(
        self,
        clients: KubernetesClients,
        *,
        request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        if request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        self.clients = clients
        self.request_timeout_seconds = request_timeout_seconds

    def get_backup_request(self, namespace: str, name: str) -> BackupRequest:
        obj = _safe_kubernetes_call(
            operation=f"get backup '{namespace}/{name}'",
            hint="Check RBAC verbs for perconaxtradbbackups.",
            func=lambda: self.clients.custom_api.get_namespaced_custom_object(
                API_GROUP,
                API_VERSION,
                namespace,
                BACKUP_PLURAL,
                name,
                _request_timeout=self.request_timeout_seconds,
            ),
        )
        return parse_backup_request(obj)

    def list_cluster_configs(self, namespace: str) -> list[ClusterConfig]:
        response = _safe_kubernetes_call(
            operation=f"list clusters in namespace '{namespace}'",
            hint="Check RBAC verbs for perconaxtradbclusters and confirm the CRD is installed.",
            func=lambda: self.clients.custom_api.list_namespaced_custom_object(
                API_GROUP,
                API_VERSION,
                namespace,
                CLUSTER_PLURAL,
                _request_timeout=self.request_timeout_seconds,
            ),
        )
        return [parse_cluster_config(item) for item in response.get("items") or []]

    def get_volume_phase(self, namespace: str, name: str) -> str:
        pvc = _safe_kubernetes_call(
            operation=f"read PVC '{namespace}/{name}'",
            hint="Check RBAC verbs for persistentvolumeclaims.",
            func=lambda: self.clients.core_api.read_namespaced_persistent_volume_claim(
                name=name,
                namespace=namespace,
                _request_timeout=self.request_timeout_seconds,
            ),
        )
        return pvc.status.phase if pvc.status and pvc.status.phase else VOLUME_UNDEFINED

    def create_volume(self, namespace: str, body: client.V1PersistentVolumeClaim) -> None:
        _safe_kubernetes_call(
            operation=f"create PVC '{namespace}/{body.metadata.name}'",
            hint="Check RBAC verbs for persistentvolumeclaims and the storage class in the claim template.",
            func=lambda: self.clients.core_api.create_namespaced_persistent_volume_claim(
                namespace=namespace,
                body=body,
                _request_timeout=self.request_timeout_seconds,
            ),
            conflict_means_exists=True,
        )

    def create_job(self, namespace: str, body: client.V1Job) -> None:
        _safe_kubernetes_call(
            operation=f"create Job '{namespace}/{body.metadata.name}'",
            hint="Check RBAC verbs for jobs in the batch API group.",
            func=lambda: self.clients.batch_api.create_namespaced_job(
                namespace=namespace,
                body=body,
                _request_timeout=self.request_timeout_seconds,
            ),
            conflict_means_exists=True,
        )

    def get_job_run_state(self, namespace: str, name: str) -> JobRunState:
        job = _safe_kubernetes_call(
            operation=f"read Job '{namespace}/{name}'",
            hint="Check RBAC verbs for jobs in the batch API group.",
            func=lambda: self.clients.batch_api.read_namespaced_job(
                name=name,
                namespace=namespace,
                _request_timeout=self.request_timeout_seconds,
            ),
        )
        status = job.status
        if status is None:
            return JobRunState()
        return JobRunState(
            active=status.active or 0,
            succeeded=status.succeeded or 0,
            failed=status.failed or 0,
            completion_time=format_timestamp(status.completion_time),
        )

    def replace_backup_status(self, request: BackupRequest, status: BackupStatus) -> None:
        metadata: dict[str, str] = {"name": request.name, "namespace": request.namespace}
        if request.resource_version:
            metadata["resourceVersion"] = request.resource_version
        body = {
            "apiVersion": f"{API_GROUP}/{API_VERSION}",
            "kind": BACKUP_KIND,
            "metadata": metadata,
            "status": backup_status_to_dict(status),
        }
        _safe_kubernetes_call(
            operation=f"update status of backup '{request.namespace}/{request.name}'",
            hint="A conflict means the backup changed since it was read; the next reconcile retries.",
            func=lambda: self.clients.custom_api.replace_namespaced_custom_object_status(
                API_GROUP,
                API_VERSION,
                request.namespace,
                BACKUP_PLURAL,
                request.name,
                body,
                _request_timeout=self.request_timeout_seconds,
            ),
        )


def _safe_kubernetes_call(
    *,
    operation: str,
    hint: str,
    func: Callable[[], T],
    conflict_means_exists: bool = False,
) -> T:
    try:
        return func()
    except ApiException as error:
        message = _format_api_exception_message(operation=operation, hint=hint, error=error)
        if error.status == 404:
            raise ObjectNotFound(message) from error
        if error.status == 409 and conflict_means_exists:
            raise ObjectAlreadyExists(message) from error
        raise StateStoreError(message) from error
    except Exception as error:
        raise StateStoreError(f"Kubernetes call failed while trying to {operation}: {error}. {hint}") from error


def _format_api_exception_message(*, operation: str, hint: str, error: ApiException) -> str:
    status = error.status if error.status is not None else "unknown"
    reason = error.reason or "no reason provided"
    return f"Kubernetes call failed while trying to {operation}: API status {status} ({reason}). {hint}"


def _expand_kubeconfig_path(kubeconfig_path: str | None) -> str | None:
    if kubeconfig_path is None:
        return None
    stripped = kubeconfig_path.strip()
    if not stripped:
        return None
    return str(Path(stripped).expanduser())


def _format_authentication_error(
    *,
    in_cluster: bool,
    kubeconfig_path: str | None,
    context: str | None,
    error: Exception,
) -> str:
    reason = str(error).strip() or error.__class__.__name__
    if in_cluster:
        return (
            "Kubernetes authentication setup failed while loading in-cluster service account credentials: "
            f"{reason}. Ensure the pod has a mounted service account token and Kubernetes service host "
            "environment variables."
        )

    kubeconfig_source = kubeconfig_path or "default kubeconfig search path"
    context_message = f" with context '{context}'" if context else ""
    return (
        "Kubernetes authentication setup failed while loading kubeconfig "
        f"from '{kubeconfig_source}'{context_message}: {reason}. "
        "Verify the kubeconfig path and context are valid."
    )
