from __future__ import annotations

from .errors import ClusterNotFound, ObjectNotFound, ReconcileError, StateStoreError
from .models import ClusterConfig
from .store import StateStore


def find_cluster_config(store: StateStore, *, namespace: str, cluster_name: str) -> ClusterConfig:
    """Return the first cluster in ``namespace`` named ``cluster_name``."""
    try:
        clusters = store.list_cluster_configs(namespace)
    except ObjectNotFound:
        clusters = []
    except StateStoreError as error:
        raise ReconcileError(f"get clusters list: {error}") from error

    available: list[str] = []
    for cluster in clusters:
        if cluster.name == cluster_name:
            return cluster
        available.append(cluster.name)

    raise ClusterNotFound(cluster_name=cluster_name, available=available)
