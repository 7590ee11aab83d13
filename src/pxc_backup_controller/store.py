from __future__ import annotations

from typing import Protocol

from kubernetes import client

from .models import BackupRequest, BackupStatus, ClusterConfig, JobRunState


class StateStore(Protocol):
    """Reads and writes the objects a backup reconciliation touches.

    Implementations raise ``ObjectNotFound`` for missing objects,
    ``ObjectAlreadyExists`` when a create collides with an existing name and
    ``StateStoreError`` for every other failure.
    """

    def get_backup_request(self, namespace: str, name: str) -> BackupRequest: ...

    def list_cluster_configs(self, namespace: str) -> list[ClusterConfig]: ...

    def get_volume_phase(self, namespace: str, name: str) -> str: ...

    def create_volume(self, namespace: str, body: client.V1PersistentVolumeClaim) -> None: ...

    def create_job(self, namespace: str, body: client.V1Job) -> None: ...

    def get_job_run_state(self, namespace: str, name: str) -> JobRunState: ...

    def replace_backup_status(self, request: BackupRequest, status: BackupStatus) -> None: ...
