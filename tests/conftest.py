from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime

import pytest
from kubernetes import client

from pxc_backup_controller.errors import ObjectAlreadyExists, ObjectNotFound
from pxc_backup_controller.models import (
    VOLUME_BOUND,
    BackupRequest,
    BackupStatus,
    ClusterBackupSpec,
    ClusterConfig,
    FilesystemStorage,
    JobRunState,
    ObjectStorage,
    ObjectStorageSpec,
)


class FakeStateStore:
    """In-memory StateStore that records every call it receives."""

    def __init__(self) -> None:
        self.requests: dict[tuple[str, str], BackupRequest] = {}
        self.clusters: dict[str, list[ClusterConfig]] = {}
        self.volume_phases: dict[tuple[str, str], list[str | Exception]] = {}
        self.jobs: dict[tuple[str, str], JobRunState] = {}
        self.created_volumes: list[client.V1PersistentVolumeClaim] = []
        self.created_jobs: list[client.V1Job] = []
        self.status_writes: list[BackupStatus] = []
        self.calls: list[str] = []
        self.failures: dict[str, Exception] = {}
        self.phase_after_create = VOLUME_BOUND

    def add_request(self, request: BackupRequest) -> None:
        self.requests[(request.namespace, request.name)] = request

    def add_cluster(self, cluster: ClusterConfig) -> None:
        self.clusters.setdefault(cluster.namespace, []).append(cluster)

    def script_volume(self, namespace: str, name: str, *phases: str | Exception) -> None:
        self.volume_phases[(namespace, name)] = list(phases)

    def _record(self, method: str) -> None:
        self.calls.append(method)
        if method in self.failures:
            raise self.failures[method]

    def get_backup_request(self, namespace: str, name: str) -> BackupRequest:
        self._record("get_backup_request")
        try:
            return self.requests[(namespace, name)]
        except KeyError:
            raise ObjectNotFound(f"backup {namespace}/{name} not found") from None

    def list_cluster_configs(self, namespace: str) -> list[ClusterConfig]:
        self._record("list_cluster_configs")
        return list(self.clusters.get(namespace, []))

    def get_volume_phase(self, namespace: str, name: str) -> str:
        self._record("get_volume_phase")
        phases = self.volume_phases.get((namespace, name))
        if not phases:
            raise ObjectNotFound(f"pvc {namespace}/{name} not found")
        phase = phases.pop(0) if len(phases) > 1 else phases[0]
        if isinstance(phase, Exception):
            raise phase
        return phase

    def create_volume(self, namespace: str, body: client.V1PersistentVolumeClaim) -> None:
        self._record("create_volume")
        key = (namespace, body.metadata.name)
        if key in self.volume_phases:
            raise ObjectAlreadyExists(f"pvc {namespace}/{body.metadata.name} exists")
        self.created_volumes.append(body)
        self.volume_phases[key] = [self.phase_after_create]

    def create_job(self, namespace: str, body: client.V1Job) -> None:
        self._record("create_job")
        key = (namespace, body.metadata.name)
        if key in self.jobs:
            raise ObjectAlreadyExists(f"job {namespace}/{body.metadata.name} exists")
        self.created_jobs.append(body)
        self.jobs[key] = JobRunState()

    def get_job_run_state(self, namespace: str, name: str) -> JobRunState:
        self._record("get_job_run_state")
        try:
            return self.jobs[(namespace, name)]
        except KeyError:
            raise ObjectNotFound(f"job {namespace}/{name} not found") from None

    def replace_backup_status(self, request: BackupRequest, status: BackupStatus) -> None:
        self._record("replace_backup_status")
        self.status_writes.append(status)
        version = int(request.resource_version or "0") + 1
        self.requests[(request.namespace, request.name)] = replace(
            request,
            status=status,
            resource_version=str(version),
        )


@pytest.fixture
def store() -> FakeStateStore:
    return FakeStateStore()


@pytest.fixture
def backup_request() -> BackupRequest:
    return BackupRequest(
        namespace="db",
        name="nightly",
        uid="backup-uid-1",
        target_cluster="some-name",
        storage_profile="fs",
        created_at=datetime(2024, 3, 7, 15, 4, 5, tzinfo=UTC),
        resource_version="1",
    )


@pytest.fixture
def cluster() -> ClusterConfig:
    return ClusterConfig(
        namespace="db",
        name="some-name",
        backup=ClusterBackupSpec(
            image="percona/percona-xtradb-cluster-operator:backup",
            storages={
                "fs": FilesystemStorage(
                    volume_claim_template={
                        "accessModes": ["ReadWriteOnce"],
                        "resources": {"requests": {"storage": "6Gi"}},
                    }
                ),
                "s3-us-west": ObjectStorage(
                    s3=ObjectStorageSpec(
                        bucket="mybucket",
                        credentials_secret="aws-s3-secret",
                        region="us-west-2",
                    )
                ),
            },
        ),
    )
