from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Union

API_GROUP = "pxc.percona.com"
API_VERSION = "v1alpha1"
BACKUP_KIND = "PerconaXtraDBBackup"
BACKUP_PLURAL = "perconaxtradbbackups"
CLUSTER_PLURAL = "perconaxtradbclusters"

STORAGE_TYPE_FILESYSTEM = "filesystem"
STORAGE_TYPE_S3 = "s3"

BACKUP_STARTING = "Starting"
BACKUP_RUNNING = "Running"
BACKUP_SUCCEEDED = "Succeeded"
BACKUP_FAILED = "Failed"

VOLUME_UNDEFINED = "Undefined"
VOLUME_PENDING = "Pending"
VOLUME_BOUND = "Bound"
VOLUME_LOST = "Lost"


@dataclass(frozen=True)
class ObjectStorageSpec:
    bucket: str
    credentials_secret: str
    region: str | None = None
    endpoint_url: str | None = None


@dataclass(frozen=True)
class FilesystemStorage:
    volume_claim_template: dict[str, Any]


@dataclass(frozen=True)
class ObjectStorage:
    s3: ObjectStorageSpec


@dataclass(frozen=True)
class UnrecognizedStorage:
    kind: str


StorageProfile = Union[FilesystemStorage, ObjectStorage, UnrecognizedStorage]


@dataclass(frozen=True)
class ClusterBackupSpec:
    image: str
    storages: dict[str, StorageProfile]
    image_pull_secrets: tuple[str, ...] = ()
    service_account_name: str | None = None


@dataclass(frozen=True)
class ClusterConfig:
    namespace: str
    name: str
    backup: ClusterBackupSpec | None


@dataclass(frozen=True)
class BackupStatus:
    state: str
    destination: str = ""
    storage_profile: str = ""
    object_storage: ObjectStorageSpec | None = None
    completed_at: str | None = None


@dataclass(frozen=True)
class BackupRequest:
    namespace: str
    name: str
    uid: str
    target_cluster: str
    storage_profile: str
    created_at: datetime
    resource_version: str | None = None
    status: BackupStatus | None = None


@dataclass(frozen=True)
class JobRunState:
    active: int = 0
    succeeded: int = 0
    failed: int = 0
    completion_time: str | None = None


@dataclass(frozen=True)
class StorageDestination:
    """Where a backup writes its stream, as recorded on the request status."""

    destination: str
    volume_name: str | None = None
    object_storage: ObjectStorageSpec | None = None


@dataclass(frozen=True)
class ReconcileResult:
    requeue_after: float | None
    error: Exception | None = None


@dataclass(frozen=True)
class RequestKey:
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


def parse_backup_request(obj: dict[str, Any]) -> BackupRequest:
    metadata = obj.get("metadata") or {}
    spec = obj.get("spec") or {}
    return BackupRequest(
        namespace=metadata.get("namespace") or "",
        name=metadata.get("name") or "",
        uid=metadata.get("uid") or "",
        target_cluster=spec.get("targetCluster") or "",
        storage_profile=spec.get("storageProfile") or "",
        created_at=parse_timestamp(metadata.get("creationTimestamp")),
        resource_version=metadata.get("resourceVersion"),
        status=parse_backup_status(obj.get("status")),
    )


def parse_backup_status(raw: dict[str, Any] | None) -> BackupStatus | None:
    if not raw or not raw.get("state"):
        return None
    object_storage = raw.get("objectStorage")
    return BackupStatus(
        state=raw["state"],
        destination=raw.get("destination") or "",
        storage_profile=raw.get("storageProfile") or "",
        object_storage=_parse_object_storage(object_storage) if object_storage else None,
        completed_at=raw.get("completedAt"),
    )


def backup_status_to_dict(status: BackupStatus) -> dict[str, Any]:
    body: dict[str, Any] = {
        "state": status.state,
        "destination": status.destination,
        "storageProfile": status.storage_profile,
    }
    if status.object_storage is not None:
        s3 = status.object_storage
        body["objectStorage"] = {
            key: value
            for key, value in (
                ("bucket", s3.bucket),
                ("credentialsSecret", s3.credentials_secret),
                ("region", s3.region),
                ("endpointUrl", s3.endpoint_url),
            )
            if value is not None
        }
    if status.completed_at is not None:
        body["completedAt"] = status.completed_at
    return body


def parse_cluster_config(obj: dict[str, Any]) -> ClusterConfig:
    metadata = obj.get("metadata") or {}
    spec = obj.get("spec") or {}
    raw_backup = spec.get("backup")

    backup: ClusterBackupSpec | None = None
    if raw_backup:
        backup = ClusterBackupSpec(
            image=raw_backup.get("image") or "",
            storages={
                name: parse_storage_profile(profile or {})
                for name, profile in (raw_backup.get("storages") or {}).items()
            },
            image_pull_secrets=tuple(
                entry.get("name", "") for entry in raw_backup.get("imagePullSecrets") or [] if entry.get("name")
            ),
            service_account_name=raw_backup.get("serviceAccountName"),
        )

    return ClusterConfig(
        namespace=metadata.get("namespace") or "",
        name=metadata.get("name") or "",
        backup=backup,
    )


def parse_storage_profile(raw: dict[str, Any]) -> StorageProfile:
    kind = str(raw.get("type") or "").strip().lower()
    if kind == STORAGE_TYPE_FILESYSTEM:
        volume = raw.get("volume") or {}
        return FilesystemStorage(volume_claim_template=dict(volume.get("persistentVolumeClaim") or {}))
    if kind == STORAGE_TYPE_S3:
        return ObjectStorage(s3=_parse_object_storage(raw.get("s3") or {}))
    return UnrecognizedStorage(kind=kind or "<empty>")


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        raise ValueError("creationTimestamp is required")
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def format_timestamp(value: datetime | str | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_object_storage(raw: dict[str, Any]) -> ObjectStorageSpec:
    return ObjectStorageSpec(
        bucket=raw.get("bucket") or "",
        credentials_secret=raw.get("credentialsSecret") or "",
        region=raw.get("region"),
        endpoint_url=raw.get("endpointUrl"),
    )
