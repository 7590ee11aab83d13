from __future__ import annotations

from datetime import datetime
import copy
import logging
import time
from typing import Callable

from kubernetes import client

from .errors import (
    ObjectAlreadyExists,
    ObjectNotFound,
    ReconcileError,
    StateStoreError,
    UnknownStorageKind,
    UnknownStorageProfile,
    VolumeNotReady,
    VolumeStatusUnavailable,
)
from .ownership import with_owner
from .models import (
    VOLUME_BOUND,
    VOLUME_UNDEFINED,
    BackupRequest,
    ClusterConfig,
    FilesystemStorage,
    ObjectStorage,
    StorageDestination,
    StorageProfile,
)
from .retry import linear_backoff, retry_with_backoff
from .store import StateStore

logger = logging.getLogger(__name__)

S3_SCHEME = "s3://"
DESTINATION_TIMESTAMP_FORMAT = "%Y-%d-%m-%H:%M:%S"
VOLUME_PREFIX = "pvc/"


def select_storage_profile(cluster: ClusterConfig, profile_name: str) -> StorageProfile:
    storages = cluster.backup.storages if cluster.backup else {}
    try:
        return storages[profile_name]
    except KeyError:
        raise UnknownStorageProfile(profile_name=profile_name, available=sorted(storages)) from None


def resolve_destination(
    request: BackupRequest,
    profile: StorageProfile,
    *,
    volume_name: str,
) -> StorageDestination:
    if isinstance(profile, FilesystemStorage):
        return StorageDestination(destination=VOLUME_PREFIX + volume_name, volume_name=volume_name)
    if isinstance(profile, ObjectStorage):
        return StorageDestination(
            destination=object_storage_destination(
                bucket=profile.s3.bucket,
                cluster_name=request.target_cluster,
                created_at=request.created_at,
            ),
            object_storage=profile.s3,
        )
    raise UnknownStorageKind(profile_name=request.storage_profile, kind=getattr(profile, "kind", type(profile).__name__))


def object_storage_destination(*, bucket: str, cluster_name: str, created_at: datetime) -> str:
    destination = f"{bucket}/{cluster_name}-{created_at.strftime(DESTINATION_TIMESTAMP_FORMAT)}-xtrabackup.stream"
    if not bucket.startswith(S3_SCHEME):
        destination = S3_SCHEME + destination
    return destination


def build_backup_volume(
    request: BackupRequest,
    profile: FilesystemStorage,
    *,
    volume_name: str,
) -> client.V1PersistentVolumeClaim:
    pvc = client.V1PersistentVolumeClaim(
        api_version="v1",
        kind="PersistentVolumeClaim",
        metadata=client.V1ObjectMeta(
            name=volume_name,
            namespace=request.namespace,
            labels={
                "app.kubernetes.io/name": "pxc-backup",
                "app.kubernetes.io/component": "backup-volume",
            },
        ),
        spec=copy.deepcopy(profile.volume_claim_template),
    )
    return with_owner(pvc, request)


class VolumeProvisioner:
    def __init__(
        self,
        *,
        store: StateStore,
        attempts: int = 5,
        delay: Callable[[int], float] = linear_backoff,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.attempts = attempts
        self.delay = delay
        self.sleep = sleep

    def ensure_bound(self, request: BackupRequest, profile: FilesystemStorage, *, volume_name: str) -> None:
        pvc = build_backup_volume(request, profile, volume_name=volume_name)
        self._ensure_exists(request.namespace, pvc)

        last_phase = VOLUME_UNDEFINED

        def _is_bound(attempt: int) -> bool:
            nonlocal last_phase
            last_phase = self._read_phase(request.namespace, volume_name)
            logger.debug(
                "backup volume %s/%s phase=%s (check %d/%d)",
                request.namespace,
                volume_name,
                last_phase,
                attempt,
                self.attempts,
            )
            return last_phase == VOLUME_BOUND

        if not retry_with_backoff(_is_bound, attempts=self.attempts, delay=self.delay, sleep=self.sleep):
            raise VolumeNotReady(volume_name=volume_name, phase=last_phase, attempts=self.attempts)

    def _ensure_exists(self, namespace: str, pvc: client.V1PersistentVolumeClaim) -> None:
        name = pvc.metadata.name
        try:
            self.store.get_volume_phase(namespace, name)
            return
        except ObjectNotFound:
            pass
        except StateStoreError as error:
            raise VolumeStatusUnavailable(f"get pvc: {error}") from error

        logger.info("Creating a new volume for backup namespace=%s name=%s", namespace, name)
        try:
            self.store.create_volume(namespace, pvc)
        except ObjectAlreadyExists:
            logger.debug("backup volume %s/%s was created concurrently", namespace, name)
        except StateStoreError as error:
            raise ReconcileError(f"create backup pvc: {error}") from error

    def _read_phase(self, namespace: str, name: str) -> str:
        try:
            return self.store.get_volume_phase(namespace, name)
        except ObjectNotFound:
            return VOLUME_UNDEFINED
        except StateStoreError as error:
            raise VolumeStatusUnavailable(f"get pvc status: {error}") from error
