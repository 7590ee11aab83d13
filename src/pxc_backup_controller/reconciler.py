from __future__ import annotations

import logging
import time
from typing import Callable

from .config import ControllerConfig
from .errors import BackupNotConfigured, ObjectNotFound, ReconcileError, StateStoreError
from .job import backup_job_name, build_backup_job, submit_backup_job
from .models import BackupRequest, FilesystemStorage, ReconcileResult, RequestKey
from .registry import find_cluster_config
from .retry import linear_backoff
from .status import reconcile_status
from .storage import VolumeProvisioner, resolve_destination, select_storage_profile
from .store import StateStore

logger = logging.getLogger(__name__)


class BackupReconciler:
    """Converges one PerconaXtraDBBackup onto its volume, job and status."""

    def __init__(
        self,
        *,
        store: StateStore,
        config: ControllerConfig,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.config = config
        self.provisioner = VolumeProvisioner(
            store=store,
            attempts=config.volume_bind_attempts,
            delay=linear_backoff,
            sleep=sleep,
        )

    def reconcile(self, key: RequestKey) -> ReconcileResult:
        requeue_after = self.config.requeue_after_seconds
        try:
            request = self.store.get_backup_request(key.namespace, key.name)
        except ObjectNotFound:
            return ReconcileResult(requeue_after=None)
        except StateStoreError as error:
            return ReconcileResult(requeue_after=requeue_after, error=error)

        try:
            self._converge(request)
        except ReconcileError as error:
            logger.error("reconcile backup %s failed: %s", key, error)
            return ReconcileResult(requeue_after=requeue_after, error=error)
        return ReconcileResult(requeue_after=requeue_after)

    def _converge(self, request: BackupRequest) -> None:
        cluster = find_cluster_config(self.store, namespace=request.namespace, cluster_name=request.target_cluster)
        if cluster.backup is None:
            raise BackupNotConfigured(cluster_name=cluster.name)

        profile = select_storage_profile(cluster, request.storage_profile)
        destination = resolve_destination(request, profile, volume_name=self.config.backup_volume_name)
        if isinstance(profile, FilesystemStorage):
            self.provisioner.ensure_bound(request, profile, volume_name=self.config.backup_volume_name)

        job = build_backup_job(request, cluster, destination, backoff_limit=self.config.job_backoff_limit)
        submit_backup_job(self.store, job)
        reconcile_status(self.store, request, job_name=backup_job_name(request), destination=destination)
