from __future__ import annotations

import logging
from typing import Callable

from .errors import ObjectNotFound, StateStoreError, StatusUpdateError
from .models import (
    BACKUP_FAILED,
    BACKUP_RUNNING,
    BACKUP_STARTING,
    BACKUP_SUCCEEDED,
    BackupRequest,
    BackupStatus,
    JobRunState,
    StorageDestination,
)
from .store import StateStore

logger = logging.getLogger(__name__)

TERMINAL_STATES = frozenset({BACKUP_SUCCEEDED, BACKUP_FAILED})


def derive_status(run_state: JobRunState, *, destination: StorageDestination, storage_profile: str) -> BackupStatus:
    state = BACKUP_STARTING
    completed_at: str | None = None
    if run_state.active == 1:
        state = BACKUP_RUNNING
    elif run_state.succeeded == 1:
        state = BACKUP_SUCCEEDED
        completed_at = run_state.completion_time
    elif run_state.failed == 1:
        state = BACKUP_FAILED

    return BackupStatus(
        state=state,
        destination=destination.destination,
        storage_profile=storage_profile,
        object_storage=destination.object_storage,
        completed_at=completed_at,
    )


def write_if_changed(
    previous: BackupStatus | None,
    candidate: BackupStatus,
    write: Callable[[BackupStatus], None],
) -> bool:
    """Call ``write`` only when ``candidate`` differs from ``previous``."""
    if previous == candidate:
        return False
    write(candidate)
    return True


def _is_settled(stored: BackupStatus | None, candidate: BackupStatus) -> bool:
    if stored is None or stored.state not in TERMINAL_STATES:
        return False
    # A Succeeded status recorded before the job reported its completion time may still gain it.
    return not (
        stored.state == BACKUP_SUCCEEDED
        and stored.completed_at is None
        and candidate.state == BACKUP_SUCCEEDED
        and candidate.completed_at is not None
    )


def reconcile_status(
    store: StateStore,
    request: BackupRequest,
    *,
    job_name: str,
    destination: StorageDestination,
) -> BackupStatus | None:
    """Mirror the backup job's run state onto ``request``.

    Returns the status now stored on the request, or ``None`` when the job is
    gone and nothing was written.
    """
    try:
        run_state = store.get_job_run_state(request.namespace, job_name)
    except ObjectNotFound:
        return None
    except StateStoreError as error:
        raise StatusUpdateError(f"get backup status: {error}") from error

    candidate = derive_status(run_state, destination=destination, storage_profile=request.storage_profile)
    if _is_settled(request.status, candidate):
        return request.status

    def _persist(status: BackupStatus) -> None:
        try:
            store.replace_backup_status(request, status)
        except StateStoreError as error:
            raise StatusUpdateError(f"update backup status: {error}") from error
        previous_state = request.status.state if request.status else None
        if previous_state != status.state:
            logger.info("backup %s/%s state %s -> %s", request.namespace, request.name, previous_state, status.state)

    write_if_changed(request.status, candidate, _persist)
    return candidate
