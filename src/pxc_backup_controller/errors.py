from __future__ import annotations


class StateStoreError(RuntimeError):
    """Raised when a read or write against the Kubernetes API fails unexpectedly."""


class ObjectNotFound(StateStoreError):
    """Raised when the requested object does not exist."""


class ObjectAlreadyExists(StateStoreError):
    """Raised when creating an object whose name is already taken."""


class ReconcileError(RuntimeError):
    """Base class for conditions that abort a reconciliation."""


class ClusterNotFound(ReconcileError):
    def __init__(self, *, cluster_name: str, available: list[str]) -> None:
        super().__init__(f"wrong cluster name: {cluster_name!r}. Clusters available: {available!r}")
        self.cluster_name = cluster_name
        self.available = list(available)


class BackupNotConfigured(ReconcileError):
    def __init__(self, *, cluster_name: str) -> None:
        super().__init__(f"cluster {cluster_name!r} has no backup section; a backup image should be set in the PXC config")
        self.cluster_name = cluster_name


class UnknownStorageProfile(ReconcileError):
    def __init__(self, *, profile_name: str, available: list[str]) -> None:
        super().__init__(f"storage profile {profile_name!r} doesn't exist. Profiles available: {available!r}")
        self.profile_name = profile_name
        self.available = list(available)


class UnknownStorageKind(ReconcileError):
    def __init__(self, *, profile_name: str, kind: str) -> None:
        super().__init__(f"storage profile {profile_name!r} has unsupported type {kind!r}")
        self.profile_name = profile_name
        self.kind = kind


class VolumeNotReady(ReconcileError):
    def __init__(self, *, volume_name: str, phase: str, attempts: int) -> None:
        super().__init__(f"pvc {volume_name} not ready after {attempts} checks, status: {phase}")
        self.volume_name = volume_name
        self.phase = phase
        self.attempts = attempts


class VolumeStatusUnavailable(ReconcileError):
    """Raised when the backup volume status cannot be read."""


class OwnerReferenceError(ReconcileError):
    """Raised when a resource cannot be linked to its backup request."""


class JobSubmissionError(ReconcileError):
    """Raised when the backup job cannot be created."""


class StatusUpdateError(ReconcileError):
    """Raised when the derived status cannot be read or persisted."""
