from __future__ import annotations

from dataclasses import dataclass
import logging
import os

DEFAULT_BACKUP_VOLUME_NAME = "cluster1-xb-cron-pvc"


@dataclass(frozen=True)
class ControllerConfig:
    namespace: str = os.getenv("PXCB_NAMESPACE", "")
    requeue_after_seconds: float = float(os.getenv("PXCB_REQUEUE_AFTER_SECONDS", "5"))
    volume_bind_attempts: int = int(os.getenv("PXCB_VOLUME_BIND_ATTEMPTS", "5"))
    backup_volume_name: str = os.getenv("PXCB_BACKUP_VOLUME_NAME", DEFAULT_BACKUP_VOLUME_NAME)
    job_backoff_limit: int = int(os.getenv("PXCB_JOB_BACKOFF_LIMIT", "0"))
    watch_timeout_seconds: int = int(os.getenv("PXCB_WATCH_TIMEOUT_SECONDS", "300"))
    log_level: str = os.getenv("PXCB_LOG_LEVEL", "INFO")


def validate_config(config: ControllerConfig) -> None:
    if config.requeue_after_seconds <= 0:
        raise ValueError("PXCB_REQUEUE_AFTER_SECONDS must be positive")
    if config.volume_bind_attempts <= 0:
        raise ValueError("PXCB_VOLUME_BIND_ATTEMPTS must be positive")
    if not config.backup_volume_name.strip():
        raise ValueError("PXCB_BACKUP_VOLUME_NAME must not be empty")
    if config.job_backoff_limit < 0:
        raise ValueError("PXCB_JOB_BACKOFF_LIMIT must be >= 0")
    if config.watch_timeout_seconds <= 0:
        raise ValueError("PXCB_WATCH_TIMEOUT_SECONDS must be positive")
    if not isinstance(logging.getLevelName(config.log_level.upper()), int):
        raise ValueError(f"PXCB_LOG_LEVEL has unknown level: {config.log_level}")
