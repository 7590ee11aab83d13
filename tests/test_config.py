from __future__ import annotations

import pytest

from pxc_backup_controller.config import DEFAULT_BACKUP_VOLUME_NAME, ControllerConfig, validate_config


def test_controller_config_with_defaults_matches_reconcile_contract() -> None:
    config = ControllerConfig(requeue_after_seconds=5.0, volume_bind_attempts=5, backup_volume_name=DEFAULT_BACKUP_VOLUME_NAME)

    validate_config(config)
    assert config.backup_volume_name == "cluster1-xb-cron-pvc"


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"requeue_after_seconds": 0}, "PXCB_REQUEUE_AFTER_SECONDS"),
        ({"volume_bind_attempts": 0}, "PXCB_VOLUME_BIND_ATTEMPTS"),
        ({"backup_volume_name": "  "}, "PXCB_BACKUP_VOLUME_NAME"),
        ({"job_backoff_limit": -1}, "PXCB_JOB_BACKOFF_LIMIT"),
        ({"watch_timeout_seconds": 0}, "PXCB_WATCH_TIMEOUT_SECONDS"),
        ({"log_level": "chatty"}, "PXCB_LOG_LEVEL"),
    ],
)
def test_validate_config_with_invalid_value_names_environment_variable(overrides: dict, message: str) -> None:
    config = ControllerConfig(
        requeue_after_seconds=5.0,
        volume_bind_attempts=5,
        backup_volume_name="cluster1-xb-cron-pvc",
        job_backoff_limit=0,
        watch_timeout_seconds=300,
        log_level="INFO",
    )
    values = {**config.__dict__, **overrides}

    with pytest.raises(ValueError, match=message):
        validate_config(ControllerConfig(**values))
