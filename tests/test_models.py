from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from pxc_backup_controller.models import (
    BackupStatus,
    FilesystemStorage,
    ObjectStorage,
    ObjectStorageSpec,
    UnrecognizedStorage,
    backup_status_to_dict,
    format_timestamp,
    parse_backup_request,
    parse_backup_status,
    parse_cluster_config,
)


def _backup_object(status: dict | None = None) -> dict:
    obj = {
        "apiVersion": "pxc.percona.com/v1alpha1",
        "kind": "PerconaXtraDBBackup",
        "metadata": {
            "namespace": "db",
            "name": "nightly",
            "uid": "uid-1",
            "resourceVersion": "42",
            "creationTimestamp": "2024-03-07T15:04:05Z",
        },
        "spec": {"targetCluster": "cluster1", "storageProfile": "s3-us-west"},
    }
    if status is not None:
        obj["status"] = status
    return obj


def test_parse_backup_request_with_full_object_maps_spec_and_metadata() -> None:
    request = parse_backup_request(_backup_object())

    assert request.namespace == "db"
    assert request.name == "nightly"
    assert request.uid == "uid-1"
    assert request.resource_version == "42"
    assert request.target_cluster == "cluster1"
    assert request.storage_profile == "s3-us-west"
    assert request.created_at == datetime(2024, 3, 7, 15, 4, 5, tzinfo=UTC)
    assert request.status is None


def test_parse_backup_request_with_missing_creation_timestamp_raises_value_error() -> None:
    obj = _backup_object()
    del obj["metadata"]["creationTimestamp"]

    with pytest.raises(ValueError, match="creationTimestamp"):
        parse_backup_request(obj)


def test_parse_backup_status_with_stored_object_storage_round_trips_to_wire_dict() -> None:
    raw = {
        "state": "Succeeded",
        "destination": "s3://bucket/cluster1-2024-07-03-15:04:05-xtrabackup.stream",
        "storageProfile": "s3-us-west",
        "objectStorage": {"bucket": "bucket", "credentialsSecret": "aws", "region": "us-west-2"},
        "completedAt": "2024-03-07T16:00:00Z",
    }

    status = parse_backup_status(raw)

    assert status == BackupStatus(
        state="Succeeded",
        destination="s3://bucket/cluster1-2024-07-03-15:04:05-xtrabackup.stream",
        storage_profile="s3-us-west",
        object_storage=ObjectStorageSpec(bucket="bucket", credentials_secret="aws", region="us-west-2"),
        completed_at="2024-03-07T16:00:00Z",
    )
    assert backup_status_to_dict(status) == raw


def test_parse_backup_status_with_empty_status_returns_none() -> None:
    assert parse_backup_status(None) is None
    assert parse_backup_status({}) is None


def test_backup_status_to_dict_with_filesystem_status_omits_optional_keys() -> None:
    body = backup_status_to_dict(BackupStatus(state="Running", destination="pvc/backup", storage_profile="fs"))

    assert body == {"state": "Running", "destination": "pvc/backup", "storageProfile": "fs"}


def test_parse_cluster_config_with_mixed_storages_builds_tagged_profiles() -> None:
    cluster = parse_cluster_config(
        {
            "metadata": {"namespace": "db", "name": "cluster1"},
            "spec": {
                "backup": {
                    "image": "percona/backup:1",
                    "serviceAccountName": "backup-sa",
                    "imagePullSecrets": [{"name": "registry"}],
                    "storages": {
                        "fs": {
                            "type": "filesystem",
                            "volume": {"persistentVolumeClaim": {"accessModes": ["ReadWriteOnce"]}},
                        },
                        "s3": {"type": "S3", "s3": {"bucket": "b", "credentialsSecret": "creds"}},
                        "gcs": {"type": "gcs"},
                    },
                }
            },
        }
    )

    assert cluster.backup is not None
    assert cluster.backup.image == "percona/backup:1"
    assert cluster.backup.service_account_name == "backup-sa"
    assert cluster.backup.image_pull_secrets == ("registry",)
    assert cluster.backup.storages["fs"] == FilesystemStorage(volume_claim_template={"accessModes": ["ReadWriteOnce"]})
    assert cluster.backup.storages["s3"] == ObjectStorage(s3=ObjectStorageSpec(bucket="b", credentials_secret="creds"))
    assert cluster.backup.storages["gcs"] == UnrecognizedStorage(kind="gcs")


def test_parse_cluster_config_without_backup_section_leaves_backup_unset() -> None:
    cluster = parse_cluster_config({"metadata": {"namespace": "db", "name": "cluster1"}, "spec": {}})

    assert cluster.backup is None


def test_format_timestamp_with_offset_datetime_normalizes_to_utc() -> None:
    value = datetime(2024, 3, 7, 17, 4, 5, tzinfo=timezone(timedelta(hours=2)))

    assert format_timestamp(value) == "2024-03-07T15:04:05Z"
    assert format_timestamp(None) is None
    assert format_timestamp("2024-03-07T15:04:05Z") == "2024-03-07T15:04:05Z"
