from __future__ import annotations

import logging

from kubernetes import client

from .errors import JobSubmissionError, ObjectAlreadyExists, StateStoreError
from .models import BackupRequest, ClusterConfig, StorageDestination
from .ownership import with_owner
from .store import StateStore

logger = logging.getLogger(__name__)

JOB_NAME_PREFIX = "xb-"
CONTAINER_NAME = "xtrabackup"
STORAGE_VOLUME_NAME = "xtrabackup"
STORAGE_MOUNT_PATH = "/backup"
BACKUP_COMMAND = ["bash", "/usr/bin/backup.sh"]


def backup_job_name(request: BackupRequest) -> str:
    return f"{JOB_NAME_PREFIX}{request.name}"


def build_backup_job(
    request: BackupRequest,
    cluster: ClusterConfig,
    destination: StorageDestination,
    *,
    backoff_limit: int = 0,
) -> client.V1Job:
    if cluster.backup is None:
        raise ValueError(f"cluster {cluster.name} has no backup section")

    env = [
        client.V1EnvVar(name="PXC_SERVICE", value=f"{cluster.name}-pxc"),
        client.V1EnvVar(name="BACKUP_DESTINATION", value=destination.destination),
    ]
    volume_mounts: list[client.V1VolumeMount] = []
    volumes: list[client.V1Volume] = []

    if destination.volume_name is not None:
        volume_mounts.append(client.V1VolumeMount(name=STORAGE_VOLUME_NAME, mount_path=STORAGE_MOUNT_PATH))
        volumes.append(
            client.V1Volume(
                name=STORAGE_VOLUME_NAME,
                persistent_volume_claim=client.V1PersistentVolumeClaimVolumeSource(
                    claim_name=destination.volume_name,
                ),
            )
        )
    elif destination.object_storage is not None:
        s3 = destination.object_storage
        env.append(client.V1EnvVar(name="S3_BUCKET_URL", value=destination.destination))
        env.append(_secret_env("ACCESS_KEY_ID", secret_name=s3.credentials_secret, key="AWS_ACCESS_KEY_ID"))
        env.append(_secret_env("SECRET_ACCESS_KEY", secret_name=s3.credentials_secret, key="AWS_SECRET_ACCESS_KEY"))
        if s3.region:
            env.append(client.V1EnvVar(name="DEFAULT_REGION", value=s3.region))
        if s3.endpoint_url:
            env.append(client.V1EnvVar(name="ENDPOINT", value=s3.endpoint_url))

    job = client.V1Job(
        api_version="batch/v1",
        kind="Job",
        metadata=client.V1ObjectMeta(
            name=backup_job_name(request),
            namespace=request.namespace,
            labels=_job_labels(cluster.name),
        ),
        spec=client.V1JobSpec(
            backoff_limit=backoff_limit,
            template=client.V1PodTemplateSpec(
                metadata=client.V1ObjectMeta(labels=_job_labels(cluster.name)),
                spec=client.V1PodSpec(
                    restart_policy="Never",
                    service_account_name=cluster.backup.service_account_name,
                    image_pull_secrets=[
                        client.V1LocalObjectReference(name=name) for name in cluster.backup.image_pull_secrets
                    ]
                    or None,
                    containers=[
                        client.V1Container(
                            name=CONTAINER_NAME,
                            image=cluster.backup.image,
                            command=list(BACKUP_COMMAND),
                            env=env,
                            volume_mounts=volume_mounts or None,
                        )
                    ],
                    volumes=volumes or None,
                ),
            ),
        ),
    )
    return with_owner(job, request)


def submit_backup_job(store: StateStore, job: client.V1Job) -> bool:
    """Create ``job`` unless it already exists. Returns whether it was created."""
    namespace = job.metadata.namespace
    try:
        store.create_job(namespace, job)
    except ObjectAlreadyExists:
        return False
    except StateStoreError as error:
        raise JobSubmissionError(f"create backup job: {error}") from error

    logger.info("Created a new backup job namespace=%s name=%s", namespace, job.metadata.name)
    return True


def _job_labels(cluster_name: str) -> dict[str, str]:
    return {
        "app.kubernetes.io/name": "pxc-backup",
        "cluster": cluster_name,
        "type": "xtrabackup",
    }


def _secret_env(name: str, *, secret_name: str, key: str) -> client.V1EnvVar:
    return client.V1EnvVar(
        name=name,
        value_from=client.V1EnvVarSource(
            secret_key_ref=client.V1SecretKeySelector(name=secret_name, key=key),
        ),
    )
