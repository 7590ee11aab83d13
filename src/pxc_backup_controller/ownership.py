from __future__ import annotations

import copy
from typing import TypeVar

from kubernetes import client

from .errors import OwnerReferenceError
from .models import API_GROUP, API_VERSION, BACKUP_KIND, BackupRequest

R = TypeVar("R")


def owner_reference(owner: BackupRequest) -> client.V1OwnerReference:
    if not owner.uid:
        raise OwnerReferenceError(f"backup {owner.namespace}/{owner.name} has no uid and cannot own resources")
    return client.V1OwnerReference(
        api_version=f"{API_GROUP}/{API_VERSION}",
        kind=BACKUP_KIND,
        name=owner.name,
        uid=owner.uid,
        controller=True,
        block_owner_deletion=True,
    )


def with_owner(resource: R, owner: BackupRequest) -> R:
    """Return a copy of ``resource`` with ``owner`` appended to its owner references."""
    metadata = getattr(resource, "metadata", None)
    if metadata is None:
        raise OwnerReferenceError(f"{type(resource).__name__} has no metadata to carry an owner reference")
    if metadata.namespace and metadata.namespace != owner.namespace:
        raise OwnerReferenceError(
            f"cross-namespace owner references are not allowed: {metadata.namespace}/{metadata.name} "
            f"cannot be owned by {owner.namespace}/{owner.name}"
        )

    reference = owner_reference(owner)
    owned = copy.deepcopy(resource)
    owned.metadata.owner_references = [*(metadata.owner_references or []), reference]
    return owned
