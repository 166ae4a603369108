"""Label helpers for objects owned by a service."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

K8S_APP_NAME = "app.kubernetes.io/name"
K8S_APP_INSTANCE = "app.kubernetes.io/instance"
K8S_APP_VERSION = "app.kubernetes.io/version"
K8S_APP_COMPONENT = "app.kubernetes.io/component"
K8S_APP_PART_OF = "app.kubernetes.io/part-of"
K8S_APP_MANAGED_BY = "app.kubernetes.io/managed-by"
K8S_HOSTNAME = "kubernetes.io/hostname"

LABEL_SELECTOR_OP_IN = "In"


def _merge_string_maps(base: Mapping[str, str] | None, *extra: Mapping[str, str] | None) -> dict[str, str]:
    """Merge maps; a key already present keeps its first value."""
    merged = dict(base or {})
    for mapping in extra:
        for key, value in (mapping or {}).items():
            merged.setdefault(key, value)
    return merged


def get_group_label(service_name: str) -> str:
    """Return the group label for a service."""
    return service_name + ".openstack.org"


def get_owner_uid_label_selector(group_label: str) -> str:
    """Return the owner UID label key for a group label."""
    return group_label + "/uid"


def get_owner_namespace_label_selector(group_label: str) -> str:
    """Return the owner namespace label key for a group label."""
    return group_label + "/namespace"


def get_owner_name_label_selector(group_label: str) -> str:
    """Return the owner name label key for a group label."""
    return group_label + "/name"


def get_labels(
    obj: Mapping[str, Any],
    group_label: str,
    custom: Mapping[str, str] | None,
) -> dict[str, str]:
    """Build the default owner labels for ``obj`` merged with ``custom``.

    ``obj`` is an object in its dictionary form, carrying a ``metadata`` map.
    """
    metadata = obj.get("metadata") or {}
    owner_labels = {
        get_owner_uid_label_selector(group_label): str(metadata.get("uid", "")),
        get_owner_namespace_label_selector(group_label): metadata.get("namespace", ""),
        get_owner_name_label_selector(group_label): metadata.get("name", ""),
    }
    return _merge_string_maps(owner_labels, custom)


def get_single_label_selector(key: str, value: str) -> dict[str, Any]:
    """Return a label selector matching a single key/value label."""
    return {
        "matchExpressions": [
            {"key": key, "operator": LABEL_SELECTOR_OP_IN, "values": [value]},
        ]
    }


def get_label_selector(service_labels: Mapping[str, str] | None) -> dict[str, Any]:
    """Return a label selector matching all of ``service_labels``."""
    return {"matchLabels": dict(service_labels) if service_labels is not None else None}