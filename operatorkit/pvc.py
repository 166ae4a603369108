"""Persistent volume claims owned by the reconciled object."""

from __future__ import annotations

import copy
from collections.abc import MutableMapping
from datetime import timedelta
from typing import Any

from .helper import (
    Helper,
    NotFoundError,
    OperationResult,
    create_or_patch,
    set_controller_reference,
)
from .labels import _merge_string_maps
from .route import _set_map

PVC_KIND = "PersistentVolumeClaim"


def _assign(target: MutableMapping[str, Any], key: str, value: Any) -> None:
    if value is None:
        target.pop(key, None)
    else:
        target[key] = copy.deepcopy(value)


def get_pvc_with_name(helper: Helper, name: str, namespace: str) -> dict[str, Any]:
    """Return the persistent volume claim ``name`` in ``namespace``."""
    return helper.client.get(PVC_KIND, name, namespace)


class Pvc:
    """A desired persistent volume claim; ``pvc`` holds the latest known state."""

    def __init__(self, pvc: MutableMapping[str, Any], timeout: timedelta) -> None:
        self.pvc = pvc
        self.timeout = timeout

    def create_or_patch(self, helper: Helper) -> timedelta | None:
        """Create or update the claim and refresh ``pvc`` from the cluster.

        Size, storage class and access modes are only set on creation.
        Returns the delay after which to reconcile again, or ``None`` when done.
        """
        desired = self.pvc
        desired_meta = desired.get("metadata") or {}
        name = desired_meta.get("name", "")
        namespace = desired_meta.get("namespace", "")
        obj: dict[str, Any] = {
            "apiVersion": desired.get("apiVersion", "v1"),
            "kind": desired.get("kind", PVC_KIND),
            "metadata": {"name": name, "namespace": namespace},
        }

        def mutate(current: MutableMapping[str, Any]) -> None:
            meta = current.setdefault("metadata", {})
            _set_map(
                meta,
                "annotations",
                _merge_string_maps(meta.get("annotations"), desired_meta.get("annotations")),
            )
            _set_map(meta, "labels", _merge_string_maps(meta.get("labels"), desired_meta.get("labels")))

            if not meta.get("creationTimestamp"):
                desired_spec = desired.get("spec") or {}
                spec = current.setdefault("spec", {})
                resources = spec.setdefault("resources", {})
                _assign(resources, "requests", (desired_spec.get("resources") or {}).get("requests"))
                if not resources:
                    spec.pop("resources")
                _assign(spec, "storageClassName", desired_spec.get("storageClassName"))
                _assign(spec, "accessModes", desired_spec.get("accessModes"))

            set_controller_reference(helper.before_object, current)

        try:
            op = create_or_patch(helper.client, obj, mutate)
        except NotFoundError:
            helper.logger.info("Pvc %s not found, reconcile in %s", name, self.timeout)
            return self.timeout
        if op is not OperationResult.NONE:
            helper.logger.info("Pvc %s - %s", name, op)

        self.pvc = get_pvc_with_name(helper, name, namespace)
        return None