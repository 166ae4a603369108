"""Roles and role bindings owned by the reconciled object."""

from __future__ import annotations

import copy
from collections.abc import Mapping, MutableMapping
from datetime import timedelta
from typing import Any

from .helper import (
    ApiError,
    Helper,
    NotFoundError,
    OperationResult,
    create_or_patch,
    set_controller_reference,
)
from .labels import _merge_string_maps
from .route import _set_map

RBAC_API_VERSION = "rbac.authorization.k8s.io/v1"


def _assign(target: MutableMapping[str, Any], key: str, value: Any) -> None:
    if value is None:
        target.pop(key, None)
    else:
        target[key] = copy.deepcopy(value)


def _skeleton(desired: Mapping[str, Any], kind: str) -> dict[str, Any]:
    meta = desired.get("metadata") or {}
    return {
        "apiVersion": desired.get("apiVersion", RBAC_API_VERSION),
        "kind": desired.get("kind", kind),
        "metadata": {"name": meta.get("name", ""), "namespace": meta.get("namespace", "")},
    }


def _name(obj: Mapping[str, Any]) -> str:
    return (obj.get("metadata") or {}).get("name", "")


def _delete(helper: Helper, obj: Mapping[str, Any], what: str) -> None:
    try:
        helper.client.delete(obj)
    except NotFoundError:
        pass
    except ApiError as err:
        raise type(err)(f"Error deleting {what} {_name(obj)}: {err}") from err


class Role:
    """A desired role in a namespace."""

    def __init__(self, role: MutableMapping[str, Any], timeout: timedelta) -> None:
        self.role = role
        self.timeout = timeout

    def create_or_patch(self, helper: Helper) -> timedelta | None:
        """Create or update the role.

        Returns the delay after which to reconcile again, or ``None`` when done.
        """
        obj = _skeleton(self.role, "Role")
        name = _name(obj)
        desired_meta = self.role.get("metadata") or {}

        def mutate(current: MutableMapping[str, Any]) -> None:
            meta = current.setdefault("metadata", {})
            _set_map(meta, "labels", _merge_string_maps(meta.get("labels"), desired_meta.get("labels")))
            # Annotations are built on top of the (already merged) labels.
            _set_map(
                meta,
                "annotations",
                _merge_string_maps(meta.get("labels"), desired_meta.get("annotations")),
            )
            _assign(current, "rules", self.role.get("rules"))
            set_controller_reference(helper.before_object, current)

        try:
            op = create_or_patch(helper.client, obj, mutate)
        except NotFoundError:
            helper.logger.info("Role %s not found, reconcile in %s", name, self.timeout)
            return self.timeout
        except (ApiError, ValueError) as err:
            raise type(err)(f"Error creating role {name}: {err}") from err
        if op is not OperationResult.NONE:
            helper.logger.info("Role %s - %s", name, op)
        return None

    def delete(self, helper: Helper) -> None:
        """Delete the role; a role that is already gone is not an error."""
        _delete(helper, self.role, "role")


class RoleBinding:
    """A desired role binding in a namespace."""

    def __init__(self, role_binding: MutableMapping[str, Any], timeout: timedelta) -> None:
        self.role_binding = role_binding
        self.timeout = timeout

    def create_or_patch(self, helper: Helper) -> timedelta | None:
        """Create or update the role binding.

        Returns the delay after which to reconcile again, or ``None`` when done.
        """
        obj = _skeleton(self.role_binding, "RoleBinding")
        name = _name(obj)
        desired_meta = self.role_binding.get("metadata") or {}

        def mutate(current: MutableMapping[str, Any]) -> None:
            meta = current.setdefault("metadata", {})
            _set_map(meta, "labels", _merge_string_maps(meta.get("labels"), desired_meta.get("labels")))
            _set_map(
                meta,
                "annotations",
                _merge_string_maps(meta.get("annotations"), desired_meta.get("annotations")),
            )
            _assign(current, "roleRef", self.role_binding.get("roleRef"))
            _assign(current, "subjects", self.role_binding.get("subjects"))
            set_controller_reference(helper.before_object, current)

        try:
            op = create_or_patch(helper.client, obj, mutate)
        except NotFoundError:
            helper.logger.info("RoleBinding %s not found, reconcile in %s", name, self.timeout)
            return self.timeout
        except (ApiError, ValueError) as err:
            raise type(err)(f"Error creating rol binding {name}: {err}") from err
        if op is not OperationResult.NONE:
            helper.logger.info("RoleBinding %s - %s", name, op)
        return None

    def delete(self, helper: Helper) -> None:
        """Delete the role binding; one that is already gone is not an error."""
        _delete(helper, self.role_binding, "roleBinding")