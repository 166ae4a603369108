"""Patch tracking for a reconciled object and a small in-memory object API."""

from __future__ import annotations

import copy
import dataclasses
import itertools
import logging
import uuid
from collections.abc import Callable, Iterable, Mapping, MutableMapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any, NamedTuple

_log = logging.getLogger("operatorkit")

_IMMUTABLE_METADATA = ("name", "namespace", "uid", "creationTimestamp")


class ApiError(Exception):
    """An error reported by the object API."""

    status_code = 500


class NotFoundError(ApiError):
    """The requested object does not exist."""

    status_code = 404


class ConflictError(ApiError):
    """The object already exists or was modified concurrently."""

    status_code = 409


class OperationResult(str, Enum):
    """What ``create_or_patch`` did to an object."""

    NONE = "unchanged"
    CREATED = "created"
    UPDATED = "updated"
    UPDATED_STATUS = "updatedStatus"
    UPDATED_STATUS_ONLY = "updatedStatusOnly"

    def __str__(self) -> str:
        return self.value


class _GroupVersionKind(NamedTuple):
    group: str
    version: str
    kind: str


def _gvk_of(obj: Mapping[str, Any]) -> _GroupVersionKind:
    api_version = obj.get("apiVersion")
    kind = obj.get("kind")
    if not api_version or not kind:
        raise ValueError("object has no apiVersion or kind set")
    group, _, version = api_version.rpartition("/")
    return _GroupVersionKind(group, version, kind)


def _group_of(api_version: str) -> str:
    return api_version.rpartition("/")[0]


def _metadata(obj: Mapping[str, Any]) -> Mapping[str, Any]:
    return obj.get("metadata") or {}


def to_unstructured(obj: Any) -> dict[str, Any]:
    """Return an independent dictionary copy of ``obj``.

    Mappings are deep-copied; dataclass instances are converted field by field.
    """
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, Mapping):
        return copy.deepcopy(dict(obj))
    raise TypeError(f"cannot convert {type(obj).__name__} to an unstructured object")


def _diff(before: Mapping[str, Any], after: Mapping[str, Any]) -> dict[str, Any]:
    patch: dict[str, Any] = {}
    for key in before:
        if key not in after:
            patch[key] = None
    for key, value in after.items():
        if key not in before:
            patch[key] = copy.deepcopy(value)
        elif isinstance(before[key], Mapping) and isinstance(value, Mapping):
            nested = _diff(before[key], value)
            if nested:
                patch[key] = nested
        elif before[key] != value:
            patch[key] = copy.deepcopy(value)
    return patch


def create_merge_patch(before: Any, after: Any) -> dict[str, Any]:
    """Return the JSON merge patch that turns ``before`` into ``after``.

    Removed keys map to ``None``; lists are replaced whole.
    """
    return _diff(to_unstructured(before), to_unstructured(after))


def _apply_merge_patch(target: Any, patch: Any) -> Any:
    if not isinstance(patch, Mapping):
        return copy.deepcopy(patch)
    result = copy.deepcopy(dict(target)) if isinstance(target, Mapping) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = _apply_merge_patch(result.get(key), value)
    return result


def _write_back(obj: MutableMapping[str, Any], stored: Mapping[str, Any]) -> None:
    obj.clear()
    obj.update(copy.deepcopy(dict(stored)))


class Client:
    """In-memory object store with the create, get, list, patch and delete calls
    the helpers rely on.

    Objects are dictionaries with ``kind`` and ``metadata``; they are keyed by
    kind, namespace and name. Calls that change an object write the stored
    version back into the object passed in.
    """

    def __init__(self, objects: Iterable[Mapping[str, Any]] = ()) -> None:
        self._store: dict[tuple[str, str, str], dict[str, Any]] = {}
        self._counter = itertools.count(1)
        for obj in objects:
            self.create(copy.deepcopy(dict(obj)))

    @staticmethod
    def _key(obj: Mapping[str, Any]) -> tuple[str, str, str]:
        meta = _metadata(obj)
        name = meta.get("name", "")
        if not name:
            raise ValueError("object has no name set")
        return obj.get("kind", ""), meta.get("namespace", ""), name

    def get(self, kind: str, name: str, namespace: str = "") -> dict[str, Any]:
        """Return a copy of the stored object or raise ``NotFoundError``."""
        try:
            return copy.deepcopy(self._store[(kind, namespace, name)])
        except KeyError:
            raise NotFoundError(f'{kind} "{name}" not found') from None

    def list(
        self,
        kind: str,
        namespace: str = "",
        labels: Mapping[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        """Return copies of objects of ``kind`` whose labels include ``labels``.

        An empty namespace lists across all namespaces.
        """
        wanted = dict(labels or {})
        return [
            copy.deepcopy(stored)
            for (stored_kind, stored_ns, _), stored in sorted(self._store.items())
            if stored_kind == kind
            and (not namespace or stored_ns == namespace)
            and wanted.items() <= dict(_metadata(stored).get("labels") or {}).items()
        ]

    def create(self, obj: MutableMapping[str, Any]) -> dict[str, Any]:
        """Store a new object, assigning uid, resourceVersion and creation time."""
        key = self._key(obj)
        if key in self._store:
            raise ConflictError(f'{key[0]} "{key[2]}" already exists')
        stored = copy.deepcopy(dict(obj))
        meta = stored.setdefault("metadata", {})
        serial = next(self._counter)
        meta.setdefault("uid", str(uuid.UUID(int=serial)))
        meta["creationTimestamp"] = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        meta["resourceVersion"] = str(serial)
        self._store[key] = stored
        _write_back(obj, stored)
        return copy.deepcopy(stored)

    def patch(self, obj: MutableMapping[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
        """Apply a merge patch to everything but the status of the stored object."""
        return self._apply(obj, {key: value for key, value in patch.items() if key != "status"})

    def patch_status(self, obj: MutableMapping[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
        """Apply the status part of a merge patch to the stored object."""
        return self._apply(obj, {"status": patch["status"]} if "status" in patch else {})

    def _apply(self, obj: MutableMapping[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
        key = self._key(obj)
        current = self._store.get(key)
        if current is None:
            raise NotFoundError(f'{key[0]} "{key[2]}" not found')
        current_meta = _metadata(current)
        wanted_version = (patch.get("metadata") or {}).get("resourceVersion")
        if wanted_version is not None and wanted_version != current_meta.get("resourceVersion"):
            raise ConflictError(
                f'Operation cannot be fulfilled on {key[0]} "{key[2]}": '
                "the object has been modified; please apply your changes to the latest version"
            )
        updated = _apply_merge_patch(current, patch)
        meta = updated.setdefault("metadata", {})
        for field in _IMMUTABLE_METADATA:
            if field in current_meta:
                meta[field] = current_meta[field]
        meta["resourceVersion"] = current_meta.get("resourceVersion")
        if updated != current:
            meta["resourceVersion"] = str(next(self._counter))
        self._store[key] = updated
        _write_back(obj, updated)
        return copy.deepcopy(updated)

    def delete(self, obj: Mapping[str, Any]) -> None:
        """Remove the stored object or raise ``NotFoundError``."""
        key = self._key(obj)
        if self._store.pop(key, None) is None:
            raise NotFoundError(f'{key[0]} "{key[2]}" not found')


def _object_key(obj: Mapping[str, Any]) -> tuple[str, str, str]:
    meta = _metadata(obj)
    return obj.get("kind", ""), meta.get("name", ""), meta.get("namespace", "")


def create_or_patch(
    client: Client,
    obj: MutableMapping[str, Any],
    mutate: Callable[[MutableMapping[str, Any]], None],
) -> OperationResult:
    """Create ``obj`` or patch the stored one after applying ``mutate`` to it.

    ``mutate`` changes the object in place and must not alter its kind, name
    or namespace. Status changes are sent as a separate status patch.
    """
    kind, name, namespace = key = _object_key(obj)
    try:
        existing = client.get(kind, name, namespace)
    except NotFoundError:
        mutate(obj)
        if _object_key(obj) != key:
            raise ValueError("MutateFn cannot mutate object name and/or object namespace") from None
        client.create(obj)
        return OperationResult.CREATED

    _write_back(obj, existing)
    before = copy.deepcopy(dict(obj))
    mutate(obj)
    if _object_key(obj) != key:
        raise ValueError("MutateFn cannot mutate object name and/or object namespace")
    if before == obj:
        return OperationResult.NONE

    after = copy.deepcopy(dict(obj))
    before_rest = {k: v for k, v in before.items() if k != "status"}
    after_rest = {k: v for k, v in after.items() if k != "status"}

    result = OperationResult.NONE
    if before_rest != after_rest:
        client.patch(obj, _diff(before_rest, after_rest))
        result = OperationResult.UPDATED

    has_status = "status" in before or "status" in after
    if has_status and before.get("status") != after.get("status"):
        before_status = {"status": before["status"]} if "status" in before else {}
        after_status = {"status": after["status"]} if "status" in after else {}
        client.patch_status(obj, _diff(before_status, after_status))
        if result is OperationResult.UPDATED:
            result = OperationResult.UPDATED_STATUS
        else:
            result = OperationResult.UPDATED_STATUS_ONLY
    return result


def _owner_reference(
    owner: Mapping[str, Any],
    obj: Mapping[str, Any],
    *,
    controller: bool,
) -> dict[str, Any]:
    owner_meta = _metadata(owner)
    owner_ns = owner_meta.get("namespace", "")
    obj_ns = _metadata(obj).get("namespace", "")
    if owner_ns:
        if not obj_ns:
            raise ValueError(
                "cluster-scoped resource must not have a namespace-scoped owner, "
                f"owner's namespace {owner_ns}"
            )
        if owner_ns != obj_ns:
            raise ValueError(
                "cross-namespace owner references are disallowed, "
                f"owner's namespace {owner_ns}, obj's namespace {obj_ns}"
            )
    gvk = _gvk_of(owner)
    ref: dict[str, Any] = {
        "apiVersion": owner["apiVersion"],
        "kind": gvk.kind,
        "name": owner_meta.get("name", ""),
        "uid": owner_meta.get("uid", ""),
    }
    if controller:
        ref["controller"] = True
        ref["blockOwnerDeletion"] = True
    return ref


def _refers_same_object(a: Mapping[str, Any], b: Mapping[str, Any]) -> bool:
    return (
        _group_of(a.get("apiVersion", "")) == _group_of(b.get("apiVersion", ""))
        and a.get("kind") == b.get("kind")
        and a.get("name") == b.get("name")
    )


def _upsert_owner_reference(obj: MutableMapping[str, Any], ref: dict[str, Any]) -> None:
    meta = obj.setdefault("metadata", {})
    refs = [existing for existing in meta.get("ownerReferences") or []]
    for position, existing in enumerate(refs):
        if _refers_same_object(existing, ref):
            refs[position] = ref
            break
    else:
        refs.append(ref)
    meta["ownerReferences"] = refs


def set_controller_reference(owner: Mapping[str, Any], obj: MutableMapping[str, Any]) -> None:
    """Make ``owner`` the controlling owner of ``obj``.

    Raises ``ValueError`` if another controller already owns ``obj`` or the
    namespaces do not allow the reference.
    """
    ref = _owner_reference(owner, obj, controller=True)
    meta = _metadata(obj)
    for existing in meta.get("ownerReferences") or []:
        if existing.get("controller") and not _refers_same_object(existing, ref):
            raise ValueError(
                f"Object {meta.get('namespace', '')}/{meta.get('name', '')} is already owned "
                f"by another {existing.get('kind')} controller {existing.get('name')}"
            )
    _upsert_owner_reference(obj, ref)


class Helper:
    """Tracks an object's state at the start of a reconcile and patches changes."""

    def __init__(
        self,
        obj: Any,
        client: Client,
        kclient: Client | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.before: dict[str, Any] = to_unstructured(obj)
        self.gvk = _gvk_of(self.before)
        self.before_object: dict[str, Any] = to_unstructured(obj)
        self.client = client
        self.kclient = kclient if kclient is not None else client
        self.after: dict[str, Any] | None = None
        self.changes: set[str] = set()
        self.finalizer = ("openstack.org/" + self.gvk.kind).lower()
        self.logger = logger if logger is not None else _log

    def set_after(self, obj: Any) -> None:
        """Record ``obj`` as the new state and which top-level fields changed."""
        self.after = to_unstructured(obj)
        self.changes = set(create_merge_patch(self.before_object, self.after))

    def patch_instance(self, instance: MutableMapping[str, Any]) -> None:
        """Patch the instance's metadata and status where they changed.

        A missing object is ignored; conflicts and other API errors are raised.
        """
        try:
            self.set_after(instance)
        except (TypeError, ValueError) as err:
            self.logger.error("Set after and calc patch/diff: %s", err)
            raise

        patch = create_merge_patch(self.before_object, instance)
        sections = (
            ("metadata", "Metadata", self.client.patch),
            ("status", "Status", self.client.patch_status),
        )
        for section, label, send in sections:
            if section not in self.changes:
                continue
            try:
                send(instance, patch)
            except ConflictError:
                self.logger.info("%s update conflict", label)
                raise
            except NotFoundError:
                continue
            except ApiError as err:
                self.logger.error("%s update failed: %s", label, err)
                raise