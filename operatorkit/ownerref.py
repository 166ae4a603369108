"""Non-controller owner references on existing objects."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, MutableMapping
from typing import Any

from .helper import (
    ApiError,
    ConflictError,
    Helper,
    NotFoundError,
    _owner_reference,
    _upsert_owner_reference,
    create_merge_patch,
    to_unstructured,
)


def check_owner_ref_exist(uid: str, owner_refs: Iterable[Mapping[str, Any]] | None) -> bool:
    """Return whether an owner reference with ``uid`` is in ``owner_refs``."""
    return any(ref.get("uid") == uid for ref in owner_refs or ())


def patch_owner_ref(owner: Mapping[str, Any], obj: MutableMapping[str, Any]) -> dict[str, Any]:
    """Add ``owner`` as a non-controller owner of ``obj``.

    ``obj`` is changed in place; the merge patch for the change is returned.
    """
    before = to_unstructured(obj)
    _upsert_owner_reference(obj, _owner_reference(owner, obj, controller=False))
    return create_merge_patch(before, obj)


def ensure_owner_ref(
    helper: Helper,
    owner: Mapping[str, Any],
    obj: MutableMapping[str, Any],
) -> None:
    """Add ``owner`` to the owner references of ``obj`` and persist the change.

    A missing object is ignored; conflicts and other API errors are raised.
    """
    patch = patch_owner_ref(owner, obj)
    if "metadata" not in patch:
        return
    try:
        helper.client.patch(obj, patch)
    except ConflictError as err:
        raise ConflictError(f"error metadata update conflict: {err}") from err
    except NotFoundError:
        pass
    except ApiError as err:
        raise type(err)(f"error metadata update failed: {err}") from err
    helper.logger.info("Owner reference patched - diff %s", patch["metadata"])