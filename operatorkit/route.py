"""Routes that expose a service, with user-supplied overrides."""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping, MutableMapping
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from .helper import (
    ApiError,
    Helper,
    NotFoundError,
    OperationResult,
    _owner_reference,
    _upsert_owner_reference,
    create_or_patch,
    set_controller_reference,
)
from .labels import _merge_string_maps

ROUTE_API_VERSION = "route.openshift.io/v1"
ROUTE_KIND = "Route"

_PATCH_DIRECTIVE = "$patch"


@dataclass
class EmbeddedLabelsAnnotations:
    """Labels and annotations to merge into a generated object."""

    labels: dict[str, str] | None = None
    annotations: dict[str, str] | None = None


@dataclass
class TargetReference:
    """A backend of a route; every field is optional."""

    kind: str = ""
    name: str = ""
    weight: int | None = None


@dataclass
class Spec:
    """Route spec fields to override; empty fields leave the original alone."""

    host: str = ""
    subdomain: str = ""
    path: str = ""
    to: TargetReference = field(default_factory=TargetReference)
    alternate_backends: list[TargetReference] = field(default_factory=list)
    port: dict[str, Any] | None = None
    tls: dict[str, Any] | None = None
    wildcard_policy: str = ""


@dataclass
class OverrideSpec:
    """Overrides for the metadata and spec of a generated route."""

    metadata: EmbeddedLabelsAnnotations | None = None
    spec: Spec | None = None

    def add_annotation(self, anno: Mapping[str, str] | None) -> None:
        """Merge ``anno`` into the annotations; existing keys keep their value."""
        if self.metadata is None:
            self.metadata = EmbeddedLabelsAnnotations()
        self.metadata.annotations = _merge_string_maps(self.metadata.annotations, anno)

    def add_label(self, label: Mapping[str, str] | None) -> None:
        """Merge ``label`` into the labels; existing keys keep their value."""
        if self.metadata is None:
            self.metadata = EmbeddedLabelsAnnotations()
        self.metadata.labels = _merge_string_maps(self.metadata.labels, label)


@dataclass
class GenericRouteDetails:
    """What is needed to build a route to a named service port."""

    name: str
    namespace: str
    service_name: str
    target_port_name: str
    labels: dict[str, str] | None = None
    fqdn: str = ""


def _target_to_dict(target: TargetReference) -> dict[str, Any]:
    result: dict[str, Any] = {}
    if target.kind:
        result["kind"] = target.kind
    if target.name:
        result["name"] = target.name
    if target.weight is not None:
        result["weight"] = target.weight
    return result


def _spec_to_dict(spec: Spec) -> dict[str, Any]:
    result: dict[str, Any] = {}
    if spec.host:
        result["host"] = spec.host
    if spec.subdomain:
        result["subdomain"] = spec.subdomain
    if spec.path:
        result["path"] = spec.path
    to = _target_to_dict(spec.to)
    if to:
        result["to"] = to
    if spec.alternate_backends:
        result["alternateBackends"] = [_target_to_dict(b) for b in spec.alternate_backends]
    if spec.port is not None:
        result["port"] = copy.deepcopy(spec.port)
    if spec.tls is not None:
        result["tls"] = copy.deepcopy(spec.tls)
    if spec.wildcard_policy:
        result["wildcardPolicy"] = spec.wildcard_policy
    return result


def strategic_merge(original: Mapping[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``patch`` into a copy of ``original``.

    Maps merge key by key, ``None`` removes a key and lists are replaced whole.
    A ``$patch`` key of ``replace`` or ``delete`` in a map replaces or removes it.
    """
    if not isinstance(patch, Mapping):
        raise ValueError(f"patch is not an object: {patch!r}")
    directive = patch.get(_PATCH_DIRECTIVE)
    if directive == "replace":
        return {k: _strip(v) for k, v in patch.items() if k != _PATCH_DIRECTIVE}
    if directive == "delete":
        return {}
    if directive is not None:
        raise ValueError(f"unknown patch type: {directive}")

    result = copy.deepcopy(dict(original)) if isinstance(original, Mapping) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        elif isinstance(value, Mapping):
            if value.get(_PATCH_DIRECTIVE) == "delete":
                result.pop(key, None)
                continue
            current = result.get(key)
            result[key] = strategic_merge(current if isinstance(current, Mapping) else {}, value)
        else:
            result[key] = _strip(value)
    return result


def _strip(value: Any) -> Any:
    if isinstance(value, Mapping):
        return strategic_merge({}, value)
    if isinstance(value, list):
        return [_strip(item) for item in value]
    return copy.deepcopy(value)


def generic_route(details: GenericRouteDetails) -> dict[str, Any]:
    """Return a route to ``details.service_name`` on its named target port."""
    metadata: dict[str, Any] = {"name": details.name, "namespace": details.namespace}
    if details.labels is not None:
        metadata["labels"] = dict(details.labels)
    spec: dict[str, Any] = {
        "to": {"kind": "Service", "name": details.service_name},
        "port": {"targetPort": details.target_port_name},
    }
    if details.fqdn:
        spec["host"] = details.fqdn
    return {
        "apiVersion": ROUTE_API_VERSION,
        "kind": ROUTE_KIND,
        "metadata": metadata,
        "spec": spec,
    }


def _set_map(meta: MutableMapping[str, Any], key: str, value: Mapping[str, str]) -> None:
    if value:
        meta[key] = dict(value)
    else:
        meta.pop(key, None)


class Route:
    """A desired route together with the objects that own it."""

    def __init__(
        self,
        route: MutableMapping[str, Any],
        timeout: timedelta,
        overrides: Iterable[OverrideSpec] | None = None,
    ) -> None:
        self.route = route
        self.timeout = timeout
        self.hostname = ""
        self.owner_references: list[Mapping[str, Any]] = []

        meta = self.route.setdefault("metadata", {})
        for override in overrides or ():
            if override.metadata is not None:
                if override.metadata.labels is not None:
                    meta["labels"] = _merge_string_maps(override.metadata.labels, meta.get("labels"))
                if override.metadata.annotations is not None:
                    meta["annotations"] = _merge_string_maps(
                        override.metadata.annotations, meta.get("annotations")
                    )
            if override.spec is not None:
                try:
                    self.route["spec"] = strategic_merge(
                        self.route.get("spec") or {}, _spec_to_dict(override.spec)
                    )
                except ValueError as err:
                    raise ValueError(f"error patching Route Spec: {err}") from err

    @property
    def labels(self) -> dict[str, str] | None:
        """The labels of the route."""
        return (self.route.get("metadata") or {}).get("labels")

    @property
    def annotations(self) -> dict[str, str] | None:
        """The annotations of the route."""
        return (self.route.get("metadata") or {}).get("annotations")

    def add_annotation(self, anno: Mapping[str, str] | None) -> None:
        """Merge ``anno`` into the route's annotations; existing keys win."""
        meta = self.route.setdefault("metadata", {})
        meta["annotations"] = _merge_string_maps(meta.get("annotations"), anno)

    def add_label(self, label: Mapping[str, str] | None) -> None:
        """Merge ``label`` into the route's labels; existing keys win."""
        meta = self.route.setdefault("metadata", {})
        meta["labels"] = _merge_string_maps(meta.get("labels"), label)

    def create_or_patch(self, helper: Helper) -> timedelta | None:
        """Create or update the route in the cluster.

        Returns the delay after which to reconcile again, or ``None`` when done.
        The route's host is recorded in ``hostname``.
        """
        desired_meta = self.route.get("metadata") or {}
        name = desired_meta.get("name", "")
        obj: dict[str, Any] = {
            "apiVersion": self.route.get("apiVersion", ROUTE_API_VERSION),
            "kind": self.route.get("kind", ROUTE_KIND),
            "metadata": {"name": name, "namespace": desired_meta.get("namespace", "")},
        }

        def mutate(current: MutableMapping[str, Any]) -> None:
            meta = current.setdefault("metadata", {})
            _set_map(meta, "labels", _merge_string_maps(desired_meta.get("labels"), meta.get("labels")))
            _set_map(
                meta,
                "annotations",
                _merge_string_maps(desired_meta.get("annotations"), meta.get("annotations")),
            )
            spec = copy.deepcopy(self.route.get("spec") or {})
            ingress = (current.get("status") or {}).get("ingress") or []
            if not spec.get("host") and ingress:
                spec["host"] = ingress[0].get("host", "")
            current["spec"] = spec

            set_controller_reference(helper.before_object, current)
            # Further owners keep the route alive until all of them are gone.
            for owner in self.owner_references:
                _upsert_owner_reference(current, _owner_reference(owner, current, controller=False))

        try:
            op = create_or_patch(helper.client, obj, mutate)
        except NotFoundError:
            helper.logger.info("Route %s not found, reconcile in %s", name, self.timeout)
            return self.timeout
        if op is not OperationResult.NONE:
            helper.logger.info("Route %s - %s", name, op)

        self.hostname = (obj.get("spec") or {}).get("host", "")
        return None

    def delete(self, helper: Helper) -> None:
        """Delete the route; a route that is already gone is not an error."""
        try:
            helper.client.delete(self.route)
        except NotFoundError:
            pass
        except ApiError as err:
            name = (self.route.get("metadata") or {}).get("name", "")
            raise type(err)(f"Error deleting route {name}: {err}") from err