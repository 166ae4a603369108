"""Pod lookups by label selector."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .helper import ApiError, Helper


class NoPodSubdomainError(ValueError):
    """A pod lacks the hostname or subdomain needed to form its FQDN."""


def format_label_selector(labels: Mapping[str, str] | None) -> str:
    """Render labels as a selector string: ``key=value`` pairs sorted by key."""
    return ",".join(f"{key}={value}" for key, value in sorted((labels or {}).items()))


def get_pod_list_with_label(
    helper: Helper,
    namespace: str,
    label_selector: Mapping[str, str] | None,
) -> list[dict[str, Any]]:
    """Return the pods in ``namespace`` whose labels include ``label_selector``.

    The uncached client of the helper is used.
    """
    try:
        return helper.kclient.list("Pod", namespace, label_selector)
    except ApiError as err:
        raise type(err)(
            f"error listing pods for labels: {dict(label_selector or {})} - {err}"
        ) from err


def get_pod_fqdn_list(
    helper: Helper,
    namespace: str,
    label_selector: Mapping[str, str] | None,
) -> list[str]:
    """Return ``hostname.subdomain`` for every pod matching ``label_selector``.

    Raises ``NoPodSubdomainError`` if a pod lacks either part.
    """
    try:
        pods = get_pod_list_with_label(helper, namespace, label_selector)
    except ApiError as err:
        raise type(err)(f"error getting list of pods: {err}") from err

    names = []
    for pod in pods:
        spec = pod.get("spec") or {}
        hostname = spec.get("hostname", "")
        subdomain = spec.get("subdomain", "")
        if not hostname or not subdomain:
            raise NoPodSubdomainError(
                "Pod does not have the required Spec Hostname and Subdomain "
                "details to accurately form a FQDN"
            )
        names.append(f"{hostname}.{subdomain}")
    return names