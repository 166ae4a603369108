"""Network attachment definitions and the pod annotations that refer to them."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .helper import ApiError, Helper
from .netutil import _format, _parse
from .pod import get_pod_list_with_label

NETWORK_ATTACHMENT_ANNOT = "k8s.v1.cni.cncf.io/networks"
NETWORK_STATUS_ANNOT = "k8s.v1.cni.cncf.io/network-status"

_MAX_IF_NAME = 15

_TOKEN_RE = re.compile(r"\.\.([^.\[\]]*)|\.([^.\[\]]*)|\[(-?[0-9]+)\]")


@dataclass
class NetworkStatus:
    """One entry of a pod's network-status annotation."""

    name: str = ""
    interface: str = ""
    ips: list[str] = field(default_factory=list)
    mac: str = ""
    default: bool = False
    dns: dict[str, Any] = field(default_factory=dict)
    device_info: dict[str, Any] | None = None
    gateway: list[str] | None = None


def _network_status_from_dict(data: Mapping[str, Any]) -> NetworkStatus:
    if not isinstance(data, Mapping):
        raise ValueError(f"network status entry is not an object: {data!r}")
    return NetworkStatus(
        name=data.get("name") or "",
        interface=data.get("interface") or "",
        ips=list(data.get("ips") or []),
        mac=data.get("mac") or "",
        default=bool(data.get("default", False)),
        dns=dict(data.get("dns") or {}),
        device_info=data.get("device-info"),
        gateway=list(data["gateway"]) if data.get("gateway") is not None else None,
    )


def _to_json(value: Any, *, sort_keys: bool = False) -> str:
    text = json.dumps(value, separators=(",", ":"), ensure_ascii=False, sort_keys=sort_keys)
    return (
        text.replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )


def _selection_element(
    name: str,
    namespace: str,
    interface: str,
    gateways: Iterable[str] = (),
) -> dict[str, Any]:
    element: dict[str, Any] = {"name": name}
    if namespace:
        element["namespace"] = namespace
    if interface:
        element["interface"] = interface
    gateways = list(gateways)
    if gateways:
        element["default-route"] = gateways
    return element


def _metadata(obj: Mapping[str, Any]) -> Mapping[str, Any]:
    return obj.get("metadata") or {}


def _config(nad: Mapping[str, Any]) -> str:
    return (nad.get("spec") or {}).get("config") or ""


def _recursive(nodes: list[Any]) -> list[Any]:
    found: list[Any] = []
    for node in nodes:
        if isinstance(node, Mapping):
            children = list(node.values())
        elif isinstance(node, (list, str)):
            children = list(node)
        else:
            children = []
        if children:
            found.append(node)
            found.extend(_recursive(children))
    return found


def _lookup_field(nodes: list[Any], name: str, allow_missing: bool) -> list[Any]:
    found = [node[name] for node in nodes if isinstance(node, Mapping) and name in node]
    if not found and not allow_missing:
        raise ValueError(f"{name} is not found")
    return found


def _lookup_index(nodes: list[Any], index: int, allow_missing: bool) -> list[Any]:
    found = []
    for node in nodes:
        if not isinstance(node, list):
            continue
        position = index + len(node) if index < 0 else index
        if 0 <= position < len(node):
            found.append(node[position])
        elif not allow_missing:
            raise ValueError(f"array index out of bounds: index {index}, length {len(node)}")
    if not found and not allow_missing:
        raise ValueError(f"[{index}] is not found")
    return found


def _evaluate(data: Any, expression: str, allow_missing: bool) -> list[Any]:
    nodes = [data]
    position = 0
    while position < len(expression):
        match = _TOKEN_RE.match(expression, position)
        if match is None:
            raise ValueError(f"unrecognized character in action: {expression[position:]!r}")
        position = match.end()
        recursive_name, name, index = match.groups()
        if recursive_name is not None:
            nodes = _recursive(nodes)
            if recursive_name:
                nodes = _lookup_field(nodes, recursive_name, allow_missing)
        elif index is not None:
            nodes = _lookup_index(nodes, int(index), allow_missing)
        elif name:
            nodes = _lookup_field(nodes, name, allow_missing)
    return nodes


def _format_number(value: int | float) -> str:
    number = float(value)
    if number.is_integer() and abs(number) < 1e21:
        return str(int(number))
    return repr(number)


def _format_result(value: Any) -> str:
    if isinstance(value, (Mapping, list)):
        return _to_json(value, sort_keys=True)
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "<nil>"
    return _format_number(value)


def _json_path(data: Any, expression: str, allow_missing: bool) -> str:
    return " ".join(_format_result(value) for value in _evaluate(data, expression, allow_missing))


def get_nad_with_name(helper: Helper, name: str, namespace: str) -> dict[str, Any]:
    """Return the network-attachment-definition ``name`` in ``namespace``."""
    try:
        return helper.client.get("NetworkAttachmentDefinition", name, namespace)
    except ApiError as err:
        raise type(err)(
            f"Error getting network-attachment-definition {name}/{namespace} - {err}"
        ) from err


def get_network_if_name(nad: str) -> str:
    """Return the interface name for a NAD, cut to the Linux limit of 15 chars."""
    return nad[:_MAX_IF_NAME]


def create_networks_annotation(namespace: str, nads: Iterable[str]) -> dict[str, str]:
    """Return the pod networks annotation attaching the named NADs in ``namespace``."""
    elements = [_selection_element(nad, namespace, get_network_if_name(nad)) for nad in nads]
    return {NETWORK_ATTACHMENT_ANNOT: _to_json(elements)}


def get_network_status_from_annotation(annotations: Mapping[str, str] | None) -> list[NetworkStatus]:
    """Decode the network-status annotation; an absent annotation gives ``[]``."""
    raw = (annotations or {}).get(NETWORK_STATUS_ANNOT)
    if raw is None:
        return []
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as err:
        raise ValueError(f"failed to decode networks status {raw}: {err}") from err
    if decoded is None:
        return []
    if not isinstance(decoded, list):
        raise ValueError(f"failed to decode networks status {raw}: not a list")
    return [_network_status_from_dict(entry) for entry in decoded]


def verify_network_status_from_annotation(
    helper: Helper,
    network_attachments: Iterable[str],
    service_labels: Mapping[str, str] | None,
    ready_count: int,
) -> tuple[bool, dict[str, list[str]]]:
    """Check that every attachment has at least ``ready_count`` IPs on the pods.

    Returns whether the networks are ready and the IPs found per network.
    """
    network_attachments = list(network_attachments)
    status: dict[str, list[str]] = {}
    if not network_attachments:
        return True, status

    namespace = _metadata(helper.before_object).get("namespace", "")
    for pod in get_pod_list_with_label(helper, namespace, service_labels):
        for net_status in get_network_status_from_annotation(_metadata(pod).get("annotations")):
            status.setdefault(net_status.name, []).extend(net_status.ips)

    ready = all(
        len(status.get(f"{namespace}/{attachment}", ())) >= ready_count
        and f"{namespace}/{attachment}" in status
        for attachment in network_attachments
    )
    return ready, status


def ensure_networks_annotation(nad_list: Iterable[Mapping[str, Any]]) -> dict[str, str]:
    """Return the pod networks annotation for the given NADs.

    An ``ipam.gateway`` in a NAD's config becomes the network's default route.
    """
    elements = []
    for nad in nad_list:
        try:
            data = json.loads(_config(nad))
        except json.JSONDecodeError as err:
            raise ValueError(f"failed to unmarshal JSON data: {err}") from err

        gateway = _json_path(data, ".ipam.gateway", allow_missing=True)
        gateways = []
        if gateway:
            address = _parse(gateway)
            gateways.append(_format(address) if address is not None else "")

        meta = _metadata(nad)
        name = meta.get("name", "")
        elements.append(
            _selection_element(name, meta.get("namespace", ""), get_network_if_name(name), gateways)
        )
    return {NETWORK_ATTACHMENT_ANNOT: _to_json(elements)}


def get_json_path_from_config(net_att: Mapping[str, Any], path: str) -> str:
    """Evaluate ``path`` (such as ``.ipam``) against a NAD's config.

    An empty config gives an empty string; a missing key raises ``ValueError``.
    """
    config = _config(net_att)
    if not config:
        return ""
    try:
        data = json.loads(config)
    except json.JSONDecodeError as err:
        raise ValueError(f"failed to unmarshal JSON data: {err}") from err
    try:
        return _json_path(data, "." + path, allow_missing=False)
    except ValueError as err:
        raise ValueError(f"parse execute template against nad {config} error: {err}") from err