"""Queries about the cluster's FIPS mode and network configuration."""

from __future__ import annotations

import ipaddress
from typing import Any

import yaml

from .helper import Helper


def is_ipv6_cidr(cidr: str) -> bool:
    """Return whether ``cidr`` is a CIDR string with an IPv6 address."""
    if "/" not in cidr:
        return False
    try:
        network = ipaddress.ip_network(cidr, strict=False)
    except ValueError:
        return False
    if not isinstance(network, ipaddress.IPv6Network):
        return False
    address = ipaddress.IPv6Address(cidr.split("/", 1)[0])
    return address.ipv4_mapped is None


def is_fips_cluster(helper: Helper) -> bool:
    """Return whether the cluster's install config has FIPS enabled."""
    config_map = helper.client.get("ConfigMap", "cluster-config-v1", "kube-system")
    install_config_yaml = (config_map.get("data") or {}).get("install-config", "")
    try:
        install_config: Any = yaml.safe_load(install_config_yaml)
    except yaml.YAMLError as err:
        raise ValueError(f"invalid install-config: {err}") from err
    if install_config is None:
        return False
    if not isinstance(install_config, dict):
        raise ValueError("invalid install-config: not a mapping")
    fips = install_config.get("fips")
    return fips if isinstance(fips, bool) else False


def _cluster_networks(helper: Helper) -> list[dict[str, Any]]:
    network_config = helper.client.get("Network", "cluster", "")
    return list((network_config.get("status") or {}).get("clusterNetwork") or [])


def has_ipv6_cluster_network(helper: Helper) -> bool:
    """Return whether any cluster network is IPv6."""
    return any(is_ipv6_cidr(net.get("cidr", "")) for net in _cluster_networks(helper))


def first_cluster_network_is_ipv6(helper: Helper) -> bool:
    """Return whether the first cluster network is IPv6."""
    networks = _cluster_networks(helper)
    return bool(networks) and is_ipv6_cidr(networks[0].get("cidr", ""))