import pytest

from operatorkit.helper import Client, Helper, NotFoundError
from operatorkit.networkattachment import (
    NETWORK_ATTACHMENT_ANNOT,
    NetworkStatus,
    create_networks_annotation,
    ensure_networks_annotation,
    get_json_path_from_config,
    get_nad_with_name,
    get_network_if_name,
    get_network_status_from_annotation,
    verify_network_status_from_annotation,
)

INTERNALAPI_CONFIG = """
{
  "cniVersion": "0.3.1",
  "name": "internalapi",
  "type": "macvlan",
  "master": "internalapi",
  "ipam": {
    "type": "whereabouts",
    "range": "172.17.0.0/24",
    "range_start": "172.17.0.30",
    "range_end": "172.17.0.70"
  }
}
"""

TENANT_CONFIG = """
{
  "cniVersion": "0.3.1",
  "name": "tenant",
  "type": "macvlan",
  "master": "tenant",
  "ipam": {
    "type": "whereabouts",
    "range": "172.19.0.0/24",
    "range_start": "172.19.0.30",
    "range_end": "172.19.0.70"
  }
}
"""

GATEWAY_CONFIG = """
{
  "cniVersion": "0.3.1",
  "name": "internalapi",
  "type": "macvlan",
  "master": "internalapi",
  "ipam": {
    "type": "whereabouts",
    "range": "172.17.0.0/24",
    "range_start": "172.17.0.30",
    "range_end": "172.17.0.70",
    "gateway": "172.17.0.1"
  }
}
"""


def _nad(name, namespace, config):
    return {
        "kind": "NetworkAttachmentDefinition",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {"config": config},
    }


@pytest.mark.parametrize(
    "networks, namespace, want",
    [
        ([], "foo", {NETWORK_ATTACHMENT_ANNOT: "[]"}),
        (
            ["one"],
            "foo",
            {NETWORK_ATTACHMENT_ANNOT: '[{"name":"one","namespace":"foo","interface":"one"}]'},
        ),
        (
            ["one", "two"],
            "foo",
            {
                NETWORK_ATTACHMENT_ANNOT: '[{"name":"one","namespace":"foo","interface":"one"},'
                '{"name":"two","namespace":"foo","interface":"two"}]'
            },
        ),
    ],
)
def test_create_networks_annotation(networks, namespace, want):
    assert create_networks_annotation(namespace, networks) == want


SDN_STATUS = (
    '[{\n    "name": "openshift-sdn",\n    "interface": "eth0",\n    "ips": [\n'
    '        "10.131.0.16"\n    ],\n    "default": true,\n    "dns": {}\n}]'
)
MULTI_STATUS = (
    '[{\n    "name": "openshift-sdn",\n    "interface": "eth0",\n    "ips": [\n'
    '        "10.130.0.16"\n    ],\n    "default": true,\n    "dns": {}\n},{\n'
    '    "name": "openstack/internalapi",\n    "interface": "net1",\n    "ips": [\n'
    '        "172.17.0.226"\n    ],\n    "mac": "a2:ef:bb:ae:65:45",\n    "dns": {}\n}]'
)


@pytest.mark.parametrize(
    "annotations, want",
    [
        ({}, []),
        (
            {
                "k8s.v1.cni.cncf.io/network-status": SDN_STATUS,
                "k8s.v1.cni.cncf.io/networks-status": SDN_STATUS,
            },
            [
                NetworkStatus(
                    name="openshift-sdn", interface="eth0", ips=["10.131.0.16"], default=True
                )
            ],
        ),
        (
            {
                "k8s.v1.cni.cncf.io/network-status": MULTI_STATUS,
                "k8s.v1.cni.cncf.io/networks": '[{"name":"internalapi","namespace":"openstack"}]',
                "k8s.v1.cni.cncf.io/networks-status": MULTI_STATUS,
            },
            [
                NetworkStatus(
                    name="openshift-sdn", interface="eth0", ips=["10.130.0.16"], default=True
                ),
                NetworkStatus(
                    name="openstack/internalapi",
                    interface="net1",
                    ips=["172.17.0.226"],
                    mac="a2:ef:bb:ae:65:45",
                    default=False,
                ),
            ],
        ),
    ],
)
def test_get_network_status_from_annotation(annotations, want):
    result = get_network_status_from_annotation(annotations)
    assert len(result) == len(want)
    assert result == want


def test_get_network_status_from_annotation_invalid_json():
    with pytest.raises(ValueError, match="failed to decode networks status"):
        get_network_status_from_annotation({"k8s.v1.cni.cncf.io/network-status": "[{"})


@pytest.mark.parametrize(
    "nad, want",
    [
        ("short", "short"),
        ("reallylongnadnamewithmorethan15chars", "reallylongnadna"),
    ],
)
def test_get_network_if_name(nad, want):
    assert get_network_if_name(nad) == want


@pytest.mark.parametrize(
    "nad_list, want",
    [
        ([], {NETWORK_ATTACHMENT_ANNOT: "[]"}),
        (
            [_nad("one", "foo", INTERNALAPI_CONFIG)],
            {NETWORK_ATTACHMENT_ANNOT: '[{"name":"one","namespace":"foo","interface":"one"}]'},
        ),
        (
            [_nad("one", "foo", INTERNALAPI_CONFIG), _nad("two", "foo", TENANT_CONFIG)],
            {
                NETWORK_ATTACHMENT_ANNOT: '[{"name":"one","namespace":"foo","interface":"one"},'
                '{"name":"two","namespace":"foo","interface":"two"}]'
            },
        ),
        (
            [_nad("one", "foo", GATEWAY_CONFIG)],
            {
                NETWORK_ATTACHMENT_ANNOT: '[{"name":"one","namespace":"foo","interface":"one",'
                '"default-route":["172.17.0.1"]}]'
            },
        ),
    ],
)
def test_ensure_networks_annotation(nad_list, want):
    assert ensure_networks_annotation(nad_list) == want


def test_ensure_networks_annotation_invalid_config():
    with pytest.raises(ValueError, match="failed to unmarshal JSON data"):
        ensure_networks_annotation([_nad("one", "foo", "{not json")])


@pytest.mark.parametrize(
    "nad, path, want",
    [
        ({}, ".ipam", ""),
        (_nad("one", "foo", INTERNALAPI_CONFIG), ".name", "internalapi"),
        (_nad("one", "foo", INTERNALAPI_CONFIG), ".ipam.range", "172.17.0.0/24"),
    ],
)
def test_get_json_path_from_config(nad, path, want):
    result = get_json_path_from_config(nad, path)
    assert len(result) == len(want)
    assert result == want


def test_get_json_path_from_config_missing_key():
    with pytest.raises(ValueError, match="is not found"):
        get_json_path_from_config(_nad("one", "foo", INTERNALAPI_CONFIG), ".ipam.gateway")


def test_get_json_path_from_config_invalid_json():
    with pytest.raises(ValueError, match="failed to unmarshal JSON data"):
        get_json_path_from_config(_nad("one", "foo", "{"), ".ipam")


OWNER = {
    "apiVersion": "test.openstack.org/v1beta1",
    "kind": "Owner",
    "metadata": {"name": "owner", "namespace": "openstack", "uid": "owner-uid"},
}


def test_get_nad_with_name_found_and_missing():
    client = Client([_nad("internalapi", "openstack", INTERNALAPI_CONFIG)])
    helper = Helper(OWNER, client)
    nad = get_nad_with_name(helper, "internalapi", "openstack")
    assert nad["spec"]["config"] == INTERNALAPI_CONFIG
    with pytest.raises(NotFoundError, match="Error getting network-attachment-definition"):
        get_nad_with_name(helper, "tenant", "openstack")


def _pod(name):
    return {
        "kind": "Pod",
        "metadata": {
            "name": name,
            "namespace": "openstack",
            "labels": {"service": "api"},
            "annotations": {"k8s.v1.cni.cncf.io/network-status": MULTI_STATUS},
        },
    }


def test_verify_network_status_ready():
    helper = Helper(OWNER, Client([_pod("p1")]))
    ready, status = verify_network_status_from_annotation(
        helper, ["internalapi"], {"service": "api"}, 1
    )
    assert ready is True
    assert status["openstack/internalapi"] == ["172.17.0.226"]


def test_verify_network_status_not_enough_ips():
    helper = Helper(OWNER, Client([_pod("p1")]))
    ready, _ = verify_network_status_from_annotation(
        helper, ["internalapi"], {"service": "api"}, 2
    )
    assert ready is False


def test_verify_network_status_missing_network():
    helper = Helper(OWNER, Client([_pod("p1")]))
    ready, _ = verify_network_status_from_annotation(helper, ["tenant"], {"service": "api"}, 0)
    assert ready is False


def test_verify_network_status_no_attachments():
    helper = Helper(OWNER, Client([_pod("p1")]))
    assert verify_network_status_from_annotation(helper, [], {"service": "api"}, 3) == (True, {})