import pytest

from operatorkit.helper import Client, Helper
from operatorkit.pod import (
    NoPodSubdomainError,
    format_label_selector,
    get_pod_fqdn_list,
    get_pod_list_with_label,
)

OWNER = {
    "apiVersion": "test.openstack.org/v1beta1",
    "kind": "Owner",
    "metadata": {"name": "owner", "namespace": "ns", "uid": "owner-uid"},
}


def _pod(name, namespace, labels, hostname="", subdomain=""):
    return {
        "kind": "Pod",
        "metadata": {"name": name, "namespace": namespace, "labels": labels},
        "spec": {"hostname": hostname, "subdomain": subdomain},
    }


def _helper(pods):
    return Helper(OWNER, Client(pods))


def test_format_label_selector_sorts_keys():
    assert format_label_selector({"b": "2", "a": "1"}) == "a=1,b=2"


def test_format_label_selector_empty():
    assert format_label_selector({}) == ""
    assert format_label_selector(None) == ""


def test_get_pod_list_with_label_filters_by_label_and_namespace():
    pods = [
        _pod("p1", "ns", {"service": "api"}),
        _pod("p2", "ns", {"service": "db"}),
        _pod("p3", "other", {"service": "api"}),
    ]
    result = get_pod_list_with_label(_helper(pods), "ns", {"service": "api"})
    assert [pod["metadata"]["name"] for pod in result] == ["p1"]


def test_get_pod_fqdn_list():
    hostname, subdomain = "api-0", "api-svc"
    pods = [_pod("p1", "ns", {"service": "api"}, hostname, subdomain)]
    result = get_pod_fqdn_list(_helper(pods), "ns", {"service": "api"})
    assert result == [f"{hostname}.{subdomain}"]


def test_get_pod_fqdn_list_no_match_is_empty():
    pods = [_pod("p1", "ns", {"service": "api"}, "h", "s")]
    assert get_pod_fqdn_list(_helper(pods), "ns", {"service": "none"}) == []


def test_get_pod_fqdn_list_missing_subdomain():
    pods = [_pod("p1", "ns", {"service": "api"}, "h", "")]
    with pytest.raises(NoPodSubdomainError):
        get_pod_fqdn_list(_helper(pods), "ns", {"service": "api"})


def test_get_pod_fqdn_list_missing_hostname():
    pods = [_pod("p1", "ns", {"service": "api"}, "", "s")]
    with pytest.raises(NoPodSubdomainError):
        get_pod_fqdn_list(_helper(pods), "ns", {"service": "api"})