import pytest

from operatorkit.helper import Client, Helper
from operatorkit.ownerref import check_owner_ref_exist, ensure_owner_ref, patch_owner_ref

METADATA = {
    "name": "foo",
    "namespace": "bar",
    "ownerReferences": [
        {
            "apiVersion": "core.openstack.org/v1beta1",
            "blockOwnerDeletion": True,
            "controller": True,
            "kind": "OpenStackControlPlane",
            "name": "openstack-network-isolation",
            "uid": "11111111-1111-1111-1111-111111111111",
        }
    ],
}


def _owner(namespace="bar"):
    return {
        "apiVersion": "client.openstack.org/v1beta1",
        "kind": "OpenStackClient",
        "metadata": {"name": "client", "namespace": namespace, "uid": "owner-uid"},
    }


def _secret():
    return {"apiVersion": "v1", "kind": "Secret", "metadata": {"name": "s", "namespace": "bar"}}


@pytest.mark.parametrize(
    "uid, expected",
    [
        ("11111111-1111-1111-1111-111111111111", True),
        ("22222222-2222-2222-2222-222222222222", False),
    ],
)
def test_check_owner_ref_exist(uid, expected):
    assert check_owner_ref_exist(uid, METADATA["ownerReferences"]) is expected


def test_check_owner_ref_exist_empty():
    assert check_owner_ref_exist("x", None) is False


def test_patch_owner_ref_adds_reference():
    obj = _secret()
    patch = patch_owner_ref(_owner(), obj)
    expected_ref = {
        "apiVersion": "client.openstack.org/v1beta1",
        "kind": "OpenStackClient",
        "name": "client",
        "uid": "owner-uid",
    }
    assert patch == {"metadata": {"ownerReferences": [expected_ref]}}
    assert obj["metadata"]["ownerReferences"] == [expected_ref]


def test_patch_owner_ref_is_idempotent():
    obj = _secret()
    patch_owner_ref(_owner(), obj)
    assert patch_owner_ref(_owner(), obj) == {}
    assert len(obj["metadata"]["ownerReferences"]) == 1


def test_patch_owner_ref_keeps_existing_controller():
    obj = _secret()
    obj["metadata"]["ownerReferences"] = list(METADATA["ownerReferences"])
    patch_owner_ref(_owner(), obj)
    uids = [ref["uid"] for ref in obj["metadata"]["ownerReferences"]]
    assert uids == ["11111111-1111-1111-1111-111111111111", "owner-uid"]


def test_patch_owner_ref_cross_namespace():
    with pytest.raises(ValueError, match="cross-namespace"):
        patch_owner_ref(_owner(namespace="other"), _secret())


def test_ensure_owner_ref_persists():
    client = Client([_secret()])
    helper = Helper(_owner(), client)
    obj = client.get("Secret", "s", "bar")
    ensure_owner_ref(helper, _owner(), obj)
    stored = client.get("Secret", "s", "bar")
    assert check_owner_ref_exist("owner-uid", stored["metadata"]["ownerReferences"])


def test_ensure_owner_ref_missing_object_is_ignored():
    client = Client()
    helper = Helper(_owner(), client)
    obj = _secret()
    ensure_owner_ref(helper, _owner(), obj)
    assert check_owner_ref_exist("owner-uid", obj["metadata"]["ownerReferences"])
    assert client.list("Secret") == []