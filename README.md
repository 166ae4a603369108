# operatorkit

Building blocks for Kubernetes operators that reconcile OpenStack-style
services. Everything works on plain dictionaries shaped like Kubernetes
objects (`apiVersion`, `kind`, `metadata`, `spec`, `status`).

Cluster access goes through `operatorkit.helper.Client`, an in-memory object
store. It keys objects by kind, namespace and name, and it provides `get`,
`list`, `create`, `patch`, `patch_status` and `delete`. The reconcilers in this
package (`Route`, `Role`, `RoleBinding`, `Pvc`) and the lookups (pods, network
attachment definitions, cluster network and FIPS checks) all work against it.

## Installation

```
pip install operatorkit
```

To run the tests:

```
pip install "operatorkit[test]"
pytest
```

## Modules

| Module | Contents |
| --- | --- |
| `operatorkit.labels` | `get_group_label`, owner label keys (`<group>/uid`, `/namespace`, `/name`), `get_labels`, `get_single_label_selector`, `get_label_selector` |
| `operatorkit.netutil` | `sort_ips`: sorts IPv4 and IPv6 addresses by their 16-byte value. Strings that are not addresses come first and are returned as `<nil>` |
| `operatorkit.probes` | `set_probes(port, disable_non_tls_listeners, config)` returns `(liveness, readiness)` `Probe`s. A port outside 1..65535 raises `InvalidPortError` |
| `operatorkit.options` | `get_env_in_duration` and `set_manager_options`: fill a `ManagerOptions` from `LEASE_DURATION`, `RENEW_DEADLINE` and `RETRY_PERIOD`, given in seconds |
| `operatorkit.helper` | `Client`, `Helper` (`set_after`, `patch_instance`), `to_unstructured`, `create_merge_patch`, `create_or_patch`, `set_controller_reference`, `OperationResult`, and the errors `ApiError`, `NotFoundError` and `ConflictError` |
| `operatorkit.ownerref` | `check_owner_ref_exist`, `patch_owner_ref`, `ensure_owner_ref`: owner references that do not make the owner the controller |
| `operatorkit.pod` | `format_label_selector`, `get_pod_list_with_label`, `get_pod_fqdn_list` (raises `NoPodSubdomainError`) |
| `operatorkit.networkattachment` | `create_networks_annotation`, `ensure_networks_annotation` (turns `ipam.gateway` into `default-route`), `get_network_status_from_annotation`, `verify_network_status_from_annotation`, `get_json_path_from_config`, `get_network_if_name`, `get_nad_with_name` |
| `operatorkit.ocp` | `is_fips_cluster`, `has_ipv6_cluster_network`, `first_cluster_network_is_ipv6`, `is_ipv6_cidr` |
| `operatorkit.route` | `Route`, `OverrideSpec`, `Spec`, `TargetReference`, `EmbeddedLabelsAnnotations`, `GenericRouteDetails`, `generic_route`, `strategic_merge` |
| `operatorkit.rbac_resources` | `Role` and `RoleBinding` reconcilers |
| `operatorkit.pvc` | `Pvc` reconciler and `get_pvc_with_name` |

## Examples

```python
from operatorkit.labels import get_group_label, get_labels
from operatorkit.netutil import sort_ips
from operatorkit.probes import ProbeConfig, set_probes

pod = {"metadata": {"name": "podname", "namespace": "podnamespace",
                    "uid": "11111111-1111-1111-1111-111111111111"}}
get_labels(pod, get_group_label("foo"), {"customlabel": "value"})
# {'foo.openstack.org/uid': '11111111-...', 'foo.openstack.org/namespace': 'podnamespace',
#  'foo.openstack.org/name': 'podname', 'customlabel': 'value'}

sort_ips(["fd00:bbbb::2", "1.1.1.1"])   # ['1.1.1.1', 'fd00:bbbb::2']

liveness, readiness = set_probes(8080, True, ProbeConfig(liveness_path="/healthz"))
liveness.scheme                           # 'HTTPS'
```

```python
from operatorkit.networkattachment import create_networks_annotation, get_network_if_name

create_networks_annotation("openstack", ["internalapi"])
# {'k8s.v1.cni.cncf.io/networks':
#  '[{"name":"internalapi","namespace":"openstack","interface":"internalapi"}]'}

get_network_if_name("reallylongnadnamewithmorethan15chars")  # 'reallylongnadna'
```

Reconciling a route against the in-memory store:

```python
from datetime import timedelta

from operatorkit.helper import Client, Helper
from operatorkit.route import GenericRouteDetails, Route, generic_route

client = Client()
owner = {"apiVersion": "example.com/v1", "kind": "KeystoneAPI",
         "metadata": {"name": "keystone", "namespace": "openstack"}}
client.create(owner)            # assigns uid, resourceVersion, creationTimestamp
helper = Helper(owner, client)
helper.finalizer                # 'openstack.org/keystoneapi'

route = Route(
    generic_route(GenericRouteDetails(
        name="keystone", namespace="openstack",
        service_name="keystone", target_port_name="api",
        fqdn="keystone.example.com",
    )),
    timedelta(seconds=5),
)
route.create_or_patch(helper)   # None: done; a timedelta means "reconcile again after"
route.hostname                  # 'keystone.example.com'
```

`Helper.patch_instance(instance)` compares the instance with the state it had
when the `Helper` was built. It then sends a metadata patch and a status patch
for the parts that changed. A missing object is ignored. A `ConflictError` or
any other `ApiError` is raised.

## Limitations

- The package does not connect to a real Kubernetes API server. `Client` keeps
  objects in memory only, and nothing is persisted.
- There is no command-line tool. Nothing watches objects or runs a controller
  manager loop. `set_manager_options` only fills in a `ManagerOptions` value.