# byohost

This package provides building blocks for managing "bring your own host" machines in a cluster:

- the infrastructure resource types and their JSON form;
- status conditions;
- an in-memory object store;
- admission checks;
- host registration, covering certificate signing requests and network discovery;
- reconcilers;
- feature gates;
- version information;
- a few small utilities.

## Install

```
pip install byohost
```

To also install the test requirements:

```
pip install "byohost[test]"
```

## Modules

### `byohost.types`

This module holds the resource dataclasses:

- `ByoCluster`, `ByoHost` and `ByoMachine`;
- `ByoMachineTemplate` and `K8sInstallerConfig`;
- `Cluster`.

It also holds their parts:

- `ObjectMeta`, `ObjectReference` and `OwnerReference`;
- `APIEndpoint`, `HostInfo` and `NetworkStatus`;
- the `*Spec` and `*Status` classes.

`ObjectMeta` has four methods:

- `add_finalizer` and `remove_finalizer` return whether anything changed.
- `has_finalizer`.
- `is_deleting`, which is true once a deletion timestamp is set.

The module has these functions:

- `to_dict(obj)` gives the JSON form, with camelCase keys. Empty optional fields are left out, and timestamps are written as RFC 3339 in UTC.
- `from_dict(kind, data)` reads the JSON form back for any of the resource kinds above. It raises `ValueError` for an unknown kind or for a mismatched `kind` field.
- `is_paused(cluster, obj)` is true when the cluster is paused or when `obj` carries the paused annotation.

The module also defines the finalizer, label and annotation names as constants, for example `CLUSTER_FINALIZER`, `MACHINE_FINALIZER`, `CLUSTER_LABEL_NAME` and `PAUSED_ANNOTATION`.

### `byohost.conditions`

This module has `Condition`, `ConditionStatus` and `ConditionSeverity`. It also has these helpers:

- `get_condition`.
- `set_condition`. It returns a new list sorted with `Ready` first. The transition time is kept when the state does not change.
- `mark_true` and `mark_false`.

The condition types and reasons used on hosts and machines are defined here as constants, for example `BYO_HOST_READY` and `BYO_HOSTS_UNAVAILABLE_REASON`.

### `byohost.store`

`GroupVersion` (with `with_kind`) and the constants `GROUP_VERSION` and `CLUSTER_GROUP_VERSION`.

`ObjectStore` keeps objects in memory, keyed by kind, namespace and name, and always hands out copies. It has these methods:

- `create` fills in `uid`, `resource_version` and `creation_timestamp`. It builds a name from `generate_name` when no name is given.
- `update`.
- `get`.
- `list`, which can filter by namespace and labels.
- `delete`. When the object still has finalizers, it only sets a deletion timestamp. An update that clears the finalizers of an object being deleted removes it.

Missing objects raise `NotFoundError` and duplicates raise `AlreadyExistsError`. Both give messages such as `byoclusters.infrastructure.cluster.x-k8s.io "name" not found`.

### `byohost.webhooks`

- `validate_create(byo_cluster)` and `validate_update(byo_cluster, old)` raise `InvalidError` when `spec.bundle_lookup_tag` is empty.
- `validate_delete(byo_cluster)` accepts every cluster.
- `ByoHostValidator().handle(AdmissionRequest(...))` returns an `AdmissionResponse`:
  - For a `DELETE` of a host whose `status.machine_ref` is set, the response is denied with "cannot delete ByoHost when MachineRef is assigned".
  - If the old object cannot be decoded, the response is an error with status 400.
  - Every other request is allowed.

### `byohost.registration`

`ByohCSR(client).create_csr(hostname)` works as follows:

- It generates a 2048-bit RSA key and a PEM certificate request. The common name is `byoh:host:<hostname>` and the organisation is `byoh:hosts`.
- It stores the request as a `CertificateSigningRequest` named `byoh-csr-<hostname>`, with the kube-apiserver client signer, the `client auth` usage and a one-year expiry.
- It returns the private key. When the client already holds a `CertificateSigningRequest` named after the host, it creates nothing and returns `None`.

`HostRegistrar(client).register(host_name, namespace, host_labels)` creates the `ByoHost` if it does not exist. It then fills `status.network` from the local interfaces, which it reads through psutil, and writes the host back with `client.update`. The interface that carries the default-route address is flagged with `is_default`, and its name is kept in `default_network_interface_name`. `get_network_status()` returns the same interface list on its own.

### `byohost.controllers`

`ByoClusterReconciler(client).reconcile(ReconcileRequest(name, namespace))` returns a `ReconcileResult` and behaves as follows:

- A missing ByoCluster, a cluster without an owning `Cluster`, or a paused cluster returns an empty result. An owner reference to a `Cluster` that does not exist raises `LookupError`.
- Otherwise it adds `CLUSTER_FINALIZER`, sets the control-plane port to 6443 when it is 0, marks the status ready and writes the cluster back.
- On deletion it waits, with a 10-second requeue, while ByoMachines labelled with the cluster's name remain. After that it removes the finalizer.

The other contents of the module:

- `ByoHostReconciler` and `ByoMachineTemplateReconciler` accept requests and do nothing.
- `new_byo_machine_scope(...)` builds a `ByoMachineScope`. It raises `ValueError` when the client, cluster, machine, ByoMachine or ByoCluster is missing.
- `get_byo_machines_in_cluster(client, namespace, cluster_name)` lists the ByoMachines in a namespace that are labelled with the cluster's name.

### `byohost.feature`

`FeatureGate` has these methods:

- `add`.
- `enabled`.
- `set_from_map`.
- `set`, which parses `"Name=true,Other=false"`.
- `known_features`.

Errors raise `FeatureGateError`. `default_gates()` returns a gate holding `SecureAccess`, which is alpha and off by default.

### `byohost.version`

`get()` returns an `Info` holding the build fields and the running Python version, implementation and platform. `Info.to_dict()` leaves out empty fields.

### `byohost.utils`

- `gzip_data` and `gunzip_data`. `gunzip_data` raises `ValueError` for bad input.
- `remove_glob(pattern)` deletes every file or directory that matches.

## Example

```python
from byohost.controllers import ByoClusterReconciler, ReconcileRequest
from byohost.store import ObjectStore
from byohost.types import ByoCluster, ByoClusterSpec, Cluster, ObjectMeta, OwnerReference
from byohost.webhooks import validate_create

store = ObjectStore()
store.create(Cluster(metadata=ObjectMeta(name="demo", namespace="default")))

byo_cluster = ByoCluster(
    metadata=ObjectMeta(
        name="demo",
        namespace="default",
        owner_references=[
            OwnerReference(api_version="cluster.x-k8s.io/v1beta1", kind="Cluster", name="demo")
        ],
    ),
    spec=ByoClusterSpec(bundle_lookup_tag="v0.1.0_alpha.2"),
)
validate_create(byo_cluster)
store.create(byo_cluster)

ByoClusterReconciler(store).reconcile(ReconcileRequest("demo", "default"))
reconciled = store.get("ByoCluster", "demo", "default")
assert reconciled.status.ready
assert reconciled.spec.control_plane_endpoint.port == 6443
```

## What this package does not do

- It has no command-line program and no long-running manager.
- It does not serve admission requests over HTTP. The webhook module only decides on requests passed to it.
- It does not talk to a real API server. The reconcilers and registration work against any client with the `ObjectStore` methods, and `ObjectStore` keeps everything in memory.
- There is no reconciler for `ByoMachine` objects: nothing claims hosts for machines, sets provider IDs or marks hosts for cleanup.