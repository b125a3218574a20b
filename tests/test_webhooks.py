import json
from http import HTTPStatus

import pytest

from byohost.store import ObjectStore
from byohost.types import (
    ByoCluster,
    ByoClusterSpec,
    ByoHost,
    ObjectMeta,
    ObjectReference,
    to_dict,
)
from byohost.webhooks import (
    AdmissionRequest,
    ByoHostValidator,
    InvalidError,
    Operation,
    validate_create,
    validate_delete,
    validate_update,
)


def _cluster(name, tag=""):
    return ByoCluster(
        metadata=ObjectMeta(name=name, namespace="default"),
        spec=ByoClusterSpec(bundle_lookup_tag=tag),
    )


def test_create_rejected_when_bundle_lookup_tag_empty():
    cluster = _cluster("byocluster-create")
    with pytest.raises(InvalidError) as info:
        validate_create(cluster)
    assert str(info.value) == (
        'ByoCluster.infrastructure.cluster.x-k8s.io "byocluster-create" is invalid: '
        "<nil>: Internal error: cannot create ByoCluster without Spec.BundleLookupTag"
    )
    assert info.value.name == "byocluster-create"


def test_create_succeeds_with_bundle_lookup_tag():
    store = ObjectStore()
    cluster = _cluster("byocluster-create", "v0.1.0_alpha.2")
    assert validate_create(cluster) is None
    store.create(cluster)
    stored = store.get("ByoCluster", "byocluster-create", "default")
    assert stored.spec.bundle_lookup_tag == "v0.1.0_alpha.2"


def test_update_rejected_when_bundle_lookup_tag_empty():
    old = _cluster("byocluster-update", "v0.1.0_alpha.2")
    new = _cluster("byocluster-update", "")
    with pytest.raises(InvalidError) as info:
        validate_update(new, old)
    assert str(info.value) == (
        'ByoCluster.infrastructure.cluster.x-k8s.io "byocluster-update" is invalid: '
        "<nil>: Internal error: cannot update ByoCluster with empty Spec.BundleLookupTag"
    )


def test_update_with_new_bundle_lookup_tag():
    store = ObjectStore()
    cluster = _cluster("byocluster-update", "v0.1.0_alpha.2")
    validate_create(cluster)
    store.create(cluster)
    old = store.get("ByoCluster", "byocluster-update", "default")
    cluster.spec.bundle_lookup_tag = "new_tag"
    validate_update(cluster, old)
    store.update(cluster)
    updated = store.get("ByoCluster", "byocluster-update", "default")
    assert updated.spec.bundle_lookup_tag == "new_tag"


def test_delete_is_always_accepted():
    assert validate_delete(_cluster("anything")) is None


def _host(machine_ref=None):
    host = ByoHost(metadata=ObjectMeta(name="byohost-abcde", namespace="default"))
    host.status.machine_ref = machine_ref
    return host


def test_delete_byohost_without_machine_ref_allowed():
    request = AdmissionRequest(
        operation=Operation.DELETE, old_object=to_dict(_host())
    )
    response = ByoHostValidator().handle(request)
    assert response.allowed is True
    assert response.code == HTTPStatus.OK


def test_delete_byohost_with_machine_ref_denied():
    ref = ObjectReference(
        kind="ByoMachine",
        namespace="default",
        name="byomachine-abcde",
        api_version="infrastructure.cluster.x-k8s.io/v1beta1",
    )
    request = AdmissionRequest(
        operation=Operation.DELETE, old_object=json.dumps(to_dict(_host(ref))).encode()
    )
    response = ByoHostValidator().handle(request)
    assert response.allowed is False
    assert response.code == HTTPStatus.FORBIDDEN
    assert response.message == "cannot delete ByoHost when MachineRef is assigned"


def test_update_byohost_with_machine_ref_allowed():
    ref = ObjectReference(kind="ByoMachine", name="m")
    request = AdmissionRequest(operation=Operation.UPDATE, object=to_dict(_host(ref)))
    assert ByoHostValidator().handle(request).allowed is True


@pytest.mark.parametrize("raw", [None, b"", b"not json", {"kind": "ByoCluster"}])
def test_delete_with_undecodable_old_object_errors(raw):
    request = AdmissionRequest(operation=Operation.DELETE, old_object=raw)
    response = ByoHostValidator().handle(request)
    assert response.allowed is False
    assert response.code == HTTPStatus.BAD_REQUEST
    assert response.message