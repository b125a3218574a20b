import socket
from types import SimpleNamespace

import psutil
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from byohost.registration import (
    BYOH_CSR_CN_FORMAT,
    BYOH_CSR_NAME_FORMAT,
    EXPIRATION_SECONDS,
    KUBE_API_SERVER_CLIENT_SIGNER_NAME,
    USAGE_CLIENT_AUTH,
    ByohCSR,
    CertificateSigningRequest,
    HostRegistrar,
)
from byohost.store import ObjectStore
from byohost.types import NetworkStatus, ObjectMeta

HOST_NAME = "test-host"


class _BrokenClient:
    def get(self, kind, name, namespace=""):
        raise RuntimeError("connection refused")


def _org(csr):
    return csr.subject.get_attributes_for_oid(NameOID.ORGANIZATION_NAME)[0].value


def _cn(csr):
    return csr.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value


def test_create_csr_when_none_exists():
    store = ObjectStore()
    key = ByohCSR(store).create_csr(HOST_NAME)

    stored = store.get("CertificateSigningRequest", BYOH_CSR_NAME_FORMAT.format(HOST_NAME))
    assert stored.signer_name == KUBE_API_SERVER_CLIENT_SIGNER_NAME
    assert stored.usages == [USAGE_CLIENT_AUTH]
    assert stored.expiration_seconds == EXPIRATION_SECONDS

    csr = x509.load_pem_x509_csr(stored.request)
    assert csr.is_signature_valid
    assert _cn(csr) == BYOH_CSR_CN_FORMAT.format(HOST_NAME)
    assert _org(csr) == "byoh:hosts"
    assert key.public_key().public_numbers() == csr.public_key().public_numbers()


def test_create_csr_does_not_create_when_one_exists():
    store = ObjectStore()
    key = rsa.generate_private_key(public_exponent=65537, key_size=1024)
    request = (
        x509.CertificateSigningRequestBuilder()
        .subject_name(
            x509.Name(
                [
                    x509.NameAttribute(NameOID.ORGANIZATION_NAME, "test-org"),
                    x509.NameAttribute(NameOID.COMMON_NAME, HOST_NAME),
                ]
            )
        )
        .sign(key, hashes.SHA256())
    )
    store.create(
        CertificateSigningRequest(
            metadata=ObjectMeta(name=HOST_NAME),
            request=request.public_bytes(serialization.Encoding.PEM),
        )
    )

    assert ByohCSR(store).create_csr(HOST_NAME) is None

    items = store.list("CertificateSigningRequest")
    assert len(items) == 1
    assert _org(x509.load_pem_x509_csr(items[0].request)) == "test-org"


def test_create_csr_propagates_client_errors():
    with pytest.raises(RuntimeError, match="connection refused"):
        ByohCSR(_BrokenClient()).create_csr(HOST_NAME)


@pytest.fixture
def interfaces(monkeypatch):
    addrs = {
        "eth0": [
            SimpleNamespace(family=psutil.AF_LINK, address="02:00:00:00:00:01", netmask=None),
            SimpleNamespace(family=socket.AF_INET, address="10.0.0.5", netmask="255.255.255.0"),
            SimpleNamespace(
                family=socket.AF_INET6, address="fe80::1%eth0", netmask="ffff:ffff:ffff:ffff::"
            ),
        ],
        "lo": [
            SimpleNamespace(family=psutil.AF_LINK, address="00:00:00:00:00:00", netmask=None),
            SimpleNamespace(family=socket.AF_INET, address="127.0.0.1", netmask="255.0.0.0"),
        ],
        "wlan0": [
            SimpleNamespace(family=psutil.AF_LINK, address="02-00-00-00-00-02", netmask=None),
        ],
    }
    stats = {
        "eth0": SimpleNamespace(isup=True),
        "lo": SimpleNamespace(isup=True),
        "wlan0": SimpleNamespace(isup=False),
    }
    monkeypatch.setattr(psutil, "net_if_addrs", lambda: addrs)
    monkeypatch.setattr(psutil, "net_if_stats", lambda: stats)


EXPECTED_NETWORK = [
    NetworkStatus(
        connected=True,
        ip_addrs=["10.0.0.5/24", "fe80::1/64"],
        mac_addr="02:00:00:00:00:01",
        network_interface_name="eth0",
        is_default=True,
    ),
    NetworkStatus(
        connected=True,
        ip_addrs=["127.0.0.1/8"],
        mac_addr="",
        network_interface_name="lo",
        is_default=False,
    ),
    NetworkStatus(
        connected=False,
        ip_addrs=[],
        mac_addr="02:00:00:00:00:02",
        network_interface_name="wlan0",
        is_default=False,
    ),
]


def test_get_network_status(interfaces):
    registrar = HostRegistrar(ObjectStore(), discover_default_ip=lambda: "10.0.0.5")
    assert registrar.get_network_status() == EXPECTED_NETWORK
    assert registrar.default_network_interface_name == "eth0"


def test_get_network_status_without_default_route(interfaces):
    def fail():
        raise OSError("network is unreachable")

    registrar = HostRegistrar(ObjectStore(), discover_default_ip=fail)
    assert registrar.get_network_status() == []
    assert registrar.default_network_interface_name == ""


def test_register_creates_host_with_labels_and_network(interfaces):
    store = ObjectStore()
    registrar = HostRegistrar(store, discover_default_ip=lambda: "10.0.0.5")
    registrar.register(HOST_NAME, "default", {"site": "lab"})

    stored = store.get("ByoHost", HOST_NAME, "default")
    assert stored.metadata.labels == {"site": "lab"}
    assert stored.api_version == "infrastructure.cluster.x-k8s.io/v1beta1"
    assert stored.status.network == EXPECTED_NETWORK


def test_register_again_keeps_existing_host(interfaces):
    store = ObjectStore()
    registrar = HostRegistrar(store, discover_default_ip=lambda: "10.0.0.5")
    registrar.register(HOST_NAME, "default", {"site": "lab"})
    first_uid = store.get("ByoHost", HOST_NAME, "default").metadata.uid

    registrar.register(HOST_NAME, "default", {"site": "other"})

    hosts = store.list("ByoHost", "default")
    assert len(hosts) == 1
    assert hosts[0].metadata.uid == first_uid
    assert hosts[0].metadata.labels == {"site": "lab"}


def test_register_propagates_client_errors():
    registrar = HostRegistrar(_BrokenClient(), discover_default_ip=lambda: "10.0.0.5")
    with pytest.raises(RuntimeError, match="connection refused"):
        registrar.register(HOST_NAME, "default", {})