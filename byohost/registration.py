"""Registering the local host as a ByoHost and requesting its client certificate."""

from __future__ import annotations

import ipaddress
import logging
import socket
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

import psutil
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from byohost.store import NotFoundError
from byohost.types import ByoHost, NetworkStatus, ObjectMeta

_log = logging.getLogger(__name__)

KEY_SIZE = 2048
EXPIRATION_SECONDS = 86400 * 365
BYOH_CSR_ORG = "byoh:hosts"
BYOH_CSR_CN_FORMAT = "byoh:host:{}"
BYOH_CSR_NAME_FORMAT = "byoh-csr-{}"

KUBE_API_SERVER_CLIENT_SIGNER_NAME = "kubernetes.io/kube-apiserver-client"
USAGE_CLIENT_AUTH = "client auth"

_CSR_KIND = "CertificateSigningRequest"
_PROBE_ADDRESS = ("192.0.2.1", 9)


@dataclass
class CertificateSigningRequest:
    """A cluster-scoped request for a signed client certificate."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    request: bytes = b""
    signer_name: str = ""
    usages: list[str] = field(default_factory=list)
    expiration_seconds: Optional[int] = None
    kind: str = _CSR_KIND
    api_version: str = "certificates.k8s.io/v1"


class ByohCSR:
    """Creates the certificate signing request for a host."""

    def __init__(self, client: Any, key_size: int = KEY_SIZE) -> None:
        self.client = client
        self.key_size = key_size

    def create_csr(self, hostname: str) -> Optional[rsa.RSAPrivateKey]:
        """Create a CSR for ``hostname`` unless one exists.

        Returns the new private key, or None when a request was already present.
        """
        try:
            self.client.get(_CSR_KIND, hostname)
            return None
        except NotFoundError:
            pass
        except Exception:
            _log.error("error getting csr %s", hostname, exc_info=True)
            raise
        private_key, csr = self._generate_csr(hostname)
        try:
            self.client.create(csr)
        except Exception:
            _log.error("error creating host csr %s", hostname, exc_info=True)
            raise
        return private_key

    def _generate_csr(
        self, hostname: str
    ) -> tuple[rsa.RSAPrivateKey, CertificateSigningRequest]:
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=self.key_size)
        subject = x509.Name(
            [
                x509.NameAttribute(NameOID.ORGANIZATION_NAME, BYOH_CSR_ORG),
                x509.NameAttribute(NameOID.COMMON_NAME, BYOH_CSR_CN_FORMAT.format(hostname)),
            ]
        )
        request = (
            x509.CertificateSigningRequestBuilder()
            .subject_name(subject)
            .sign(private_key, hashes.SHA256())
        )
        csr = CertificateSigningRequest(
            metadata=ObjectMeta(name=BYOH_CSR_NAME_FORMAT.format(hostname)),
            request=request.public_bytes(serialization.Encoding.PEM),
            signer_name=KUBE_API_SERVER_CLIENT_SIGNER_NAME,
            usages=[USAGE_CLIENT_AUTH],
            expiration_seconds=EXPIRATION_SECONDS,
        )
        return private_key, csr


def _default_route_ip() -> str:
    """Return the local address used for the default route; raises OSError."""
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.connect(_PROBE_ADDRESS)
        return sock.getsockname()[0]


def _normalize_ip(text: str) -> str:
    try:
        return str(ipaddress.ip_address(text))
    except ValueError:
        return text


def _cidr(ip: str, netmask: Optional[str]) -> str:
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return ip
    prefix = addr.max_prefixlen
    if netmask:
        try:
            prefix = bin(int(ipaddress.ip_address(netmask))).count("1")
        except ValueError:
            pass
    return f"{addr}/{prefix}"


def _format_mac(address: str) -> str:
    mac = address.lower().replace("-", ":")
    if not mac.replace(":", "").strip("0"):
        return ""
    return mac


class HostRegistrar:
    """Registers a host as available capacity and reports its network state."""

    def __init__(
        self,
        client: Any,
        discover_default_ip: Optional[Callable[[], str]] = None,
    ) -> None:
        self.client = client
        self.default_network_interface_name = ""
        self._discover_default_ip = discover_default_ip or _default_route_ip

    def register(
        self,
        host_name: str,
        namespace: str,
        host_labels: Optional[Mapping[str, str]] = None,
    ) -> ByoHost:
        """Create the ByoHost if missing, then refresh its network status."""
        _log.info("Registering ByoHost")
        try:
            byo_host = self.client.get("ByoHost", host_name, namespace)
        except NotFoundError:
            byo_host = ByoHost(
                metadata=ObjectMeta(
                    name=host_name,
                    namespace=namespace,
                    labels=dict(host_labels or {}),
                )
            )
            try:
                self.client.create(byo_host)
            except Exception:
                _log.error(
                    "error creating host %s in namespace %s", host_name, namespace,
                    exc_info=True,
                )
                raise
        except Exception:
            _log.error(
                "error getting host %s in namespace %s", host_name, namespace,
                exc_info=True,
            )
            raise
        self.update_network(byo_host)
        return byo_host

    def update_network(self, byo_host: ByoHost) -> None:
        """Store the current network interface status on ``byo_host``."""
        _log.info("Add Network Info")
        byo_host.status.network = self.get_network_status()
        self.client.update(byo_host)

    def get_network_status(self) -> list[NetworkStatus]:
        """Describe every network interface, marking the one on the default route."""
        network: list[NetworkStatus] = []
        try:
            default_ip = _normalize_ip(self._discover_default_ip())
        except OSError:
            return network
        try:
            addrs = psutil.net_if_addrs()
            stats = psutil.net_if_stats()
        except OSError:
            return network

        names = list(addrs) + [name for name in stats if name not in addrs]
        for name in names:
            stat = stats.get(name)
            status = NetworkStatus(
                connected=bool(stat is not None and stat.isup),
                network_interface_name=name,
            )
            for addr in addrs.get(name, []):
                if addr.family == psutil.AF_LINK:
                    status.mac_addr = _format_mac(addr.address)
                    continue
                if addr.family not in (socket.AF_INET, socket.AF_INET6):
                    continue
                ip = addr.address.split("%", 1)[0]
                if _normalize_ip(ip) == default_ip:
                    status.is_default = True
                    self.default_network_interface_name = name
                status.ip_addrs.append(_cidr(ip, addr.netmask))
            network.append(status)
        return network