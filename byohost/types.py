"""Resource types of the infrastructure API group and their JSON form."""

import dataclasses
import enum
import types as _pytypes
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Union, get_args, get_origin

from byohost.conditions import Condition
from byohost.store import CLUSTER_GROUP_VERSION, GROUP_VERSION

API_VERSION = str(GROUP_VERSION)
CLUSTER_API_VERSION = str(CLUSTER_GROUP_VERSION)

CLUSTER_FINALIZER = "byocluster.infrastructure.cluster.x-k8s.io"
MACHINE_FINALIZER = "byomachine.infrastructure.cluster.x-k8s.io"

HOST_CLEANUP_ANNOTATION = "byoh.infrastructure.cluster.x-k8s.io/unregistering"
END_POINT_IP_ANNOTATION = "byoh.infrastructure.cluster.x-k8s.io/endpointip"
K8S_VERSION_ANNOTATION = "byoh.infrastructure.cluster.x-k8s.io/k8sversion"
ATTACHED_BYO_MACHINE_LABEL = "byoh.infrastructure.cluster.x-k8s.io/byomachine-name"
BUNDLE_LOOKUP_BASE_REGISTRY_ANNOTATION = "byoh.infrastructure.cluster.x-k8s.io/bundle-registry"
BUNDLE_LOOKUP_TAG_ANNOTATION = "byoh.infrastructure.cluster.x-k8s.io/bundle-tag"

CLUSTER_LABEL_NAME = "cluster.x-k8s.io/cluster-name"
PAUSED_ANNOTATION = "cluster.x-k8s.io/paused"

# JSON keys of the object references that point at bootstrap and installation data.
_BOOTSTRAP_REF_KEY = "bootstrapSecret"
_INSTALLATION_REF_KEY = "installationSecret"

_OMIT_NIL = "nil"
_MISSING = object()


def _f(name: str, default: Any = None, *, factory: Any = None, omit: Any = True) -> Any:
    """Declare a field with its JSON name (dotted for nesting) and omission rule."""
    meta = {"json": name, "omit": omit}
    if factory is not None:
        return field(default_factory=factory, metadata=meta)
    return field(default=default, metadata=meta)


@dataclass
class OwnerReference:
    api_version: str = _f("apiVersion", "", omit=False)
    kind: str = _f("kind", "", omit=False)
    name: str = _f("name", "", omit=False)
    uid: str = _f("uid", "", omit=False)
    controller: Optional[bool] = _f("controller", omit=_OMIT_NIL)
    block_owner_deletion: Optional[bool] = _f("blockOwnerDeletion", omit=_OMIT_NIL)


@dataclass
class ObjectMeta:
    """Identity and bookkeeping shared by every stored object."""

    name: str = _f("name", "")
    generate_name: str = _f("generateName", "")
    namespace: str = _f("namespace", "")
    uid: str = _f("uid", "")
    resource_version: str = _f("resourceVersion", "")
    creation_timestamp: Optional[datetime] = _f("creationTimestamp")
    deletion_timestamp: Optional[datetime] = _f("deletionTimestamp")
    labels: dict[str, str] = _f("labels", factory=dict)
    annotations: dict[str, str] = _f("annotations", factory=dict)
    owner_references: list[OwnerReference] = _f("ownerReferences", factory=list)
    finalizers: list[str] = _f("finalizers", factory=list)

    def add_finalizer(self, finalizer: str) -> bool:
        """Add ``finalizer`` unless present; return whether it was added."""
        if finalizer in self.finalizers:
            return False
        self.finalizers.append(finalizer)
        return True

    def remove_finalizer(self, finalizer: str) -> bool:
        """Remove every occurrence of ``finalizer``; return whether any was removed."""
        kept = [f for f in self.finalizers if f != finalizer]
        removed = len(kept) != len(self.finalizers)
        self.finalizers = kept
        return removed

    def has_finalizer(self, finalizer: str) -> bool:
        return finalizer in self.finalizers

    def is_deleting(self) -> bool:
        return self.deletion_timestamp is not None


@dataclass
class ObjectReference:
    kind: str = _f("kind", "")
    namespace: str = _f("namespace", "")
    name: str = _f("name", "")
    uid: str = _f("uid", "")
    api_version: str = _f("apiVersion", "")
    resource_version: str = _f("resourceVersion", "")
    field_path: str = _f("fieldPath", "")


@dataclass
class Cluster:
    """The parts of a Cluster API cluster that the infrastructure side reads."""

    metadata: ObjectMeta = _f("metadata", factory=ObjectMeta)
    paused: bool = _f("spec.paused", False)
    infrastructure_ref: Optional[ObjectReference] = _f("spec.infrastructureRef")
    infrastructure_ready: bool = _f("status.infrastructureReady", False, omit=False)
    kind: str = _f("kind", "Cluster")
    api_version: str = _f("apiVersion", CLUSTER_API_VERSION)


@dataclass
class APIEndpoint:
    host: str = _f("host", "", omit=False)
    port: int = _f("port", 0, omit=False)


@dataclass
class ByoClusterSpec:
    control_plane_endpoint: APIEndpoint = _f("controlPlaneEndpoint", factory=APIEndpoint)
    bundle_lookup_base_registry: str = _f("bundleLookupBaseRegistry", "")
    bundle_lookup_tag: str = _f("bundleLookupTag", "")


@dataclass
class ByoClusterStatus:
    ready: bool = _f("ready", False)
    conditions: list[Condition] = _f("conditions", factory=list)
    failure_domains: dict[str, dict[str, Any]] = _f("failureDomains", factory=dict)


@dataclass
class ByoCluster:
    metadata: ObjectMeta = _f("metadata", factory=ObjectMeta)
    spec: ByoClusterSpec = _f("spec", factory=ByoClusterSpec)
    status: ByoClusterStatus = _f("status", factory=ByoClusterStatus)
    kind: str = _f("kind", "ByoCluster")
    api_version: str = _f("apiVersion", API_VERSION)


@dataclass
class HostInfo:
    os_name: str = _f("osname", "")
    os_image: str = _f("osimage", "")
    architecture: str = _f("architecture", "")


@dataclass
class ByoHostSpec:
    bootstrap_secret: Optional[ObjectReference] = _f(_BOOTSTRAP_REF_KEY)
    installation_secret: Optional[ObjectReference] = _f(_INSTALLATION_REF_KEY)


@dataclass
class NetworkStatus:
    connected: bool = _f("connected", False)
    ip_addrs: list[str] = _f("ipAddrs", factory=list)
    mac_addr: str = _f("macAddr", "", omit=False)
    network_interface_name: str = _f("networkInterfaceName", "")
    is_default: bool = _f("isDefault", False)


@dataclass
class ByoHostStatus:
    machine_ref: Optional[ObjectReference] = _f("machineRef")
    conditions: list[Condition] = _f("conditions", factory=list)
    host_details: HostInfo = _f("hostinfo", factory=HostInfo)
    network: list[NetworkStatus] = _f("network", factory=list)


@dataclass
class ByoHost:
    metadata: ObjectMeta = _f("metadata", factory=ObjectMeta)
    spec: ByoHostSpec = _f("spec", factory=ByoHostSpec)
    status: ByoHostStatus = _f("status", factory=ByoHostStatus)
    kind: str = _f("kind", "ByoHost")
    api_version: str = _f("apiVersion", API_VERSION)


@dataclass
class ByoMachineSpec:
    """Desired state of a machine; ``selector`` holds the labels a host must carry."""

    selector: Optional[dict[str, str]] = _f("selector.matchLabels")
    provider_id: str = _f("providerID", "")
    installer_ref: Optional[ObjectReference] = _f("installerRef")


@dataclass
class ByoMachineStatus:
    host_info: HostInfo = _f("hostinfo", factory=HostInfo)
    ready: bool = _f("ready", False, omit=False)
    conditions: list[Condition] = _f("conditions", factory=list)


@dataclass
class ByoMachine:
    metadata: ObjectMeta = _f("metadata", factory=ObjectMeta)
    spec: ByoMachineSpec = _f("spec", factory=ByoMachineSpec)
    status: ByoMachineStatus = _f("status", factory=ByoMachineStatus)
    kind: str = _f("kind", "ByoMachine")
    api_version: str = _f("apiVersion", API_VERSION)


@dataclass
class ByoMachineTemplateResource:
    spec: ByoMachineSpec = _f("spec", factory=ByoMachineSpec, omit=False)


@dataclass
class ByoMachineTemplateSpec:
    template: ByoMachineTemplateResource = _f(
        "template", factory=ByoMachineTemplateResource, omit=False
    )


@dataclass
class ByoMachineTemplate:
    metadata: ObjectMeta = _f("metadata", factory=ObjectMeta)
    spec: ByoMachineTemplateSpec = _f("spec", factory=ByoMachineTemplateSpec)
    kind: str = _f("kind", "ByoMachineTemplate")
    api_version: str = _f("apiVersion", API_VERSION)


@dataclass
class K8sInstallerConfigSpec:
    bundle_repo: str = _f("bundleRepo", "", omit=False)
    bundle_type: str = _f("bundleType", "", omit=False)


@dataclass
class K8sInstallerConfigStatus:
    ready: bool = _f("ready", False)
    installation_secret: Optional[ObjectReference] = _f(_INSTALLATION_REF_KEY)


@dataclass
class K8sInstallerConfig:
    metadata: ObjectMeta = _f("metadata", factory=ObjectMeta)
    spec: K8sInstallerConfigSpec = _f("spec", factory=K8sInstallerConfigSpec)
    status: K8sInstallerConfigStatus = _f("status", factory=K8sInstallerConfigStatus)
    kind: str = _f("kind", "K8sInstallerConfig")
    api_version: str = _f("apiVersion", API_VERSION)


_KINDS: dict[str, type] = {
    "ByoCluster": ByoCluster,
    "ByoHost": ByoHost,
    "ByoMachine": ByoMachine,
    "ByoMachineTemplate": ByoMachineTemplate,
    "K8sInstallerConfig": K8sInstallerConfig,
    "Cluster": Cluster,
}


def is_paused(cluster: Optional[Cluster], obj: Any) -> bool:
    """True when the cluster is paused or ``obj`` carries the paused annotation."""
    if cluster is not None and cluster.paused:
        return True
    return PAUSED_ANNOTATION in (obj.metadata.annotations or {})


# --- JSON encoding -------------------------------------------------------


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _json_path(f: dataclasses.Field) -> list[str]:
    return f.metadata.get("json", _camel(f.name)).split(".")


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, dict, tuple)):
        return len(value) == 0
    if isinstance(value, bool):
        return not value
    if isinstance(value, (int, float)):
        return value == 0
    return False


def _skip(f: dataclasses.Field, value: Any) -> bool:
    omit = f.metadata.get("omit", True)
    if omit == _OMIT_NIL:
        return value is None
    return bool(omit) and _is_empty(value)


def _format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _encode(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        out: dict[str, Any] = {}
        for f in fields(value):
            item = getattr(value, f.name)
            if _skip(f, item):
                continue
            *parents, leaf = _json_path(f)
            target = out
            for key in parents:
                target = target.setdefault(key, {})
            target[leaf] = _encode(item)
        return out
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return _format_time(value)
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    return value


def to_dict(obj: Any) -> dict[str, Any]:
    """Return the JSON-ready form of a resource or any part of one."""
    if not dataclasses.is_dataclass(obj) or isinstance(obj, type):
        raise TypeError(f"cannot encode {type(obj).__name__}")
    return _encode(obj)


# --- JSON decoding -------------------------------------------------------


def _lookup(data: Mapping[str, Any], path: list[str]) -> Any:
    current: Any = data
    for key in path:
        if not isinstance(current, Mapping) or key not in current:
            return _MISSING
        current = current[key]
    return current


def _decode_dataclass(cls: type, data: Any) -> Any:
    if not isinstance(data, Mapping):
        raise ValueError(f"expected an object for {cls.__name__}, got {type(data).__name__}")
    kwargs = {}
    for f in fields(cls):
        if not f.init:
            continue
        raw = _lookup(data, _json_path(f))
        if raw is _MISSING:
            continue
        decoded = _decode(f.type, raw)
        if (
            decoded is None
            and f.default is dataclasses.MISSING
            and f.default_factory is not dataclasses.MISSING
        ):
            continue
        kwargs[f.name] = decoded
    try:
        return cls(**kwargs)
    except TypeError as exc:
        raise ValueError(f"invalid {cls.__name__}: {exc}") from exc


def _decode(tp: Any, value: Any) -> Any:
    if value is None:
        return None
    origin = get_origin(tp)
    args = get_args(tp)
    if origin is Union or origin is _pytypes.UnionType:
        inner = [a for a in args if a is not type(None)]
        return _decode(inner[0], value)
    if origin is list:
        if not isinstance(value, list):
            raise ValueError(f"expected a list, got {type(value).__name__}")
        return [_decode(args[0], v) for v in value]
    if origin is dict:
        if not isinstance(value, Mapping):
            raise ValueError(f"expected an object, got {type(value).__name__}")
        return {str(k): _decode(args[1], v) for k, v in value.items()}
    if dataclasses.is_dataclass(tp):
        return _decode_dataclass(tp, value)
    if tp is datetime:
        return _parse_time(value)
    if isinstance(tp, type) and issubclass(tp, enum.Enum):
        return tp(value)
    if tp is bool:
        return bool(value)
    if tp is int:
        return int(value)
    if tp is str:
        return str(value)
    return value


def from_dict(kind: str, data: Mapping[str, Any]) -> Any:
    """Build a resource of ``kind`` from its JSON form."""
    cls = _KINDS.get(kind)
    if cls is None:
        raise ValueError(f"unknown kind {kind!r}")
    declared = data.get("kind") if isinstance(data, Mapping) else None
    if declared and declared != kind:
        raise ValueError(f"object of kind {declared!r} cannot be read as {kind!r}")
    return _decode_dataclass(cls, data)