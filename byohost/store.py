"""API group identity and an in-memory object store with API-server semantics.

Stored objects expose ``kind`` and a ``metadata`` object with ``name``,
``namespace`` and, where present, ``generate_name``, ``labels``,
``finalizers``, ``uid``, ``resource_version``, ``creation_timestamp`` and
``deletion_timestamp``.
"""

from __future__ import annotations

import copy
import itertools
import secrets
import string
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class GroupVersionKind:
    group: str
    version: str
    kind: str


@dataclass(frozen=True)
class GroupVersion:
    group: str
    version: str

    def with_kind(self, kind: str) -> GroupVersionKind:
        return GroupVersionKind(self.group, self.version, kind)

    def __str__(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version


GROUP_VERSION = GroupVersion("infrastructure.cluster.x-k8s.io", "v1beta1")
CLUSTER_GROUP_VERSION = GroupVersion("cluster.x-k8s.io", "v1beta1")

KNOWN_KINDS: dict[str, GroupVersion] = {
    "ByoCluster": GROUP_VERSION,
    "ByoHost": GROUP_VERSION,
    "ByoMachine": GROUP_VERSION,
    "ByoMachineTemplate": GROUP_VERSION,
    "K8sInstallerConfig": GROUP_VERSION,
    "Cluster": CLUSTER_GROUP_VERSION,
    "Machine": CLUSTER_GROUP_VERSION,
    "CertificateSigningRequest": GroupVersion("certificates.k8s.io", "v1"),
    "Node": GroupVersion("", "v1"),
}

_NAME_SUFFIX_CHARS = string.ascii_lowercase + string.digits


class NotFoundError(LookupError):
    def __init__(self, resource: str, name: str) -> None:
        super().__init__(f'{resource} "{name}" not found')
        self.resource = resource
        self.name = name


class AlreadyExistsError(ValueError):
    def __init__(self, resource: str, name: str) -> None:
        super().__init__(f'{resource} "{name}" already exists')
        self.resource = resource
        self.name = name


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


class ObjectStore:
    """Keeps objects by kind, namespace and name, handing out copies."""

    def __init__(self, kinds: Optional[Mapping[str, GroupVersion]] = None) -> None:
        self._kinds = dict(KNOWN_KINDS if kinds is None else kinds)
        self._objects: dict[tuple[str, str, str], Any] = {}
        self._versions = itertools.count(1)

    def _resource(self, kind: str) -> str:
        plural = kind.lower() + "s"
        gv = self._kinds.get(kind)
        return f"{plural}.{gv.group}" if gv is not None and gv.group else plural

    @staticmethod
    def _key(obj: Any) -> tuple[str, str, str]:
        return (obj.kind, obj.metadata.namespace or "", obj.metadata.name)

    def _bump(self, obj: Any) -> None:
        if hasattr(obj.metadata, "resource_version"):
            obj.metadata.resource_version = str(next(self._versions))

    def get(self, kind: str, name: str, namespace: str = "") -> Any:
        """Return a copy of the stored object."""
        try:
            return copy.deepcopy(self._objects[(kind, namespace or "", name)])
        except KeyError:
            raise NotFoundError(self._resource(kind), name) from None

    def create(self, obj: Any) -> None:
        """Store a new object, filling in its server-assigned metadata."""
        meta = obj.metadata
        if not meta.name:
            prefix = getattr(meta, "generate_name", "")
            if not prefix:
                raise ValueError("name or generate_name is required")
            suffix = "".join(secrets.choice(_NAME_SUFFIX_CHARS) for _ in range(5))
            meta.name = prefix + suffix
        key = self._key(obj)
        if key in self._objects:
            raise AlreadyExistsError(self._resource(obj.kind), meta.name)
        if hasattr(meta, "uid"):
            meta.uid = str(uuid.uuid4())
        if hasattr(meta, "creation_timestamp"):
            meta.creation_timestamp = _now()
        if hasattr(meta, "deletion_timestamp"):
            meta.deletion_timestamp = None
        self._bump(obj)
        self._objects[key] = copy.deepcopy(obj)

    def update(self, obj: Any) -> None:
        """Replace a stored object; a deleting object without finalizers goes away."""
        key = self._key(obj)
        stored = self._objects.get(key)
        if stored is None:
            raise NotFoundError(self._resource(obj.kind), obj.metadata.name)
        deleted_at = getattr(stored.metadata, "deletion_timestamp", None)
        if hasattr(obj.metadata, "deletion_timestamp"):
            obj.metadata.deletion_timestamp = deleted_at
        if deleted_at is not None and not getattr(obj.metadata, "finalizers", None):
            del self._objects[key]
            return
        self._bump(obj)
        self._objects[key] = copy.deepcopy(obj)

    def delete(self, obj: Any) -> None:
        """Delete an object, or mark it for deletion while finalizers remain."""
        key = self._key(obj)
        stored = self._objects.get(key)
        if stored is None:
            raise NotFoundError(self._resource(obj.kind), obj.metadata.name)
        if getattr(stored.metadata, "finalizers", None):
            if stored.metadata.deletion_timestamp is None:
                stored.metadata.deletion_timestamp = _now()
                self._bump(stored)
            obj.metadata.deletion_timestamp = stored.metadata.deletion_timestamp
            return
        del self._objects[key]

    def list(
        self,
        kind: str,
        namespace: Optional[str] = None,
        labels: Optional[Mapping[str, str]] = None,
    ) -> list[Any]:
        """Return copies of matching objects, ordered by namespace and name."""
        wanted = dict(labels or {})
        found = []
        for (obj_kind, obj_ns, _), obj in sorted(self._objects.items()):
            if obj_kind != kind or (namespace is not None and obj_ns != namespace):
                continue
            have = getattr(obj.metadata, "labels", None) or {}
            if all(have.get(k) == v for k, v in wanted.items()):
                found.append(copy.deepcopy(obj))
        return found