"""Admission checks for ByoCluster and ByoHost resources."""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Mapping, Optional, Union

from byohost.store import GROUP_VERSION
from byohost.types import ByoCluster, ByoHost, from_dict

_log = logging.getLogger("byocluster-resource")

_NIL_FIELD = "<nil>"


class InvalidError(ValueError):
    """Raised when a resource fails validation."""

    def __init__(
        self,
        kind: str,
        name: str,
        detail: str,
        field_path: Optional[str] = None,
        group: str = GROUP_VERSION.group,
    ) -> None:
        self.kind = kind
        self.group = group
        self.name = name
        self.detail = detail
        self.field_path = field_path
        qualified = f"{kind}.{group}" if group else kind
        path = field_path or _NIL_FIELD
        super().__init__(
            f'{qualified} "{name}" is invalid: {path}: Internal error: {detail}'
        )


class Operation(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CONNECT = "CONNECT"


RawObject = Union[Mapping[str, Any], bytes, str, None]


@dataclass
class AdmissionRequest:
    """An incoming admission review request; objects are JSON or decoded mappings."""

    operation: Operation
    name: str = ""
    namespace: str = ""
    object: RawObject = None
    old_object: RawObject = None
    uid: str = ""


@dataclass(frozen=True)
class AdmissionResponse:
    """The verdict on an admission request."""

    allowed: bool
    code: int = HTTPStatus.OK
    message: str = ""

    @classmethod
    def allow(cls, message: str = "") -> "AdmissionResponse":
        return cls(allowed=True, code=HTTPStatus.OK, message=message)

    @classmethod
    def deny(cls, message: str) -> "AdmissionResponse":
        return cls(allowed=False, code=HTTPStatus.FORBIDDEN, message=message)

    @classmethod
    def errored(cls, code: int, error: BaseException) -> "AdmissionResponse":
        return cls(allowed=False, code=int(code), message=str(error))


def _decode_byo_host(raw: RawObject) -> ByoHost:
    if raw is None or (not isinstance(raw, Mapping) and len(raw) == 0):
        raise ValueError("there is no content to decode")
    data = raw if isinstance(raw, Mapping) else json.loads(raw)
    if not data:
        raise ValueError("there is no content to decode")
    return from_dict("ByoHost", data)


class ByoHostValidator:
    """Refuses to delete a ByoHost that is still assigned to a machine."""

    def handle(self, request: AdmissionRequest) -> AdmissionResponse:
        if Operation(request.operation) is Operation.DELETE:
            try:
                byo_host = _decode_byo_host(request.old_object)
            except (ValueError, TypeError) as exc:
                return AdmissionResponse.errored(HTTPStatus.BAD_REQUEST, exc)
            if byo_host.status.machine_ref is not None:
                return AdmissionResponse.deny(
                    "cannot delete ByoHost when MachineRef is assigned"
                )
        return AdmissionResponse.allow("")


def validate_create(byo_cluster: ByoCluster) -> None:
    """Reject a new ByoCluster that has no bundle lookup tag."""
    _log.info("validate create name=%s", byo_cluster.metadata.name)
    if not byo_cluster.spec.bundle_lookup_tag:
        raise InvalidError(
            byo_cluster.kind,
            byo_cluster.metadata.name,
            "cannot create ByoCluster without Spec.BundleLookupTag",
        )


def validate_update(byo_cluster: ByoCluster, old: Optional[ByoCluster]) -> None:
    """Reject an update that leaves the bundle lookup tag empty."""
    _log.info("validate update name=%s", byo_cluster.metadata.name)
    if not byo_cluster.spec.bundle_lookup_tag:
        raise InvalidError(
            byo_cluster.kind,
            byo_cluster.metadata.name,
            "cannot update ByoCluster with empty Spec.BundleLookupTag",
        )


def validate_delete(byo_cluster: ByoCluster) -> None:
    """Accept the deletion of any ByoCluster, recording that it was checked."""
    _log.info("validate delete name=%s", byo_cluster.metadata.name)