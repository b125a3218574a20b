"""Reconcilers for BYO infrastructure resources and the per-machine scope."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

from byohost.conditions import (
    READY_CONDITION,
    ConditionSeverity,
    ConditionStatus,
    mark_false,
    mark_true,
)
from byohost.store import CLUSTER_GROUP_VERSION, NotFoundError
from byohost.types import (
    CLUSTER_FINALIZER,
    CLUSTER_LABEL_NAME,
    ByoCluster,
    ByoMachine,
    Cluster,
    is_paused,
)

_log = logging.getLogger(__name__)

DEFAULT_API_ENDPOINT_PORT = 6443
DELETE_REQUEUE_AFTER = timedelta(seconds=10)

_SEVERITY_ORDER = (
    ConditionSeverity.ERROR,
    ConditionSeverity.WARNING,
    ConditionSeverity.INFO,
    ConditionSeverity.NONE,
)


@dataclass(frozen=True)
class ReconcileRequest:
    """Identifies the object to reconcile."""

    name: str
    namespace: str = ""


@dataclass(frozen=True)
class ReconcileResult:
    """Tells the caller whether and when to reconcile again."""

    requeue: bool = False
    requeue_after: timedelta = timedelta(0)


def get_byo_machines_in_cluster(client: Any, namespace: str, cluster_name: str) -> list[ByoMachine]:
    """Return the ByoMachines in ``namespace`` labelled as part of ``cluster_name``."""
    return client.list("ByoMachine", namespace, {CLUSTER_LABEL_NAME: cluster_name})


def _api_group(api_version: str) -> str:
    return api_version.split("/", 1)[0] if "/" in api_version else ""


def _get_owner_cluster(client: Any, obj: Any) -> Optional[Cluster]:
    """Return the Cluster that owns ``obj``, or None when no owner is set yet."""
    for ref in obj.metadata.owner_references:
        if ref.kind != "Cluster" or _api_group(ref.api_version) != CLUSTER_GROUP_VERSION.group:
            continue
        try:
            return client.get("Cluster", ref.name, obj.metadata.namespace)
        except NotFoundError as exc:
            raise LookupError(f"failed to get Cluster/{ref.name}: {exc}") from exc
    return None


def _set_summary(byo_cluster: ByoCluster, step_counter: bool) -> None:
    """Set the Ready condition from the other conditions, if there are any."""
    conditions = byo_cluster.status.conditions
    others = [c for c in conditions if c.type != READY_CONDITION]
    if not others:
        return
    failing = [c for c in others if c.status is not ConditionStatus.TRUE]
    if not failing:
        byo_cluster.status.conditions = mark_true(conditions, READY_CONDITION)
        return
    worst = min(failing, key=lambda c: _SEVERITY_ORDER.index(ConditionSeverity(c.severity)))
    if step_counter:
        message = f"{len(others) - len(failing)} of {len(others)} completed"
    else:
        message = worst.message
    byo_cluster.status.conditions = mark_false(
        conditions, READY_CONDITION, worst.reason, worst.severity, message
    )


class ByoClusterReconciler:
    """Reconciles ByoCluster objects."""

    def __init__(self, client: Any) -> None:
        self.client = client

    def reconcile(self, request: ReconcileRequest) -> ReconcileResult:
        try:
            byo_cluster = self.client.get("ByoCluster", request.name, request.namespace)
        except NotFoundError:
            _log.debug("ByoCluster not found, won't reconcile key=%s/%s",
                       request.namespace, request.name)
            return ReconcileResult()

        cluster = _get_owner_cluster(self.client, byo_cluster)
        if cluster is None:
            _log.info("Waiting for Cluster Controller to set OwnerRef on ByoCluster")
            return ReconcileResult()
        if is_paused(cluster, byo_cluster):
            _log.debug("ByoCluster %s/%s linked to a cluster that is paused",
                       byo_cluster.metadata.namespace, byo_cluster.metadata.name)
            return ReconcileResult()

        try:
            if byo_cluster.metadata.is_deleting():
                result = self._reconcile_delete(byo_cluster)
            else:
                result = self._reconcile_normal(byo_cluster)
        except Exception:
            try:
                self._patch(byo_cluster)
            except Exception:
                _log.error("failed to patch ByoCluster", exc_info=True)
            raise
        self._patch(byo_cluster)
        return result

    def _patch(self, byo_cluster: ByoCluster) -> None:
        _set_summary(byo_cluster, step_counter=not byo_cluster.metadata.is_deleting())
        self.client.update(byo_cluster)

    def _reconcile_delete(self, byo_cluster: ByoCluster) -> ReconcileResult:
        meta = byo_cluster.metadata
        try:
            machines = get_byo_machines_in_cluster(self.client, meta.namespace, meta.name)
        except Exception as exc:
            raise RuntimeError(
                f"unable to list ByoMachines part of ByoCluster {meta.namespace}/{meta.name}: {exc}"
            ) from exc
        if machines:
            _log.info("Waiting for ByoMachines to be deleted count=%d", len(machines))
            return ReconcileResult(requeue_after=DELETE_REQUEUE_AFTER)
        meta.remove_finalizer(CLUSTER_FINALIZER)
        return ReconcileResult()

    def _reconcile_normal(self, byo_cluster: ByoCluster) -> ReconcileResult:
        byo_cluster.metadata.add_finalizer(CLUSTER_FINALIZER)
        endpoint = byo_cluster.spec.control_plane_endpoint
        if endpoint.port == 0:
            endpoint.port = DEFAULT_API_ENDPOINT_PORT
        byo_cluster.status.ready = True
        return ReconcileResult()


class ByoHostReconciler:
    """Reconciles ByoHost objects; hosts need no management-side work."""

    def __init__(self, client: Any) -> None:
        self.client = client

    def reconcile(self, request: ReconcileRequest) -> ReconcileResult:
        return ReconcileResult()


class ByoMachineTemplateReconciler:
    """Reconciles ByoMachineTemplate objects; templates need no work."""

    def __init__(self, client: Any) -> None:
        self.client = client

    def reconcile(self, request: ReconcileRequest) -> ReconcileResult:
        return ReconcileResult()


@dataclass
class ByoMachineScope:
    """The objects one ByoMachine reconciliation works with."""

    client: Any
    cluster: Cluster
    machine: Any
    byo_cluster: ByoCluster
    byo_machine: ByoMachine
    byo_host: Any = None


def new_byo_machine_scope(
    client: Any,
    cluster: Optional[Cluster],
    machine: Any,
    byo_cluster: Optional[ByoCluster],
    byo_machine: Optional[ByoMachine],
    byo_host: Any = None,
) -> ByoMachineScope:
    """Build a scope, raising ValueError when a required object is missing."""
    if client is None:
        raise ValueError("Client is required when creating a MachineScope")
    if cluster is None:
        raise ValueError("Cluster is required when creating a MachineScope")
    if machine is None:
        raise ValueError("Machine is required when creating a MachineScope")
    if byo_machine is None:
        raise ValueError("BYOMachine is required when creating a MachineScope")
    if byo_cluster is None:
        raise ValueError("ByoCluster is required when creating a MachineScope")
    return ByoMachineScope(
        client=client,
        cluster=cluster,
        machine=machine,
        byo_cluster=byo_cluster,
        byo_machine=byo_machine,
        byo_host=byo_host,
    )