"""Status conditions and the condition types and reasons used on BYO resources."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Iterable, Optional

READY_CONDITION = "Ready"

# Conditions and reasons on ByoHost.
K8S_NODE_BOOTSTRAP_SUCCEEDED = "K8sNodeBootstrapSucceeded"
K8S_COMPONENTS_INSTALLATION_SUCCEEDED = "K8sComponentsInstallationSucceeded"
WAITING_FOR_MACHINE_REF_REASON = "WaitingForMachineRefToBeAssigned"
BOOTSTRAP_DATA_SECRET_UNAVAILABLE_REASON = "BootstrapDataSecretUnavailable"
K8S_INSTALLATION_SECRET_UNAVAILABLE_REASON = "K8sInstallationSecretUnavailable"
CLEAN_K8S_DIRECTORIES_FAILED_REASON = "CleanK8sDirectoriesFailed"
CLOUD_INIT_EXECUTION_FAILED_REASON = "CloudInitExecutionFailed"
K8S_NODE_ABSENT_REASON = "K8sNodeAbsent"
K8S_COMPONENTS_INSTALLING_REASON = "K8sComponentsInstalling"
K8S_COMPONENTS_INSTALLATION_FAILED_REASON = "K8sComponentsInstallationFailed"

# Conditions and reasons on ByoMachine.
BYO_HOST_READY = "BYOHostReady"
WAITING_FOR_CLUSTER_INFRASTRUCTURE_REASON = "WaitingForClusterInfrastructure"
WAITING_FOR_BOOTSTRAP_DATA_SECRET_REASON = "WaitingForBootstrapDataSecret"
BYO_HOSTS_UNAVAILABLE_REASON = "BYOHostsUnavailable"

# Reasons common to all BYO resources.
CLUSTER_OR_RESOURCE_PAUSED_REASON = "ClusterOrResourcePaused"


class ConditionStatus(str, enum.Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class ConditionSeverity(str, enum.Enum):
    ERROR = "Error"
    WARNING = "Warning"
    INFO = "Info"
    NONE = ""


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


@dataclass
class Condition:
    """The observed state of one aspect of a resource."""

    type: str
    status: ConditionStatus
    severity: ConditionSeverity = ConditionSeverity.NONE
    reason: str = ""
    message: str = ""
    last_transition_time: Optional[datetime] = field(default=None, compare=False)

    def same_state(self, other: "Condition") -> bool:
        return (
            self.type == other.type
            and self.status == other.status
            and self.severity == other.severity
            and self.reason == other.reason
            and self.message == other.message
        )


def _order(condition: Condition) -> tuple[bool, str]:
    return (condition.type != READY_CONDITION, condition.type)


def get_condition(conditions: Iterable[Condition], condition_type: str) -> Optional[Condition]:
    """Return the condition of the given type, or None."""
    return next((c for c in conditions if c.type == condition_type), None)


def set_condition(conditions: Iterable[Condition], condition: Condition) -> list[Condition]:
    """Return a new, sorted list with ``condition`` added or replaced.

    The transition time is kept when the state did not change.
    """
    existing = get_condition(conditions, condition.type)
    if existing is not None and existing.same_state(condition):
        stamped = replace(condition, last_transition_time=existing.last_transition_time)
    else:
        stamped = replace(condition, last_transition_time=_now())
    updated = [c for c in conditions if c.type != condition.type]
    updated.append(stamped)
    return sorted(updated, key=_order)


def mark_true(conditions: Iterable[Condition], condition_type: str) -> list[Condition]:
    """Return the conditions with ``condition_type`` set to True."""
    return set_condition(conditions, Condition(type=condition_type, status=ConditionStatus.TRUE))


def mark_false(
    conditions: Iterable[Condition],
    condition_type: str,
    reason: str,
    severity: ConditionSeverity,
    message: str = "",
) -> list[Condition]:
    """Return the conditions with ``condition_type`` set to False."""
    return set_condition(
        conditions,
        Condition(
            type=condition_type,
            status=ConditionStatus.FALSE,
            severity=ConditionSeverity(severity),
            reason=reason,
            message=message,
        ),
    )