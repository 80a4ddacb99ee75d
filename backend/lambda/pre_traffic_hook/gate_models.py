"""gate_models.py - Value types shared by the pre-traffic gate components.

The gate is invoked by CodeDeploy with
``{"DeploymentId": ..., "LifecycleEventHookExecutionId": ...}`` or, for
operational self-checks, with the bare string ``"test"``. The raw payload is
classified into a ``SentinelEvent`` or a ``DeploymentEvent`` before any
validation logic runs.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

SENTINEL_PAYLOAD = "test"
SENTINEL_ACK = "ok"


class GateEventError(ValueError):
    """Raised when the triggering event has an unrecognised shape."""


class GateStatus(str, enum.Enum):
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


@dataclass(frozen=True)
class SentinelEvent:
    """Operational self-check: acknowledge without touching AWS."""


@dataclass(frozen=True)
class DeploymentEvent:
    deployment_id: Optional[str] = None
    hook_execution_id: Optional[str] = None

    @property
    def is_orchestrated(self) -> bool:
        """True when CodeDeploy is waiting on a lifecycle decision."""
        return self.deployment_id is not None


GateEvent = Union[SentinelEvent, DeploymentEvent]


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def parse_event(raw: Any) -> GateEvent:
    """Classify the raw Lambda payload.

    ``None`` is a manual invocation with no payload and is treated like an
    event without a deployment id.
    """
    if raw == SENTINEL_PAYLOAD:
        return SentinelEvent()
    if raw is None:
        return DeploymentEvent()
    if not isinstance(raw, dict):
        raise GateEventError(f"Unsupported pre-traffic event type: {type(raw).__name__}")
    return DeploymentEvent(
        deployment_id=_optional_str(raw.get("DeploymentId")),
        hook_execution_id=_optional_str(raw.get("LifecycleEventHookExecutionId")),
    )


@dataclass(frozen=True)
class StackResource:
    resource_type: str
    resource_id: str
    logical_id: str = ""


@dataclass(frozen=True)
class InvocationResult:
    status_code: int
    parsed_body: Any = None
    function_error: Optional[str] = None


@dataclass(frozen=True)
class CheckOutcome:
    """Score delta contributed by one check, plus an optional forced failure."""

    score: int = 0
    force_failed: bool = False


@dataclass
class FitnessReport:
    score: int = 0
    status: GateStatus = GateStatus.SUCCEEDED
    outcomes: List[Dict[str, Any]] = field(default_factory=list)

    def record(self, name: str, outcome: CheckOutcome) -> None:
        """Add a check outcome. Score only grows; Failed is sticky."""
        self.score += max(0, outcome.score)
        if outcome.force_failed:
            self.status = GateStatus.FAILED
        self.outcomes.append(
            {"check": name, "score": outcome.score, "force_failed": outcome.force_failed}
        )


@dataclass
class GateClients:
    cloudformation: Any
    lambda_: Any
    config: Any
    codedeploy: Any
    cloudwatch: Any


@dataclass
class GateContext:
    """Everything one gate invocation owns. Never shared between invocations."""

    event: DeploymentEvent
    clients: GateClients
    hook_function_name: Optional[str] = None
    report: FitnessReport = field(default_factory=FitnessReport)
    step: str = "init"


@dataclass(frozen=True)
class GateDecision:
    deployment_id: str
    hook_execution_id: Optional[str]
    status: GateStatus
