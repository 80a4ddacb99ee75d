"""gate_config.py - Process-wide configuration for the pre-traffic gate.

Read once from the Lambda environment at import and never mutated:

    StackId                  stack whose resources the gate inspects
    CurrentVersion           function (qualified ARN or alias) under test
    Namespace                CloudWatch metric namespace
    MetricName               CloudWatch metric name for the fitness score
    CHECK_STACK_COMPLIANCE   "true" adds a compliance check per stack resource
    TEST_PAYLOAD             synthetic invocation payload (raw JSON text)
    EXPECTED_MESSAGE_PREFIX  message prefix that earns the self-check point
"""

from __future__ import annotations

import os
from dataclasses import dataclass

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in _TRUTHY


@dataclass(frozen=True)
class GateConfig:
    stack_id: str
    function_name: str
    metric_namespace: str
    metric_name: str
    check_stack_compliance: bool = False
    test_payload: str = '"test"'
    expected_message_prefix: str = "Hello"

    @classmethod
    def from_env(cls) -> "GateConfig":
        return cls(
            stack_id=os.environ.get("StackId", ""),
            function_name=os.environ.get("CurrentVersion", ""),
            metric_namespace=os.environ.get("Namespace", "PreTrafficHook"),
            metric_name=os.environ.get("MetricName", "Fitness"),
            check_stack_compliance=_env_flag("CHECK_STACK_COMPLIANCE"),
            test_payload=os.environ.get("TEST_PAYLOAD", '"test"'),
            expected_message_prefix=os.environ.get("EXPECTED_MESSAGE_PREFIX", "Hello"),
        )
