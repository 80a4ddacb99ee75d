"""pre_traffic_hook/lambda_function.py

CodeDeploy BeforeAllowTraffic hook that decides whether a newly deployed
Lambda version may receive live traffic.

Flow:
  1. Classify the event. The bare string "test" is an operational
     self-check and returns "ok" without touching AWS.
  2. Build the check plan (invoke the function under test; with
     CHECK_STACK_COMPLIANCE, one AWS Config check per stack resource).
  3. Run the checks in order, summing the fitness score. A non-2xx
     invocation marks the deployment Failed but later checks still run.
  4. Report Succeeded/Failed to CodeDeploy (skipped when the event carries
     no DeploymentId) and put the fitness score to CloudWatch.

Any AWS error aborts the gate and is re-raised, so CodeDeploy sees a failed
hook invocation rather than an evaluated Failed decision.

Environment variables: see gate_config.py.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

from isr_shared.aws_clients import (
    _get_cloudformation,
    _get_cloudwatch,
    _get_codedeploy,
    _get_config_service,
    _get_lambda,
)

from checks import build_check_plan
from fitness import run_checks
from gate_config import GateConfig
from gate_models import (
    SENTINEL_ACK,
    DeploymentEvent,
    FitnessReport,
    GateClients,
    GateContext,
    SentinelEvent,
    parse_event,
)
from reporting import publish_gate_result

# ---------------------------------------------------------------------------
# Logging / configuration
# ---------------------------------------------------------------------------

logger = logging.getLogger()
logger.setLevel(logging.INFO)

CONFIG = GateConfig.from_env()


def _default_clients() -> GateClients:
    return GateClients(
        cloudformation=_get_cloudformation(),
        lambda_=_get_lambda(),
        config=_get_config_service(),
        codedeploy=_get_codedeploy(),
        cloudwatch=_get_cloudwatch(),
    )


# ---------------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------------


async def run_gate(
    event: DeploymentEvent,
    clients: GateClients,
    config: GateConfig,
    hook_function_name: Optional[str] = None,
) -> FitnessReport:
    """Evaluate the deployment and publish the result. Returns the report."""
    ctx = GateContext(event=event, clients=clients, hook_function_name=hook_function_name)
    logger.info("[INFO] Hook %s validating %s", hook_function_name, config.function_name)
    try:
        checks = await build_check_plan(config, ctx)
        report = await run_checks(checks, ctx)
        logger.info("[INFO] fitness = %d", report.score)
        logger.info("[INFO] deploymentStatus = %s", report.status.value)
        await publish_gate_result(ctx, config.metric_namespace, config.metric_name)
    except Exception:
        logger.exception(
            "[ERROR] Pre-traffic gate aborted during %s (deployment %s)",
            ctx.step,
            event.deployment_id,
        )
        raise
    logger.info("[END] Pre-traffic gate finished: %s", json.dumps(report.outcomes))
    return report


# ---------------------------------------------------------------------------
# Lambda handler
# ---------------------------------------------------------------------------


def lambda_handler(event: Any, context: Any) -> Optional[str]:
    logger.info("[START] Entering pre-traffic hook")
    logger.info(json.dumps(event, default=str)[:2000])

    try:
        gate_event = parse_event(event)
        if isinstance(gate_event, SentinelEvent):
            return SENTINEL_ACK

        logger.info("[INFO] DeploymentId: %s", gate_event.deployment_id)
        logger.info("[INFO] LifecycleEventHookExecutionId: %s", gate_event.hook_execution_id)
        clients = _default_clients()
    except Exception:
        logger.exception("[ERROR] Pre-traffic gate aborted during init")
        raise

    hook_function_name = getattr(context, "function_name", None)
    asyncio.run(run_gate(gate_event, clients, CONFIG, hook_function_name))
    return None
