"""reporting.py - Hand the gate decision to CodeDeploy and the score to CloudWatch."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Optional

from isr_shared.serialization import _now_utc

from gate_models import DeploymentEvent, GateContext, GateDecision, GateStatus
from pagination import _call

logger = logging.getLogger()


async def report_decision(codedeploy: Any, event: DeploymentEvent, status: GateStatus) -> Optional[GateDecision]:
    """Report the lifecycle hook status. No-op without a deployment id."""
    if not event.is_orchestrated:
        logger.info("[SKIP] No deployment requested; not reporting to CodeDeploy")
        return None
    decision = GateDecision(
        deployment_id=event.deployment_id,
        hook_execution_id=event.hook_execution_id,
        status=status,
    )
    logger.info("[INFO] Calling CodeDeploy with status %s", status.value)
    params = {
        "deploymentId": decision.deployment_id,
        "status": decision.status.value,
    }
    if decision.hook_execution_id is not None:
        params["lifecycleEventHookExecutionId"] = decision.hook_execution_id
    await _call(codedeploy.put_lifecycle_event_hook_execution_status, **params)
    return decision


async def put_fitness_metric(
    cloudwatch: Any,
    namespace: str,
    metric_name: str,
    value: float,
    timestamp: Optional[dt.datetime] = None,
) -> None:
    """Emit one timestamped datapoint for the fitness score."""
    timestamp = timestamp or _now_utc()
    logger.info("[INFO] Posting metric data to CloudWatch %s %s = %s", namespace, metric_name, value)
    await _call(
        cloudwatch.put_metric_data,
        Namespace=namespace,
        MetricData=[
            {
                "MetricName": metric_name,
                "Timestamp": timestamp,
                "Value": value,
            }
        ],
    )


async def publish_gate_result(ctx: GateContext, namespace: str, metric_name: str) -> Optional[GateDecision]:
    """Report the decision, then emit the metric.

    Neither call is guarded: a metric failure after a successful report
    still fails the invocation.
    """
    ctx.step = "report-decision"
    decision = await report_decision(ctx.clients.codedeploy, ctx.event, ctx.report.status)
    ctx.step = "emit-metric"
    await put_fitness_metric(ctx.clients.cloudwatch, namespace, metric_name, ctx.report.score)
    return decision
