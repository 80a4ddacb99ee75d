"""checks.py - Fitness checks run by the pre-traffic gate.

Each check shares one contract: ``await check.evaluate(ctx)`` returns a
``CheckOutcome`` (score delta plus an optional forced failure). The gate
runs whatever ``build_check_plan`` returns, in order.

Failure model differs by check:
  - InvocationCheck: a non-2xx status scores 0 and forces Failed, but does
    not raise, so later checks still run.
  - ComplianceCheck: AWS Config errors are not caught and abort the gate.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List

from gate_config import GateConfig
from gate_models import CheckOutcome, GateContext, InvocationResult
from pagination import _call, fetch_all_pages, list_stack_resources

logger = logging.getLogger()

COMPLIANT = "COMPLIANT"


# ---------------------------------------------------------------------------
# Invocation test
# ---------------------------------------------------------------------------


def _read_payload(payload: Any) -> Any:
    if payload is None:
        return None
    if hasattr(payload, "read"):
        payload = payload.read()
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8")
    return payload


def _parse_response_body(raw_payload: Any) -> Any:
    """Return the structured ``body`` of an API-style Lambda response.

    The function's JSON response is expected to look like
    ``{"statusCode": 200, "body": "<json text>"}``. Anything that does not
    parse yields None.
    """
    text = _read_payload(raw_payload)
    if not text:
        return None
    try:
        response = json.loads(text)
    except (TypeError, ValueError):
        logger.warning("[WARNING] Invocation payload is not JSON")
        return None
    if not isinstance(response, dict):
        return None
    body = response.get("body")
    if isinstance(body, str):
        try:
            return json.loads(body)
        except ValueError:
            logger.warning("[WARNING] Invocation body is not JSON")
            return None
    return body


async def invoke_function(lambda_client: Any, function_name: str, payload: str) -> InvocationResult:
    """Invoke the function under test synchronously with ``payload``."""
    logger.info("[INFO] Calling Lambda to test function %s", function_name)
    resp = await _call(
        lambda_client.invoke,
        FunctionName=function_name,
        InvocationType="RequestResponse",
        Payload=payload,
    )
    status_code = int(resp.get("StatusCode", 0))
    function_error = resp.get("FunctionError")
    if function_error:
        logger.warning("[WARNING] Function %s reported %s", function_name, function_error)
    parsed_body = _parse_response_body(resp.get("Payload")) if 200 <= status_code < 300 else None
    return InvocationResult(
        status_code=status_code,
        parsed_body=parsed_body,
        function_error=function_error,
    )


def score_invocation(result: InvocationResult, message_prefix: str) -> CheckOutcome:
    """One point for a 2xx status, one more for a self-check ``message``."""
    if not 200 <= result.status_code < 300:
        return CheckOutcome(score=0, force_failed=True)
    score = 1
    body = result.parsed_body
    message = body.get("message") if isinstance(body, dict) else None
    if isinstance(message, str) and message.startswith(message_prefix):
        score += 1
    return CheckOutcome(score=score)


# ---------------------------------------------------------------------------
# Compliance
# ---------------------------------------------------------------------------


async def fetch_compliant_evaluations(config_client: Any, resource_type: str, resource_id: str) -> List[Any]:
    """Every AWS Config rule evaluation marking the resource COMPLIANT."""
    logger.info(
        "[INFO] Calling AWS Config to check compliance for resource %s %s",
        resource_type,
        resource_id,
    )
    return await fetch_all_pages(
        config_client.get_compliance_details_by_resource,
        {
            "ResourceType": resource_type,
            "ResourceId": resource_id,
            "ComplianceTypes": [COMPLIANT],
        },
        "EvaluationResults",
    )


# ---------------------------------------------------------------------------
# Check objects
# ---------------------------------------------------------------------------


class FitnessCheck:
    """Base for gate checks. ``weight`` scales the check's raw points."""

    name = "check"
    weight = 1

    async def evaluate(self, ctx: GateContext) -> CheckOutcome:
        raise NotImplementedError


class InvocationCheck(FitnessCheck):
    weight = 1

    def __init__(self, function_name: str, payload: str = '"test"', message_prefix: str = "Hello") -> None:
        self.function_name = function_name
        self.payload = payload
        self.message_prefix = message_prefix
        self.name = f"invoke:{function_name}"

    async def evaluate(self, ctx: GateContext) -> CheckOutcome:
        ctx.step = "invoke"
        result = await invoke_function(ctx.clients.lambda_, self.function_name, self.payload)
        outcome = score_invocation(result, self.message_prefix)
        if outcome.force_failed:
            logger.warning(
                "[WARNING] Function %s returned status %s; deployment marked Failed",
                self.function_name,
                result.status_code,
            )
        return CheckOutcome(score=self.weight * outcome.score, force_failed=outcome.force_failed)


class ComplianceCheck(FitnessCheck):
    weight = 10

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.name = f"compliance:{resource_type}:{resource_id}"

    async def evaluate(self, ctx: GateContext) -> CheckOutcome:
        ctx.step = "compliance"
        compliant = await fetch_compliant_evaluations(
            ctx.clients.config, self.resource_type, self.resource_id
        )
        logger.info(
            "[INFO] Resource %s %s is compliant to %d rules",
            self.resource_type,
            self.resource_id,
            len(compliant),
        )
        return CheckOutcome(score=self.weight * len(compliant))


async def build_check_plan(config: GateConfig, ctx: GateContext) -> List[FitnessCheck]:
    """Ordered checks for this invocation.

    Always tests the function under deployment. With stack compliance on,
    appends one compliance check per stack resource in listing order.
    """
    plan: List[FitnessCheck] = [
        InvocationCheck(
            config.function_name,
            payload=config.test_payload,
            message_prefix=config.expected_message_prefix,
        )
    ]
    if config.check_stack_compliance:
        ctx.step = "list-resources"
        resources = await list_stack_resources(ctx.clients.cloudformation, config.stack_id)
        plan.extend(
            ComplianceCheck(resource.resource_type, resource.resource_id)
            for resource in resources
            if resource.resource_type and resource.resource_id
        )
    return plan
