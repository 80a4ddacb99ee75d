"""Unit tests for the pre-traffic gate components (pagination, checks,
aggregation, reporting).

Run from the repository root:
    python3 -m pytest backend/lambda/pre_traffic_hook -v
"""

from __future__ import annotations

import asyncio
import datetime as dt
import io
import json
import os
import sys
import unittest
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError

sys.path.insert(0, os.path.dirname(__file__))

import checks  # noqa: E402
import fitness  # noqa: E402
import pagination  # noqa: E402
import reporting  # noqa: E402
from gate_config import GateConfig  # noqa: E402
from gate_models import (  # noqa: E402
    CheckOutcome,
    DeploymentEvent,
    FitnessReport,
    GateClients,
    GateContext,
    GateStatus,
    InvocationResult,
)


def _client_error(operation: str) -> ClientError:
    return ClientError({"Error": {"Code": "ThrottlingException", "Message": "slow down"}}, operation)


def _pages(*pages):
    """MagicMock operation returning ``pages`` in order."""
    return MagicMock(side_effect=[dict(page) for page in pages])


def _ctx(**clients) -> GateContext:
    defaults = {name: MagicMock() for name in ("cloudformation", "lambda_", "config", "codedeploy", "cloudwatch")}
    defaults.update(clients)
    return GateContext(event=DeploymentEvent("d-1", "hook-1"), clients=GateClients(**defaults))


def _invoke_response(status_code: int, body=None):
    payload = {"statusCode": status_code}
    if body is not None:
        payload["body"] = json.dumps(body)
    return {"StatusCode": status_code, "Payload": io.BytesIO(json.dumps(payload).encode("utf-8"))}


class PaginationTests(unittest.TestCase):
    def test_concatenates_pages_in_order(self):
        operation = _pages(
            {"Items": [1, 2], "NextToken": "t1"},
            {"Items": [3], "NextToken": "t2"},
            {"Items": [4, 5, 6]},
        )
        params = {"StackName": "stack"}

        items = asyncio.run(pagination.fetch_all_pages(operation, params, "Items"))

        self.assertEqual(items, [1, 2, 3, 4, 5, 6])
        self.assertEqual(operation.call_count, 3)
        self.assertEqual(operation.call_args_list[0].kwargs, {"StackName": "stack"})
        self.assertEqual(operation.call_args_list[1].kwargs, {"StackName": "stack", "NextToken": "t1"})
        self.assertEqual(operation.call_args_list[2].kwargs, {"StackName": "stack", "NextToken": "t2"})
        self.assertNotIn("NextToken", params)

    def test_null_token_ends_paging(self):
        operation = _pages({"Items": ["a"], "NextToken": None})

        items = asyncio.run(pagination.fetch_all_pages(operation, {}, "Items"))

        self.assertEqual(items, ["a"])
        operation.assert_called_once_with()

    def test_page_without_items_key_contributes_nothing(self):
        operation = _pages({"NextToken": "t1"}, {"Items": ["x"]})

        items = asyncio.run(pagination.fetch_all_pages(operation, {}, "Items"))

        self.assertEqual(items, ["x"])

    def test_failed_page_propagates(self):
        operation = MagicMock(side_effect=[{"Items": [1], "NextToken": "t1"}, _client_error("ListThings")])

        with self.assertRaises(ClientError):
            asyncio.run(pagination.fetch_all_pages(operation, {}, "Items"))

    def test_list_stack_resources_maps_summaries(self):
        cloudformation = MagicMock()
        cloudformation.list_stack_resources.side_effect = [
            {
                "StackResourceSummaries": [
                    {"ResourceType": "AWS::Lambda::Function", "PhysicalResourceId": "fn-a", "LogicalResourceId": "FnA"},
                ],
                "NextToken": "next",
            },
            {
                "StackResourceSummaries": [
                    {"ResourceType": "AWS::DynamoDB::Table", "PhysicalResourceId": "tbl", "LogicalResourceId": "Tbl"},
                ],
            },
        ]

        resources = asyncio.run(pagination.list_stack_resources(cloudformation, "my-stack"))

        self.assertEqual([r.resource_id for r in resources], ["fn-a", "tbl"])
        self.assertEqual(resources[0].resource_type, "AWS::Lambda::Function")
        self.assertEqual(resources[1].logical_id, "Tbl")
        cloudformation.list_stack_resources.assert_any_call(StackName="my-stack", NextToken="next")


class InvocationScoringTests(unittest.TestCase):
    def test_hello_message_scores_two(self):
        outcome = checks.score_invocation(InvocationResult(200, {"message": "Hello world"}), "Hello")
        self.assertEqual(outcome, CheckOutcome(score=2, force_failed=False))

    def test_other_message_scores_one(self):
        outcome = checks.score_invocation(InvocationResult(204, {"message": "Goodbye"}), "Hello")
        self.assertEqual(outcome.score, 1)
        self.assertFalse(outcome.force_failed)

    def test_missing_body_scores_one(self):
        self.assertEqual(checks.score_invocation(InvocationResult(200, None), "Hello").score, 1)

    def test_non_string_message_scores_one(self):
        self.assertEqual(checks.score_invocation(InvocationResult(200, {"message": 42}), "Hello").score, 1)

    def test_server_error_scores_zero_and_forces_failure(self):
        outcome = checks.score_invocation(InvocationResult(500, {"message": "Hello"}), "Hello")
        self.assertEqual(outcome, CheckOutcome(score=0, force_failed=True))

    def test_status_300_is_outside_success_range(self):
        self.assertTrue(checks.score_invocation(InvocationResult(300), "Hello").force_failed)

    def test_status_299_is_inside_success_range(self):
        self.assertFalse(checks.score_invocation(InvocationResult(299), "Hello").force_failed)


class InvocationCheckTests(unittest.TestCase):
    def test_invokes_with_synthetic_payload(self):
        lambda_client = MagicMock()
        lambda_client.invoke.return_value = _invoke_response(200, {"message": "Hello world"})
        ctx = _ctx(lambda_=lambda_client)

        outcome = asyncio.run(checks.InvocationCheck("fn:live", payload='"test"').evaluate(ctx))

        self.assertEqual(outcome.score, 2)
        lambda_client.invoke.assert_called_once_with(
            FunctionName="fn:live",
            InvocationType="RequestResponse",
            Payload='"test"',
        )
        self.assertEqual(ctx.step, "invoke")

    def test_unparseable_body_keeps_status_point(self):
        lambda_client = MagicMock()
        lambda_client.invoke.return_value = {
            "StatusCode": 200,
            "Payload": io.BytesIO(b'{"statusCode": 200, "body": "not json"}'),
        }

        outcome = asyncio.run(checks.InvocationCheck("fn").evaluate(_ctx(lambda_=lambda_client)))

        self.assertEqual(outcome, CheckOutcome(score=1))

    def test_function_error_still_scored_by_status(self):
        lambda_client = MagicMock()
        lambda_client.invoke.return_value = {
            "StatusCode": 200,
            "FunctionError": "Unhandled",
            "Payload": io.BytesIO(b'{"errorMessage": "boom"}'),
        }

        result = asyncio.run(checks.invoke_function(lambda_client, "fn", '"test"'))

        self.assertEqual(result.function_error, "Unhandled")
        self.assertIsNone(result.parsed_body)
        self.assertEqual(checks.score_invocation(result, "Hello").score, 1)

    def test_bad_status_does_not_raise(self):
        lambda_client = MagicMock()
        lambda_client.invoke.return_value = _invoke_response(500)

        outcome = asyncio.run(checks.InvocationCheck("fn").evaluate(_ctx(lambda_=lambda_client)))

        self.assertEqual(outcome, CheckOutcome(score=0, force_failed=True))

    def test_invoke_error_propagates(self):
        lambda_client = MagicMock()
        lambda_client.invoke.side_effect = _client_error("Invoke")

        with self.assertRaises(ClientError):
            asyncio.run(checks.InvocationCheck("fn").evaluate(_ctx(lambda_=lambda_client)))


class ComplianceCheckTests(unittest.TestCase):
    def test_three_compliant_rules_score_thirty(self):
        config_client = MagicMock()
        config_client.get_compliance_details_by_resource.side_effect = [
            {"EvaluationResults": [{"r": 1}, {"r": 2}], "NextToken": "more"},
            {"EvaluationResults": [{"r": 3}]},
        ]
        ctx = _ctx(config=config_client)

        outcome = asyncio.run(checks.ComplianceCheck("AWS::Lambda::Function", "fn-a").evaluate(ctx))

        self.assertEqual(outcome, CheckOutcome(score=30))
        config_client.get_compliance_details_by_resource.assert_any_call(
            ResourceType="AWS::Lambda::Function",
            ResourceId="fn-a",
            ComplianceTypes=["COMPLIANT"],
        )
        self.assertEqual(ctx.step, "compliance")

    def test_config_error_propagates(self):
        config_client = MagicMock()
        config_client.get_compliance_details_by_resource.side_effect = _client_error("GetComplianceDetailsByResource")

        with self.assertRaises(ClientError):
            asyncio.run(checks.ComplianceCheck("AWS::S3::Bucket", "b").evaluate(_ctx(config=config_client)))


class CheckPlanTests(unittest.TestCase):
    def _config(self, **overrides) -> GateConfig:
        values = dict(stack_id="stack", function_name="fn:live", metric_namespace="ns", metric_name="Fitness")
        values.update(overrides)
        return GateConfig(**values)

    def test_minimal_plan_only_invokes(self):
        ctx = _ctx()

        plan = asyncio.run(checks.build_check_plan(self._config(), ctx))

        self.assertEqual([c.name for c in plan], ["invoke:fn:live"])
        ctx.clients.cloudformation.list_stack_resources.assert_not_called()

    def test_compliance_plan_adds_check_per_resource(self):
        cloudformation = MagicMock()
        cloudformation.list_stack_resources.return_value = {
            "StackResourceSummaries": [
                {"ResourceType": "AWS::Lambda::Function", "PhysicalResourceId": "fn-a"},
                {"ResourceType": "AWS::IAM::Role", "PhysicalResourceId": "role-a"},
                {"ResourceType": "AWS::CloudFormation::WaitConditionHandle", "PhysicalResourceId": ""},
            ]
        }

        plan = asyncio.run(
            checks.build_check_plan(self._config(check_stack_compliance=True), _ctx(cloudformation=cloudformation))
        )

        self.assertEqual(
            [c.name for c in plan],
            [
                "invoke:fn:live",
                "compliance:AWS::Lambda::Function:fn-a",
                "compliance:AWS::IAM::Role:role-a",
            ],
        )


class _StaticCheck(checks.FitnessCheck):
    def __init__(self, name, outcome, calls):
        self.name = name
        self.outcome = outcome
        self.calls = calls

    async def evaluate(self, ctx):
        self.calls.append(self.name)
        return self.outcome


class _ExplodingCheck(checks.FitnessCheck):
    name = "explodes"

    async def evaluate(self, ctx):
        raise _client_error("GetComplianceDetailsByResource")


class FitnessAggregationTests(unittest.TestCase):
    def test_no_checks_leaves_succeeded(self):
        report = asyncio.run(fitness.run_checks([], _ctx()))
        self.assertEqual(report.score, 0)
        self.assertEqual(report.status, GateStatus.SUCCEEDED)

    def test_scores_are_summed_in_order(self):
        calls = []
        plan = [
            _StaticCheck("a", CheckOutcome(2), calls),
            _StaticCheck("b", CheckOutcome(30), calls),
        ]

        report = asyncio.run(fitness.run_checks(plan, _ctx()))

        self.assertEqual(calls, ["a", "b"])
        self.assertEqual(report.score, 32)
        self.assertEqual(report.status, GateStatus.SUCCEEDED)

    def test_failed_is_sticky_and_later_checks_still_score(self):
        calls = []
        plan = [
            _StaticCheck("invoke", CheckOutcome(0, force_failed=True), calls),
            _StaticCheck("compliance", CheckOutcome(20), calls),
        ]

        report = asyncio.run(fitness.run_checks(plan, _ctx()))

        self.assertEqual(calls, ["invoke", "compliance"])
        self.assertEqual(report.score, 20)
        self.assertEqual(report.status, GateStatus.FAILED)

    def test_exception_stops_remaining_checks(self):
        calls = []
        plan = [
            _StaticCheck("first", CheckOutcome(1), calls),
            _ExplodingCheck(),
            _StaticCheck("never", CheckOutcome(1), calls),
        ]

        with self.assertRaises(ClientError):
            asyncio.run(fitness.run_checks(plan, _ctx()))
        self.assertEqual(calls, ["first"])

    def test_report_never_decreases(self):
        report = FitnessReport()
        report.record("a", CheckOutcome(5))
        report.record("b", CheckOutcome(-3))
        self.assertEqual(report.score, 5)


class ReportingTests(unittest.TestCase):
    def test_decision_reported_with_ids(self):
        codedeploy = MagicMock()

        decision = asyncio.run(
            reporting.report_decision(codedeploy, DeploymentEvent("d-1", "hook-1"), GateStatus.FAILED)
        )

        codedeploy.put_lifecycle_event_hook_execution_status.assert_called_once_with(
            deploymentId="d-1",
            lifecycleEventHookExecutionId="hook-1",
            status="Failed",
        )
        self.assertEqual(decision.status, GateStatus.FAILED)

    def test_missing_deployment_id_skips_report(self):
        codedeploy = MagicMock()

        decision = asyncio.run(reporting.report_decision(codedeploy, DeploymentEvent(), GateStatus.SUCCEEDED))

        self.assertIsNone(decision)
        codedeploy.put_lifecycle_event_hook_execution_status.assert_not_called()

    def test_metric_datapoint_shape(self):
        cloudwatch = MagicMock()
        ts = dt.datetime(2026, 1, 2, 3, 4, 5, tzinfo=dt.timezone.utc)

        asyncio.run(reporting.put_fitness_metric(cloudwatch, "ns", "Fitness", 12, timestamp=ts))

        cloudwatch.put_metric_data.assert_called_once_with(
            Namespace="ns",
            MetricData=[{"MetricName": "Fitness", "Timestamp": ts, "Value": 12}],
        )

    def test_metric_timestamp_defaults_to_current_utc(self):
        cloudwatch = MagicMock()
        now = dt.datetime(2026, 10, 19, 8, 0, 0, tzinfo=dt.timezone.utc)

        with patch.object(reporting, "_now_utc", return_value=now):
            asyncio.run(reporting.put_fitness_metric(cloudwatch, "ns", "Fitness", 3))

        datapoint = cloudwatch.put_metric_data.call_args.kwargs["MetricData"][0]
        self.assertEqual(datapoint["Timestamp"], now)

    def test_metric_failure_after_report_propagates(self):
        ctx = _ctx()
        ctx.clients.cloudwatch.put_metric_data.side_effect = _client_error("PutMetricData")

        with self.assertRaises(ClientError):
            asyncio.run(reporting.publish_gate_result(ctx, "ns", "Fitness"))

        ctx.clients.codedeploy.put_lifecycle_event_hook_execution_status.assert_called_once()
        self.assertEqual(ctx.step, "emit-metric")


if __name__ == "__main__":
    unittest.main()
