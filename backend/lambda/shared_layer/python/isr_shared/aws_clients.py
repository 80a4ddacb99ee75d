"""isr_shared.aws_clients - Lazy-singleton AWS service clients.

Clients are created on first call and cached for the life of the Lambda
execution environment, so cold starts only pay for the clients a function
actually uses.
"""

from __future__ import annotations

import os
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config

# ---------------------------------------------------------------------------
# Default region (None lets boto3 resolve AWS_REGION from the runtime)
# ---------------------------------------------------------------------------

AWS_REGION_NAME: Optional[str] = os.environ.get("AWS_REGION_NAME") or None

_RETRY_CONFIG = Config(retries={"max_attempts": 3, "mode": "standard"})

_clients: Dict[str, Any] = {}


def _get_client(service: str, region: Optional[str] = None):
    """Get (or create) the boto3 client singleton for ``service``."""
    client = _clients.get(service)
    if client is None:
        client = boto3.client(
            service,
            region_name=region or AWS_REGION_NAME,
            config=_RETRY_CONFIG,
        )
        _clients[service] = client
    return client


def _get_ddb(region: Optional[str] = None):
    """Get (or create) the DynamoDB client singleton."""
    return _get_client("dynamodb", region)


def _get_lambda(region: Optional[str] = None):
    """Get (or create) the Lambda client singleton."""
    return _get_client("lambda", region)


def _get_cloudformation(region: Optional[str] = None):
    """Get (or create) the CloudFormation client singleton."""
    return _get_client("cloudformation", region)


def _get_config_service(region: Optional[str] = None):
    """Get (or create) the AWS Config client singleton."""
    return _get_client("config", region)


def _get_codedeploy(region: Optional[str] = None):
    """Get (or create) the CodeDeploy client singleton."""
    return _get_client("codedeploy", region)


def _get_cloudwatch(region: Optional[str] = None):
    """Get (or create) the CloudWatch client singleton."""
    return _get_client("cloudwatch", region)


def _reset_clients() -> None:
    """Drop every cached client (tests swap boto3 out underneath)."""
    _clients.clear()
