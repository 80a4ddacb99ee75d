"""pagination.py - Drain NextToken-paged AWS listing calls into one list."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List

from gate_models import StackResource

logger = logging.getLogger()


async def _call(operation: Callable[..., Any], **params: Any) -> Any:
    """Run a blocking boto3 call without blocking the event loop."""
    return await asyncio.to_thread(operation, **params)


async def fetch_all_pages(
    operation: Callable[..., Dict[str, Any]],
    params: Dict[str, Any],
    items_key: str,
) -> List[Any]:
    """Call ``operation`` until it stops returning a NextToken.

    ``params`` is updated in place with each page's continuation token.
    Items are concatenated in page order. Any failing call propagates; no
    partial list is returned.
    """
    items: List[Any] = []
    while True:
        page = await _call(operation, **params)
        items.extend(page.get(items_key) or [])
        next_token = page.get("NextToken")
        if not next_token:
            params.pop("NextToken", None)
            break
        params["NextToken"] = next_token
    logger.info("[INFO] Fetched %d %s", len(items), items_key)
    return items


async def list_stack_resources(cloudformation: Any, stack_name: str) -> List[StackResource]:
    """Return every resource of a CloudFormation stack, in listing order."""
    logger.info("[INFO] Calling CloudFormation to list resources for stack %s", stack_name)
    summaries = await fetch_all_pages(
        cloudformation.list_stack_resources,
        {"StackName": stack_name},
        "StackResourceSummaries",
    )
    return [
        StackResource(
            resource_type=summary.get("ResourceType", ""),
            resource_id=summary.get("PhysicalResourceId", ""),
            logical_id=summary.get("LogicalResourceId", ""),
        )
        for summary in summaries
    ]
