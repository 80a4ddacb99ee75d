"""isr_shared.http_utils - API Gateway response envelope helpers.

Every ISR data endpoint answers with the same envelope: a JSON body,
``Content-Type: application/json`` and an open CORS origin. Error bodies
carry the request id so a caller can quote it back to support.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
}


def _response(status_code: int, body: Any) -> Dict[str, Any]:
    """Build a standard API Gateway response with CORS headers."""
    return {
        "statusCode": status_code,
        "headers": {
            "Content-Type": "application/json",
            **CORS_HEADERS,
        },
        "body": json.dumps(body, default=str),
    }


def _error(status_code: int, message: str, reference: Optional[str] = None) -> Dict[str, Any]:
    """Build a standard error response.

    Args:
        status_code: HTTP status code.
        message: Human-readable error message.
        reference: The Lambda ``awsRequestId`` of the failing invocation.
    """
    return _response(status_code, {"error": message, "reference": reference})


def _request_id(context: Any) -> Optional[str]:
    """Return the Lambda request id, tolerating a missing context."""
    return getattr(context, "aws_request_id", None)


def _path_param(event: Dict[str, Any], name: str) -> Optional[str]:
    """Return a non-empty path parameter or None."""
    params = event.get("pathParameters") or {}
    value = params.get(name)
    if value is None or value == "":
        return None
    return str(value)
