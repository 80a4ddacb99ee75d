"""isr_shared.auth - Authorizer claim extraction.

Tokens are validated by the API Gateway Cognito authorizer before a Lambda
runs; handlers only read the claims the authorizer attached to the request.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def _authorizer(event: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Return the authorizer block, or None when no authorizer is wired up."""
    request_context = event.get("requestContext") or {}
    authorizer = request_context.get("authorizer")
    if not isinstance(authorizer, dict) or not authorizer:
        return None
    return authorizer


def _authorizer_claims(event: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Return the Cognito claims attached by the authorizer, if any."""
    authorizer = _authorizer(event)
    if authorizer is None:
        return None
    claims = authorizer.get("claims")
    if not isinstance(claims, dict):
        return None
    return claims


def _claim(event: Dict[str, Any], name: str) -> Optional[str]:
    """Return a single non-empty claim value or None."""
    claims = _authorizer_claims(event) or {}
    value = claims.get(name)
    if value is None or str(value).strip() == "":
        return None
    return str(value)
