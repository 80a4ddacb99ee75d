"""isr_shared.serialization - DynamoDB deserialization and timestamp helpers."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any, Dict, Optional

from boto3.dynamodb.types import TypeDeserializer

_DESER = TypeDeserializer()


def _plain(value: Any) -> Any:
    """Convert Decimals (recursively) into ints or floats for JSON output."""
    if isinstance(value, Decimal):
        return int(value) if value == int(value) else float(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, set)):
        return [_plain(v) for v in value]
    return value


def _deserialize(item: Dict[str, Any]) -> Dict[str, Any]:
    """Deserialize a DynamoDB item to a plain Python dict."""
    return {k: _plain(_DESER.deserialize(v)) for k, v in item.items()}


def _now_utc() -> dt.datetime:
    """Current UTC time as an aware datetime."""
    return dt.datetime.now(dt.timezone.utc)


def _parse_iso(value: Any) -> Optional[dt.datetime]:
    """Parse an ISO 8601 timestamp (``Z`` suffix allowed); None if unparseable."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed
