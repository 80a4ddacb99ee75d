"""fetch_active_alarms/lambda_function.py

API Gateway Lambda returning the active MQA alarms for one site.

GET /user/mqa/alarms/active/{siteId}

Queries the alarm table for the site's alarms in the active state and keeps,
for each alarm code, only the most recently activated record.

Environment variables:
    ALARMS_TABLE         default: dev_isr_mqa_alarm
    ACTIVE_ALARM_STATE   default: 2
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List

from isr_shared.auth import _authorizer
from isr_shared.aws_clients import _get_ddb
from isr_shared.http_utils import _error, _path_param, _request_id, _response
from isr_shared.serialization import _deserialize, _parse_iso

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

ALARMS_TABLE = os.environ.get("ALARMS_TABLE", "dev_isr_mqa_alarm")
ACTIVE_ALARM_STATE = int(os.environ.get("ACTIVE_ALARM_STATE", "2"))

logger = logging.getLogger()
logger.setLevel(logging.INFO)


# ---------------------------------------------------------------------------
# Data access
# ---------------------------------------------------------------------------


def _query_active_alarms(site_id: str) -> List[Dict[str, Any]]:
    """All active alarms for ``site_id`` across every query page."""
    ddb = _get_ddb()
    kwargs: Dict[str, Any] = {
        "TableName": ALARMS_TABLE,
        "KeyConditionExpression": "#v_site_id = :v_siteId",
        "FilterExpression": "#v_alarm_currentstate = :v_alarm_currentstate",
        "ExpressionAttributeNames": {
            "#v_site_id": "siteId",
            "#v_alarm_currentstate": "alarmCurrentstate",
        },
        "ExpressionAttributeValues": {
            ":v_siteId": {"S": site_id},
            ":v_alarm_currentstate": {"N": str(ACTIVE_ALARM_STATE)},
        },
    }
    items: List[Dict[str, Any]] = []
    resp = ddb.query(**kwargs)
    items.extend(_deserialize(item) for item in resp.get("Items", []))
    while resp.get("LastEvaluatedKey"):
        resp = ddb.query(**kwargs, ExclusiveStartKey=resp["LastEvaluatedKey"])
        items.extend(_deserialize(item) for item in resp.get("Items", []))
    return items


# ---------------------------------------------------------------------------
# Shaping
# ---------------------------------------------------------------------------


def _latest_per_alarm_code(alarms: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Keep the latest-activated alarm per code; codes stay in first-seen order.

    When two records share an activation time the one read later wins.
    A record is only replaced when both activation times parse.
    """
    latest: Dict[Any, Dict[str, Any]] = {}
    for alarm in alarms:
        code = alarm.get("alarmCode")
        current = latest.get(code)
        if current is None:
            latest[code] = alarm
            continue
        current_ts = _parse_iso(current.get("alarmTimestampActivated"))
        candidate_ts = _parse_iso(alarm.get("alarmTimestampActivated"))
        if current_ts is None or candidate_ts is None:
            continue
        if current_ts <= candidate_ts:
            latest[code] = alarm
    return list(latest.values())


def _build_response_body(site_id: str, alarms: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"siteId": site_id, "items": _latest_per_alarm_code(alarms)}


# ---------------------------------------------------------------------------
# Lambda handler
# ---------------------------------------------------------------------------


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    reference = _request_id(context)
    if _authorizer(event) is None:
        return _error(500, "authorization not configured", reference)

    if not event.get("pathParameters"):
        return _error(400, "site Id not provided", reference)
    site_id = _path_param(event, "siteId")
    if site_id is None:
        return _error(400, "siteId is invalid", reference)

    try:
        alarms = _query_active_alarms(site_id)
    except Exception as exc:
        logger.exception("[ERROR] Failed to fetch alarms for site %s", site_id)
        return _error(500, str(exc), reference)

    body = _build_response_body(site_id, alarms)
    logger.info("[SUCCESS] %s", json.dumps({"siteId": site_id, "fetched": len(alarms), "returned": len(body["items"])}))
    return _response(200, body)
