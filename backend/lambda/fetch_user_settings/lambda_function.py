"""fetch_user_settings/lambda_function.py

API Gateway Lambda returning the signed-in user's display settings.

The user is identified by the ``email`` claim the Cognito authorizer attaches
to the request.

Environment variables:
    USER_INFO_TABLE   default: dev_isr_user_info
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from isr_shared.auth import _authorizer, _claim
from isr_shared.aws_clients import _get_ddb
from isr_shared.http_utils import _error, _request_id, _response
from isr_shared.serialization import _deserialize

USER_INFO_TABLE = os.environ.get("USER_INFO_TABLE", "dev_isr_user_info")

SETTINGS_PROJECTION = (
    "userId, firstName, lastName, loggedIn, mobileNumber, tempFormat, "
    "timeFormat, dateFormat, userLanguage, vaccumFormat, #role"
)

logger = logging.getLogger()
logger.setLevel(logging.INFO)


def _fetch_user_settings(user_id: str) -> Optional[Dict[str, Any]]:
    resp = _get_ddb().query(
        TableName=USER_INFO_TABLE,
        KeyConditionExpression="#user_id = :userId",
        ProjectionExpression=SETTINGS_PROJECTION,
        ExpressionAttributeNames={"#user_id": "userId", "#role": "role"},
        ExpressionAttributeValues={":userId": {"S": user_id}},
    )
    items = resp.get("Items") or []
    if not items:
        return None
    return _deserialize(items[0])


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    reference = _request_id(context)
    if _authorizer(event) is None:
        return _error(500, "authorization not configured", reference)

    user_id = _claim(event, "email")
    if user_id is None:
        return _error(400, "user id is either empty or invalid", reference)

    try:
        settings = _fetch_user_settings(user_id)
    except Exception as exc:
        logger.exception("[ERROR] Failed to fetch settings for %s", user_id)
        return _error(500, str(exc), reference)

    if settings is None:
        logger.info("[SKIP] No settings stored for %s", user_id)
        return _error(404, "user settings not found", reference)
    return _response(200, settings)
