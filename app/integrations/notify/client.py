"""GC Notify client, used for SMS delivery."""

import calendar
import time
from typing import Optional

import jwt
import requests

from infrastructure.configuration import settings
from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult, classify_http_error

logger = get_module_logger()
NOTIFY_CLIENT_ID = settings.notify.NOTIFY_CLIENT_ID
NOTIFY_CLIENT_SECRET = settings.notify.NOTIFY_CLIENT_SECRET
NOTIFY_API_URL = settings.notify.NOTIFY_API_URL
NOTIFY_SMS_TEMPLATE_ID = settings.notify.NOTIFY_SMS_TEMPLATE_ID


# generate the epoch seconds for the jwt token
def epoch_seconds():
    return calendar.timegm(time.gmtime())


def create_jwt_token(secret, client_id):
    """
    Generate a JWT Token for the Notify API

    Tokens have a header consisting of:
    {
        "typ": "JWT",
        "alg": "HS256"
    }

    Claims are:
    iss: identifier for the client
    iat: epoch seconds for the token (UTC)
    """
    if not secret:
        logger.error("jwt_token_creation_failed", error="Missing secret key")
        raise ValueError("Missing secret key")
    if not client_id:
        logger.error("jwt_token_creation_failed", error="Missing client id")
        raise ValueError("Missing client id")

    headers = {"typ": "JWT", "alg": "HS256"}
    claims = {"iss": client_id, "iat": epoch_seconds()}
    return jwt.encode(payload=claims, key=secret, headers=headers)


def create_authorization_header():
    """Create the authorization header for the Notify API."""
    client_id = NOTIFY_CLIENT_ID
    secret = NOTIFY_CLIENT_SECRET

    if not client_id:
        error = "NOTIFY_CLIENT_ID is missing"
        logger.error("authorization_header_creation_failed", error=error)
        raise ValueError(error)
    if not secret:
        error = "NOTIFY_CLIENT_SECRET is missing"
        logger.error("authorization_header_creation_failed", error=error)
        raise ValueError(error)

    token = create_jwt_token(secret=secret, client_id=client_id)
    return "Authorization", "Bearer {}".format(token)


def post_event(url, payload, timeout=5):
    """Post an api call to Notify."""
    header_key, header_value = create_authorization_header()
    header = {header_key: header_value, "Content-Type": "application/json"}
    return requests.post(url, json=payload, headers=header, timeout=timeout)


def send_sms(
    phone_number: str,
    message: str,
    reference: Optional[str] = None,
    timeout: float = 5,
) -> OperationResult:
    """Send a text message through the GC Notify SMS API.

    The configured template must contain a single ``((message))`` placeholder.

    Args:
        phone_number: Destination phone number
        message: Text body
        reference: Optional client reference (the notification id)
        timeout: Socket timeout in seconds

    Returns:
        OperationResult with the Notify response body in data
    """
    if not NOTIFY_API_URL or not NOTIFY_SMS_TEMPLATE_ID:
        return OperationResult.permanent_error(
            "NOTIFY_API_URL or NOTIFY_SMS_TEMPLATE_ID is missing",
            error_code="NOT_CONFIGURED",
        )

    payload = {
        "phone_number": phone_number,
        "template_id": NOTIFY_SMS_TEMPLATE_ID,
        "personalisation": {"message": message},
    }
    if reference:
        payload["reference"] = reference

    try:
        response = post_event(
            NOTIFY_API_URL + "/v2/notifications/sms", payload, timeout=timeout
        )
        response.raise_for_status()
    except requests.RequestException as exc:
        result = classify_http_error(exc)
        logger.warning(
            "notify_sms_failed",
            reference=reference,
            error=result.message,
            error_code=result.error_code,
        )
        return result
    except ValueError as exc:
        return OperationResult.permanent_error(str(exc), error_code="NOT_CONFIGURED")

    # A successful response has a status code of 201
    body = response.json()
    logger.info("notify_sms_sent", reference=reference, notify_id=body.get("id"))
    return OperationResult.success(data=body, message="SMS accepted by GC Notify")
