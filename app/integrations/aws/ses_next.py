"""AWS SES Next Module

Outbound email through Amazon SES v2.

Usage:
    result = send_email(
        sender="no-reply@marketplace.example",
        recipient="buyer@example.com",
        subject="New comment on order #1001",
        html="<p>...</p>",
    )
    if result.is_success:
        message_id = result.data["MessageId"]
"""

from typing import Optional

from integrations.aws.client_next import execute_aws_api_call
from infrastructure.configuration import settings
from infrastructure.operations import OperationResult


def send_email(
    sender: str,
    recipient: str,
    subject: str,
    html: str,
    text: Optional[str] = None,
    max_retries: int = 0,
) -> OperationResult:
    """Send a single HTML email.

    Args:
        sender: Verified SES identity to send from
        recipient: Destination address
        subject: Subject line
        html: HTML body
        text: Optional plain-text alternative
        max_retries: Throttling retries; kept low since the caller has a deadline

    Returns:
        OperationResult: SES response (with ``MessageId``) in data
    """
    body = {"Html": {"Data": html, "Charset": "UTF-8"}}
    if text:
        body["Text"] = {"Data": text, "Charset": "UTF-8"}

    kwargs = {}
    if settings.aws.SES_CONFIGURATION_SET:
        kwargs["ConfigurationSetName"] = settings.aws.SES_CONFIGURATION_SET

    return execute_aws_api_call(
        service_name="sesv2",
        method="send_email",
        max_retries=max_retries,
        FromEmailAddress=sender,
        Destination={"ToAddresses": [recipient]},
        Content={
            "Simple": {
                "Subject": {"Data": subject, "Charset": "UTF-8"},
                "Body": body,
            }
        },
        **kwargs,
    )
