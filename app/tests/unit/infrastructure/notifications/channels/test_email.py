"""Unit tests for the email channel."""

from unittest.mock import MagicMock, patch

import pytest

from infrastructure.notifications.channels.email import (
    EmailChannel,
    LoggingEmailTransport,
    SesEmailTransport,
    render_email,
)
from infrastructure.notifications.models import NotificationPriority
from infrastructure.operations import OperationResult
from tests.factories.notifications import make_contact


@pytest.mark.unit
class TestRenderEmail:
    def test_subject_is_title(self, record_factory):
        subject, _, _ = render_email(record_factory(), make_contact())
        assert subject == "New comment on order #1001"

    def test_html_sections(self, record_factory):
        record = record_factory(
            data={
                "order_id": "ord-1",
                "order_number": "1001",
                "comment_content": "Full comment text",
            }
        )
        _, html, text = render_email(record, make_contact(), "https://market.example/")

        assert "Hello Ada," in html
        assert "<strong>Order:</strong> #1001" in html
        assert "<blockquote" in html and "Full comment text" in html
        assert 'href="https://market.example/manufacturer/orders/ord-1"' in html
        assert 'href="https://market.example/account/notifications"' in html
        assert "View details: https://market.example/manufacturer/orders/ord-1" in text

    def test_greeting_default(self, record_factory):
        _, html, text = render_email(record_factory(), make_contact(display_name=None))
        assert "Hello there," in html
        assert text.startswith("Hello there,")

    def test_content_is_escaped(self, record_factory):
        record = record_factory(title="<script>alert(1)</script>")
        _, html, _ = render_email(record, make_contact())
        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    def test_absolute_action_url_kept(self, record_factory):
        record = record_factory(action_url="https://other.example/x")
        _, html, _ = render_email(record, make_contact(), "https://market.example")
        assert 'href="https://other.example/x"' in html

    def test_no_action_button_without_url(self, record_factory):
        _, html, _ = render_email(record_factory(action_url=None), make_contact())
        assert "View details" not in html

    def test_priority_color(self, record_factory):
        record = record_factory(priority=NotificationPriority.URGENT)
        _, html, _ = render_email(record, make_contact())
        assert "#dc3545" in html


@pytest.mark.unit
class TestEmailChannel:
    def test_send_uses_transport(self, record_factory):
        transport = MagicMock()
        transport.send_email.return_value = OperationResult.success(
            data={"provider_message_id": "ses-1"}
        )
        channel = EmailChannel(transport, sender="no-reply@marketplace.example")

        message_id = channel.deliver(record_factory(), make_contact())

        assert message_id == "ses-1"
        kwargs = transport.send_email.call_args.kwargs
        assert kwargs["sender"] == "no-reply@marketplace.example"
        assert kwargs["recipient"] == "buyer@example.com"
        assert kwargs["subject"] == "New comment on order #1001"

    def test_logging_transport(self, record_factory):
        channel = EmailChannel(LoggingEmailTransport(), sender="a@example.com")
        assert channel.deliver(record_factory(), make_contact()).startswith("log-")


@pytest.mark.unit
class TestSesEmailTransport:
    @patch("infrastructure.notifications.channels.email.ses_next")
    def test_maps_message_id(self, mock_ses):
        mock_ses.send_email.return_value = OperationResult.success(data={"MessageId": "m-1"})
        result = SesEmailTransport().send_email("a@x.com", "b@x.com", "s", "<p>h</p>", "h")
        assert result.data == {"provider_message_id": "m-1"}
        mock_ses.send_email.assert_called_once_with(
            sender="a@x.com", recipient="b@x.com", subject="s", html="<p>h</p>", text="h"
        )

    @patch("infrastructure.notifications.channels.email.ses_next")
    def test_failure_passthrough(self, mock_ses):
        failure = OperationResult.permanent_error("rejected", error_code="INVALID_REQUEST")
        mock_ses.send_email.return_value = failure
        assert SesEmailTransport().send_email("a", "b", "s", "h", "t") is failure
