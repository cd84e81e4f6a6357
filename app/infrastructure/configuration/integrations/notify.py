"""GC Notify integration settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class NotifySettings(IntegrationSettings):
    """GC Notify API configuration, used for SMS delivery.

    Environment Variables:
        NOTIFY_CLIENT_ID: GC Notify service account username
        NOTIFY_CLIENT_SECRET: GC Notify service account secret
        NOTIFY_API_URL: GC Notify API endpoint URL
        NOTIFY_SMS_TEMPLATE_ID: Template with a single ((message)) placeholder

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        api_url = settings.notify.NOTIFY_API_URL
        ```
    """

    NOTIFY_CLIENT_ID: str | None = Field(default=None, alias="NOTIFY_CLIENT_ID")
    NOTIFY_CLIENT_SECRET: str | None = Field(
        default=None, alias="NOTIFY_CLIENT_SECRET"
    )
    NOTIFY_API_URL: str = Field(default="", alias="NOTIFY_API_URL")
    NOTIFY_SMS_TEMPLATE_ID: str = Field(default="", alias="NOTIFY_SMS_TEMPLATE_ID")
