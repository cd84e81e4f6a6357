"""Retry sweep infrastructure settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class RetrySettings(InfrastructureSettings):
    """Retry sweep configuration for failed notification deliveries.

    The sweep re-runs delivery for records whose last attempt failed and whose
    backoff window has elapsed. Several application instances may run the
    sweep at the same time; claim leases keep each record single-writer.

    Environment Variables:
        RETRY_ENABLED: Run the periodic sweep (default: True)
        RETRY_INTERVAL_MINUTES: Minutes between sweeps (default: 5)
        RETRY_BATCH_SIZE: Records processed per sweep (default: 100)
        RETRY_BASE_DELAY_MINUTES: Backoff base delay (default: 5)
        RETRY_CLAIM_LEASE_SECONDS: Claim duration (default: 300s = 5min)
        RETRY_PENDING_GRACE_SECONDS: Age after which a never-attempted pending
            record is picked up by the sweep (default: 300s)

    Exponential Backoff:
        Delay calculation: base_delay * (2 ^ attempts)

        Example with defaults (base=5min):
            After 1st failure: 5 minutes
            After 2nd failure: 10 minutes
            After 3rd failure: 20 minutes

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        if settings.retry.enabled:
            batch_size = settings.retry.batch_size
        ```
    """

    enabled: bool = Field(
        default=True,
        alias="RETRY_ENABLED",
        description="Enable the periodic retry sweep",
    )
    interval_minutes: int = Field(
        default=5,
        alias="RETRY_INTERVAL_MINUTES",
        ge=1,
        description="Minutes between sweeps",
    )
    batch_size: int = Field(
        default=100,
        alias="RETRY_BATCH_SIZE",
        ge=1,
        description="Number of records to process per sweep",
    )
    base_delay_minutes: int = Field(
        default=5,
        alias="RETRY_BASE_DELAY_MINUTES",
        ge=1,
        description="Base delay for exponential backoff (minutes)",
    )
    claim_lease_seconds: int = Field(
        default=300,
        alias="RETRY_CLAIM_LEASE_SECONDS",
        ge=1,
        description="Duration to hold a claim on a record (seconds, 5 minutes)",
    )
    pending_grace_seconds: int = Field(
        default=300,
        alias="RETRY_PENDING_GRACE_SECONDS",
        ge=0,
        description="Age after which stranded pending records are swept",
    )
