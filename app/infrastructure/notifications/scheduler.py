"""Retry sweep and retention cleanup.

Several application instances may sweep at the same time: each record is
claimed with a lease before it is delivered, so only one worker attempts it.
"""

import socket
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional
from uuid import uuid4

from infrastructure.logging import get_module_logger
from infrastructure.notifications.coordinator import DeliveryCoordinator
from infrastructure.notifications.models import NotificationStatus, utc_now
from infrastructure.notifications.store import NotificationStore

logger = get_module_logger()


@dataclass
class SweepConfig:
    """Sweep tuning.

    Attributes:
        batch_size: Records selected per sweep
        claim_lease: How long a claim protects a record
        pending_grace: Age after which never-attempted pending records are swept
        retention: Age after which read records are purged
    """

    batch_size: int = 100
    claim_lease: timedelta = timedelta(seconds=300)
    pending_grace: timedelta = timedelta(seconds=300)
    retention: timedelta = timedelta(days=90)


def default_worker_id() -> str:
    return f"{socket.gethostname()}-{uuid4().hex[:8]}"


class RetryScheduler:
    """Selects due records and re-runs delivery for them."""

    def __init__(
        self,
        store: NotificationStore,
        coordinator: DeliveryCoordinator,
        config: Optional[SweepConfig] = None,
        worker_id: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.coordinator = coordinator
        self.config = config or SweepConfig()
        self.worker_id = worker_id or default_worker_id()
        self.clock = clock
        self.log = logger.bind(worker_id=self.worker_id)

    def run_once(self) -> Dict[str, int]:
        """Run one sweep.

        Returns:
            Stats with keys selected, processed, delivered, failed, skipped, errors
        """
        now = self.clock()
        stats = {
            "selected": 0,
            "processed": 0,
            "delivered": 0,
            "failed": 0,
            "skipped": 0,
            "errors": 0,
        }
        due = self.store.fetch_due(
            now, self.config.batch_size, pending_before=now - self.config.pending_grace
        )
        stats["selected"] = len(due)

        for record in due:
            # Fails if another worker attempted the record since the fetch
            claimed = self.store.claim(
                record.id,
                self.worker_id,
                now,
                lease_until=now + self.config.claim_lease,
                expected_attempts=record.attempts,
                expected_status=record.status,
            )
            if claimed is None:
                stats["skipped"] += 1
                continue
            try:
                updated = self.coordinator.deliver(claimed)
                stats["processed"] += 1
                if updated.status == NotificationStatus.DELIVERED:
                    stats["delivered"] += 1
                elif updated.status == NotificationStatus.FAILED:
                    stats["failed"] += 1
            except Exception as e:
                stats["errors"] += 1
                self.log.error(
                    "retry_delivery_error",
                    notification_id=record.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            finally:
                try:
                    self.store.release(record.id, self.worker_id)
                except Exception as e:
                    # The lease expires on its own
                    self.log.warning(
                        "retry_release_failed", notification_id=record.id, error=str(e)
                    )

        self.log.info("retry_sweep_completed", **stats)
        return stats

    def cleanup(self) -> int:
        """Purge expired records and read records past retention."""
        now = self.clock()
        removed = self.store.purge(now - self.config.retention, now)
        self.log.info("notifications_purged", removed=removed)
        return removed
