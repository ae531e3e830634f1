"""
Bulk acknowledgement: all-or-nothing over a batch of the caller's alerts.
"""
import logging
import uuid
from collections.abc import Callable
from datetime import datetime

from fleet_alerts.core.authorization import Actor
from fleet_alerts.core.exceptions import StateConflictError
from fleet_alerts.db.base import utcnow
from fleet_alerts.repositories.alert import AlertRepository
from fleet_alerts.services.events import (
    AlertEvent,
    AlertEventPublisher,
    AlertEventType,
    publish_safely,
)

logger = logging.getLogger(__name__)


class BulkAcknowledgeService:
    def __init__(
        self,
        alerts: AlertRepository,
        events: AlertEventPublisher | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.alerts = alerts
        self.events = events
        self.clock = clock

    async def acknowledge(self, actor: Actor, alert_ids: list[uuid.UUID]) -> int:
        """Acknowledge every alert in ``alert_ids`` or none of them.

        Each id must name an ACTIVE alert owned by the caller (admins included:
        the batch is always scoped to the caller's own alerts). Any missing,
        foreign or non-ACTIVE id rejects the whole batch.

        Returns:
            Number of alerts acknowledged.

        Raises:
            StateConflictError: The batch did not fully match.
        """
        result = await self.alerts.bulk_acknowledge(actor.id, alert_ids, self.clock())
        if not result.applied:
            logger.warning(
                "Bulk acknowledge rejected for %s: %d requested, %d matched",
                actor.id, result.requested, result.matched,
            )
            raise StateConflictError(
                f"Some alerts were not found or are not active "
                f"({result.matched} of {result.requested} matched)"
            )

        logger.info("Bulk acknowledged %d alerts for %s", len(result.acknowledged), actor.id)
        for alert in result.acknowledged:
            await publish_safely(self.events, AlertEvent.from_alert(AlertEventType.UPDATED, alert))
        return len(result.acknowledged)
