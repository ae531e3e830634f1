"""
Alert lifecycle events.

The engine publishes one event per successful transition; delivering them to
clients (sockets, push, e-mail) is the job of whoever subscribes.
"""
import enum
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone

from fleet_alerts.models.alert import Alert
from fleet_alerts.schemas.alert import AlertResponse

logger = logging.getLogger(__name__)


class AlertEventType(str, enum.Enum):
    CREATED = "alert.created"
    UPDATED = "alert.updated"


@dataclass(frozen=True)
class AlertEvent:
    type: AlertEventType
    user_id: uuid.UUID
    alert: dict
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def room(self) -> str:
        return f"user:{self.user_id}"

    @classmethod
    def from_alert(cls, event_type: AlertEventType, alert: Alert) -> "AlertEvent":
        payload = AlertResponse.model_validate(alert).model_dump(mode="json", by_alias=True)
        return cls(type=event_type, user_id=alert.user_id, alert=payload)


class AlertEventPublisher(ABC):
    @abstractmethod
    async def publish(self, event: AlertEvent) -> None: ...


class LoggingEventPublisher(AlertEventPublisher):
    """Default publisher when no fan-out service is wired in."""

    async def publish(self, event: AlertEvent) -> None:
        logger.info("Alert event %s for %s: %s", event.type.value, event.room, event.alert.get("id"))


async def publish_safely(publisher: AlertEventPublisher | None, event: AlertEvent) -> None:
    """Publish an event; a failing subscriber never fails the request."""
    if publisher is None:
        return
    try:
        await publisher.publish(event)
    except Exception as e:
        logger.error("Alert event publish failed (%s): %s", event.type.value, e)
