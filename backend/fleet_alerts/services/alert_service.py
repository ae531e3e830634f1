"""
Alert lifecycle: list, create, acknowledge, resolve.

Every operation follows the same order: look the resource up (404), check
ownership (403), check the state machine (400), then mutate through a
conditional repository call.

    ACTIVE --acknowledge--> ACKNOWLEDGED --resolve--> RESOLVED
    ACTIVE --resolve--> RESOLVED

TODO: confirm with product whether resolve must require a prior acknowledge;
until then ACTIVE alerts can be resolved directly.
"""
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import NoReturn

from fleet_alerts.core.authorization import Actor, ensure_access
from fleet_alerts.core.exceptions import DuplicateAlertError, NotFoundError, StateConflictError
from fleet_alerts.db.base import utcnow
from fleet_alerts.models.alert import Alert, AlertStatus
from fleet_alerts.repositories.alert import AlertCriteria, AlertRepository
from fleet_alerts.repositories.device import DeviceRepository
from fleet_alerts.schemas.alert import AlertCreate, AlertFilters
from fleet_alerts.services.events import (
    AlertEvent,
    AlertEventPublisher,
    AlertEventType,
    publish_safely,
)
from fleet_alerts.services.pagination import PageRequest, Pagination, paginate

logger = logging.getLogger(__name__)


@dataclass
class AlertPage:
    alerts: list[Alert]
    pagination: Pagination


def _ensure_can_acknowledge(alert: Alert) -> None:
    if alert.status == AlertStatus.ACKNOWLEDGED:
        raise StateConflictError("Alert is already acknowledged")
    if alert.status == AlertStatus.RESOLVED:
        raise StateConflictError("Cannot acknowledge a resolved alert")


def _ensure_can_resolve(alert: Alert) -> None:
    if alert.status == AlertStatus.RESOLVED:
        raise StateConflictError("Alert is already resolved")


class AlertService:
    def __init__(
        self,
        alerts: AlertRepository,
        devices: DeviceRepository,
        events: AlertEventPublisher | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.alerts = alerts
        self.devices = devices
        self.events = events
        self.clock = clock

    async def list_alerts(self, actor: Actor, filters: AlertFilters) -> AlertPage:
        """The caller's own alerts, newest first, with a pagination envelope."""
        criteria = AlertCriteria(
            user_id=actor.id,
            status=filters.status,
            severity=filters.severity,
            device_id=filters.device_id,
        )
        page = PageRequest(page=filters.page, limit=filters.limit)
        total = await self.alerts.count_alerts(criteria)
        alerts = await self.alerts.list_alerts(criteria, skip=page.skip, limit=page.limit)
        return AlertPage(alerts=alerts, pagination=paginate(total, page))

    async def recent_alerts(self, actor: Actor, limit: int) -> list[Alert]:
        return await self.alerts.list_alerts(AlertCriteria(user_id=actor.id), skip=0, limit=limit)

    async def count_open(self, actor: Actor) -> int:
        """Number of the caller's ACTIVE or ACKNOWLEDGED alerts."""
        return await self.alerts.count_open(actor.id)

    async def get_alert(self, actor: Actor, alert_id: uuid.UUID) -> Alert:
        alert = await self.alerts.get(alert_id)
        if not alert:
            raise NotFoundError("Alert not found")
        ensure_access(actor, alert.user_id, resource=f"alert {alert_id}")
        return alert

    async def create_alert(self, actor: Actor, data: AlertCreate) -> Alert:
        """Raise a new ACTIVE alert against a device the caller may access.

        Raises:
            NotFoundError: Device does not exist.
            ForbiddenError: Caller neither owns the device nor is an admin.
            DuplicateAlertError: An open alert with the same title exists for the device.
        """
        device = await self.devices.get(data.device_id)
        if not device:
            raise NotFoundError("Device not found")
        ensure_access(actor, device.user_id, resource=f"device {device.id}")

        existing = await self.alerts.find_open_duplicate(data.device_id, data.title)
        if existing:
            logger.warning(
                "Duplicate alert suppressed: device=%s title=%r open=%s",
                data.device_id, data.title, existing.id,
            )
            raise DuplicateAlertError(
                f"Alert '{data.title}' is already open for this device"
            )

        alert = await self.alerts.create(
            device_id=data.device_id,
            user_id=actor.id,
            title=data.title,
            message=data.message,
            severity=data.severity,
        )
        logger.info("Alert created: [%s] %s on device %s", alert.severity.value, alert.title, alert.device_id)
        await publish_safely(self.events, AlertEvent.from_alert(AlertEventType.CREATED, alert))
        return alert

    async def acknowledge_alert(self, actor: Actor, alert_id: uuid.UUID) -> Alert:
        alert = await self.get_alert(actor, alert_id)
        _ensure_can_acknowledge(alert)

        updated = await self.alerts.try_acknowledge(alert_id, self.clock())
        if updated is None:
            await self._raise_lost_race(alert_id, _ensure_can_acknowledge)

        logger.info("Alert acknowledged: %s by %s", alert_id, actor.id)
        await publish_safely(self.events, AlertEvent.from_alert(AlertEventType.UPDATED, updated))
        return updated

    async def resolve_alert(
        self, actor: Actor, alert_id: uuid.UUID, resolution_notes: str | None = None
    ) -> Alert:
        alert = await self.get_alert(actor, alert_id)
        _ensure_can_resolve(alert)
        previous = alert.status

        updated = await self.alerts.try_resolve(alert_id, self.clock(), resolution_notes)
        if updated is None:
            await self._raise_lost_race(alert_id, _ensure_can_resolve)

        logger.info("Alert resolved: %s by %s (from %s)", alert_id, actor.id, previous.value)
        await publish_safely(self.events, AlertEvent.from_alert(AlertEventType.UPDATED, updated))
        return updated

    async def _raise_lost_race(self, alert_id: uuid.UUID, guard: Callable[[Alert], None]) -> NoReturn:
        """A concurrent call moved the alert between our read and our update."""
        current = await self.alerts.get(alert_id)
        if not current:
            raise NotFoundError("Alert not found")
        guard(current)
        raise StateConflictError("Alert was modified concurrently")
