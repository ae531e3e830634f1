"""Alert repository.

State transitions are conditional UPDATEs (``... WHERE status = <expected>``),
so a transition either applies atomically or reports that the guard no
longer holds. Callers never do read-then-write on ``status``.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import Select, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from fleet_alerts.core.exceptions import DuplicateAlertError, StoreError
from fleet_alerts.models.alert import OPEN_STATUSES, Alert, AlertSeverity, AlertStatus
from fleet_alerts.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertCriteria:
    """Filters for listing a user's alerts."""

    user_id: uuid.UUID
    status: AlertStatus | None = None
    severity: AlertSeverity | None = None
    device_id: uuid.UUID | None = None


@dataclass
class BulkAcknowledgeResult:
    requested: int
    matched: int
    acknowledged: list[Alert] = field(default_factory=list)

    @property
    def applied(self) -> bool:
        return self.matched == self.requested and len(self.acknowledged) == self.requested


class AlertRepository(ABC):
    """Contract the lifecycle engine needs from the alert store."""

    @abstractmethod
    async def get(self, alert_id: uuid.UUID) -> Alert | None: ...

    @abstractmethod
    async def find_open_duplicate(self, device_id: uuid.UUID, title: str) -> Alert | None: ...

    @abstractmethod
    async def create(
        self,
        *,
        device_id: uuid.UUID,
        user_id: uuid.UUID,
        title: str,
        message: str,
        severity: AlertSeverity,
    ) -> Alert: ...

    @abstractmethod
    async def try_acknowledge(self, alert_id: uuid.UUID, now: datetime) -> Alert | None: ...

    @abstractmethod
    async def try_resolve(
        self, alert_id: uuid.UUID, now: datetime, resolution_notes: str | None = None
    ) -> Alert | None: ...

    @abstractmethod
    async def list_alerts(self, criteria: AlertCriteria, skip: int, limit: int) -> list[Alert]: ...

    @abstractmethod
    async def count_alerts(self, criteria: AlertCriteria) -> int: ...

    @abstractmethod
    async def count_open(self, user_id: uuid.UUID) -> int: ...

    @abstractmethod
    async def bulk_acknowledge(
        self, user_id: uuid.UUID, alert_ids: list[uuid.UUID], now: datetime
    ) -> BulkAcknowledgeResult: ...


def _apply_criteria(stmt: Select, criteria: AlertCriteria) -> Select:
    stmt = stmt.where(Alert.user_id == criteria.user_id)
    if criteria.status is not None:
        stmt = stmt.where(Alert.status == criteria.status)
    if criteria.severity is not None:
        stmt = stmt.where(Alert.severity == criteria.severity)
    if criteria.device_id is not None:
        stmt = stmt.where(Alert.device_id == criteria.device_id)
    return stmt


class SQLAlchemyAlertRepository(BaseRepository[Alert], AlertRepository):
    """Repository for Alert operations."""

    model = Alert

    async def find_open_duplicate(self, device_id: uuid.UUID, title: str) -> Alert | None:
        """Get the ACTIVE or ACKNOWLEDGED alert with this device and title, if any.

        Args:
            device_id: Device ID.
            title: Alert title (exact match).

        Returns:
            The open alert or None.
        """
        async with self.store_errors("find_open_duplicate"):
            stmt = (
                select(Alert)
                .where(
                    Alert.device_id == device_id,
                    Alert.title == title,
                    Alert.status.in_(OPEN_STATUSES),
                )
                .limit(1)
            )
            return await self.session.scalar(stmt)

    async def create(
        self,
        *,
        device_id: uuid.UUID,
        user_id: uuid.UUID,
        title: str,
        message: str,
        severity: AlertSeverity,
    ) -> Alert:
        """Insert a new ACTIVE alert.

        The partial unique index on open (device_id, title) backs up the
        duplicate pre-check when two producers race.

        Raises:
            DuplicateAlertError: An open alert with the same device and title exists.
            StoreError: Any other storage failure.
        """
        alert = Alert(
            device_id=device_id,
            user_id=user_id,
            title=title,
            message=message,
            severity=severity,
            status=AlertStatus.ACTIVE,
        )
        try:
            self.session.add(alert)
            await self.session.flush()
        except IntegrityError as exc:
            await self.session.rollback()
            # Only the open (device_id, title) index means DUPLICATE; a missing
            # owner or device row is a store failure
            if await self.find_open_duplicate(device_id, title) is not None:
                logger.warning("Alert insert rejected as duplicate: device=%s title=%r", device_id, title)
                raise DuplicateAlertError() from exc
            logger.error("Alert insert violated a constraint: %s", exc.orig)
            raise StoreError() from exc
        except SQLAlchemyError as exc:
            logger.error("Alert insert failed: %s", exc, exc_info=True)
            raise StoreError() from exc
        return await self.get(alert.id)  # type: ignore[return-value]

    async def try_acknowledge(self, alert_id: uuid.UUID, now: datetime) -> Alert | None:
        """ACTIVE -> ACKNOWLEDGED. Returns None if the alert was not ACTIVE."""
        async with self.store_errors("try_acknowledge"):
            stmt = (
                update(Alert)
                .where(Alert.id == alert_id, Alert.status == AlertStatus.ACTIVE)
                .values(status=AlertStatus.ACKNOWLEDGED, acknowledged_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(stmt)
            if result.rowcount != 1:
                return None
        return await self.get(alert_id)

    async def try_resolve(
        self, alert_id: uuid.UUID, now: datetime, resolution_notes: str | None = None
    ) -> Alert | None:
        """ACTIVE or ACKNOWLEDGED -> RESOLVED. Returns None if already RESOLVED."""
        values: dict = {"status": AlertStatus.RESOLVED, "resolved_at": now, "updated_at": now}
        if resolution_notes is not None:
            values["resolution_notes"] = resolution_notes
        async with self.store_errors("try_resolve"):
            stmt = (
                update(Alert)
                .where(Alert.id == alert_id, Alert.status.in_(OPEN_STATUSES))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(stmt)
            if result.rowcount != 1:
                return None
        return await self.get(alert_id)

    async def list_alerts(self, criteria: AlertCriteria, skip: int, limit: int) -> list[Alert]:
        """Get one page of alerts, newest first, ties broken by id.

        Args:
            criteria: Owner and optional status/severity/device filters.
            skip: Rows to skip.
            limit: Maximum rows to return.

        Returns:
            List of alerts with their device loaded.
        """
        async with self.store_errors("list_alerts"):
            stmt = (
                _apply_criteria(select(Alert), criteria)
                .order_by(Alert.created_at.desc(), Alert.id.asc())
                .offset(skip)
                .limit(limit)
            )
            return list((await self.session.scalars(stmt)).all())

    async def count_alerts(self, criteria: AlertCriteria) -> int:
        async with self.store_errors("count_alerts"):
            stmt = _apply_criteria(select(func.count(Alert.id)), criteria)
            return (await self.session.scalar(stmt)) or 0

    async def count_open(self, user_id: uuid.UUID) -> int:
        async with self.store_errors("count_open"):
            stmt = select(func.count(Alert.id)).where(
                Alert.user_id == user_id,
                Alert.status.in_(OPEN_STATUSES),
            )
            return (await self.session.scalar(stmt)) or 0

    async def bulk_acknowledge(
        self, user_id: uuid.UUID, alert_ids: list[uuid.UUID], now: datetime
    ) -> BulkAcknowledgeResult:
        """Acknowledge every alert in the batch, or none of them.

        The matching rows are locked, counted, and then updated with the same
        predicate inside the request transaction. If the update touches fewer
        rows than requested, the transaction is rolled back.

        Args:
            user_id: Owner every alert must belong to.
            alert_ids: Unique alert ids.
            now: Acknowledgement timestamp.

        Returns:
            Result; ``applied`` is False when the batch was rejected.
        """
        requested = len(alert_ids)
        predicate = (
            Alert.id.in_(alert_ids),
            Alert.user_id == user_id,
            Alert.status == AlertStatus.ACTIVE,
        )
        async with self.store_errors("bulk_acknowledge"):
            locked = await self.session.scalars(select(Alert.id).where(*predicate).with_for_update())
            matched = len(locked.all())
            if matched != requested:
                return BulkAcknowledgeResult(requested=requested, matched=matched)

            result = await self.session.execute(
                update(Alert)
                .where(*predicate)
                .values(status=AlertStatus.ACKNOWLEDGED, acknowledged_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != requested:
                await self.session.rollback()
                return BulkAcknowledgeResult(requested=requested, matched=result.rowcount)

            stmt = (
                select(Alert)
                .where(Alert.id.in_(alert_ids))
                .order_by(Alert.created_at.desc(), Alert.id.asc())
                .execution_options(populate_existing=True)
            )
            acknowledged = list((await self.session.scalars(stmt)).all())
        return BulkAcknowledgeResult(requested=requested, matched=matched, acknowledged=acknowledged)
