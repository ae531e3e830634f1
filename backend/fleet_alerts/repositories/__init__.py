"""Repository layer over the alert store."""

from fleet_alerts.repositories.alert import (
    AlertCriteria,
    AlertRepository,
    BulkAcknowledgeResult,
    SQLAlchemyAlertRepository,
)
from fleet_alerts.repositories.base import BaseRepository
from fleet_alerts.repositories.device import DeviceRepository

__all__ = [
    "AlertCriteria",
    "AlertRepository",
    "BaseRepository",
    "BulkAcknowledgeResult",
    "DeviceRepository",
    "SQLAlchemyAlertRepository",
]
