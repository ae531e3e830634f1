"""Device repository (read-only view of the device registry)."""

from fleet_alerts.models.device import Device
from fleet_alerts.repositories.base import BaseRepository


class DeviceRepository(BaseRepository[Device]):
    """Repository for Device lookups."""

    model = Device
