from fleet_alerts.models.user import User, UserRole
from fleet_alerts.models.device import Device
from fleet_alerts.models.alert import Alert, AlertSeverity, AlertStatus, OPEN_STATUSES

__all__ = [
    "User", "UserRole",
    "Device",
    "Alert", "AlertSeverity", "AlertStatus", "OPEN_STATUSES",
]
