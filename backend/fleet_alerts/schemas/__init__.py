# Schemas package
from fleet_alerts.schemas.alert import (
    AlertCreate,
    AlertFilters,
    AlertListResponse,
    AlertResolve,
    AlertResponse,
    BulkAcknowledgeRequest,
    BulkAcknowledgeResponse,
    DeviceSummary,
    OpenCountResponse,
    PaginationMeta,
)

__all__ = [
    "AlertCreate",
    "AlertFilters",
    "AlertListResponse",
    "AlertResolve",
    "AlertResponse",
    "BulkAcknowledgeRequest",
    "BulkAcknowledgeResponse",
    "DeviceSummary",
    "OpenCountResponse",
    "PaginationMeta",
]
