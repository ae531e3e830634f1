import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from fleet_alerts.models.alert import AlertSeverity, AlertStatus

TITLE_MAX_LENGTH = 255
MESSAGE_MAX_LENGTH = 1000
RESOLUTION_NOTES_MAX_LENGTH = 1000
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
BULK_ACKNOWLEDGE_MAX = 50
RECENT_ALERTS_DEFAULT = 5
RECENT_ALERTS_MAX = 20


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AlertFilters(CamelModel):
    status: AlertStatus | None = None
    severity: AlertSeverity | None = None
    device_id: uuid.UUID | None = None
    page: int = Field(1, ge=1)
    # Values above the cap are rejected, never clamped
    limit: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)


class AlertCreate(CamelModel):
    device_id: uuid.UUID
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    message: str = Field(..., min_length=1, max_length=MESSAGE_MAX_LENGTH)
    severity: AlertSeverity


class AlertResolve(CamelModel):
    resolution_notes: str | None = Field(None, max_length=RESOLUTION_NOTES_MAX_LENGTH)


class BulkAcknowledgeRequest(CamelModel):
    alert_ids: list[uuid.UUID] = Field(..., min_length=1, max_length=BULK_ACKNOWLEDGE_MAX)

    @field_validator("alert_ids")
    @classmethod
    def ids_must_be_unique(cls, v: list[uuid.UUID]) -> list[uuid.UUID]:
        if len(set(v)) != len(v):
            raise ValueError("alertIds must not contain duplicates")
        return v


class DeviceSummary(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    type: str
    location: str | None = None


class AlertResponse(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    device_id: uuid.UUID
    user_id: uuid.UUID
    title: str
    message: str
    severity: AlertSeverity
    status: AlertStatus
    acknowledged_at: datetime | None = None
    resolved_at: datetime | None = None
    resolution_notes: str | None = None
    created_at: datetime
    updated_at: datetime
    device: DeviceSummary | None = None


class PaginationMeta(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool


class AlertListResponse(CamelModel):
    alerts: list[AlertResponse]
    pagination: PaginationMeta


class BulkAcknowledgeResponse(CamelModel):
    message: str
    acknowledged_count: int


class OpenCountResponse(CamelModel):
    open_count: int
