"""
Alerts API: list, inspect, create, acknowledge, resolve, bulk-acknowledge.
"""
import uuid

from fastapi import APIRouter, Depends, Query

from fleet_alerts.core.authorization import Actor
from fleet_alerts.core.dependencies import get_alert_service, get_bulk_service, get_current_actor
from fleet_alerts.models.alert import AlertSeverity, AlertStatus
from fleet_alerts.schemas.alert import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    RECENT_ALERTS_DEFAULT,
    RECENT_ALERTS_MAX,
    AlertCreate,
    AlertFilters,
    AlertListResponse,
    AlertResolve,
    AlertResponse,
    BulkAcknowledgeRequest,
    BulkAcknowledgeResponse,
    OpenCountResponse,
    PaginationMeta,
)
from fleet_alerts.services.alert_service import AlertService
from fleet_alerts.services.bulk_service import BulkAcknowledgeService

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("", response_model=AlertListResponse)
async def list_alerts(
    status: AlertStatus | None = Query(None),
    severity: AlertSeverity | None = Query(None),
    device_id: uuid.UUID | None = Query(None, alias="deviceId"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    actor: Actor = Depends(get_current_actor),
    service: AlertService = Depends(get_alert_service),
):
    """List the caller's alerts with optional filters.

    All query parameters are checked in one pass, so every bad field is
    reported together. An oversized limit is rejected rather than clamped.
    """
    filters = AlertFilters(status=status, severity=severity, device_id=device_id, page=page, limit=limit)
    result = await service.list_alerts(actor, filters)
    return AlertListResponse(
        alerts=[AlertResponse.model_validate(a) for a in result.alerts],
        pagination=PaginationMeta.model_validate(result.pagination),
    )


@router.get("/open-count", response_model=OpenCountResponse)
async def open_count(
    actor: Actor = Depends(get_current_actor),
    service: AlertService = Depends(get_alert_service),
):
    """Count of ACTIVE + ACKNOWLEDGED alerts for the dashboard badge."""
    return OpenCountResponse(open_count=await service.count_open(actor))


@router.get("/recent", response_model=list[AlertResponse])
async def recent_alerts(
    limit: int = Query(RECENT_ALERTS_DEFAULT, ge=1, le=RECENT_ALERTS_MAX),
    actor: Actor = Depends(get_current_actor),
    service: AlertService = Depends(get_alert_service),
):
    return await service.recent_alerts(actor, limit)


@router.post("", response_model=AlertResponse, status_code=201)
async def create_alert(
    body: AlertCreate,
    actor: Actor = Depends(get_current_actor),
    service: AlertService = Depends(get_alert_service),
):
    return await service.create_alert(actor, body)


@router.post("/bulk-acknowledge", response_model=BulkAcknowledgeResponse)
async def bulk_acknowledge(
    body: BulkAcknowledgeRequest,
    actor: Actor = Depends(get_current_actor),
    service: BulkAcknowledgeService = Depends(get_bulk_service),
):
    """Acknowledge a batch of ACTIVE alerts; rejected as a whole on any mismatch."""
    count = await service.acknowledge(actor, body.alert_ids)
    return BulkAcknowledgeResponse(
        message=f"Successfully acknowledged {count} alerts",
        acknowledged_count=count,
    )


@router.get("/{alert_id}", response_model=AlertResponse)
async def get_alert(
    alert_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    service: AlertService = Depends(get_alert_service),
):
    return await service.get_alert(actor, alert_id)


@router.post("/{alert_id}/acknowledge", response_model=AlertResponse)
async def acknowledge_alert(
    alert_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    service: AlertService = Depends(get_alert_service),
):
    return await service.acknowledge_alert(actor, alert_id)


@router.post("/{alert_id}/resolve", response_model=AlertResponse)
async def resolve_alert(
    alert_id: uuid.UUID,
    body: AlertResolve | None = None,
    actor: Actor = Depends(get_current_actor),
    service: AlertService = Depends(get_alert_service),
):
    notes = body.resolution_notes if body else None
    return await service.resolve_alert(actor, alert_id, notes)
