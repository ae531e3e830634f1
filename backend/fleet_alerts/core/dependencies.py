import uuid

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_alerts.core.authorization import Actor
from fleet_alerts.core.security import decode_token
from fleet_alerts.db.session import get_db
from fleet_alerts.models.user import UserRole
from fleet_alerts.repositories.alert import SQLAlchemyAlertRepository
from fleet_alerts.repositories.device import DeviceRepository
from fleet_alerts.services.alert_service import AlertService
from fleet_alerts.services.bulk_service import BulkAcknowledgeService
from fleet_alerts.services.events import AlertEventPublisher

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Actor:
    if credentials is None:
        raise _unauthorized("Not authenticated")

    try:
        payload = decode_token(credentials.credentials)
    except ValueError:
        raise _unauthorized()

    if payload.get("type") != "access":
        raise _unauthorized("Invalid token type")

    try:
        actor_id = uuid.UUID(payload.get("sub"))
        role = UserRole(payload.get("role", UserRole.USER.value))
    except (ValueError, TypeError):
        raise _unauthorized()

    return Actor(id=actor_id, role=role)


def get_event_publisher(request: Request) -> AlertEventPublisher | None:
    return getattr(request.app.state, "event_publisher", None)


async def get_alert_service(
    db: AsyncSession = Depends(get_db),
    events: AlertEventPublisher | None = Depends(get_event_publisher),
) -> AlertService:
    return AlertService(SQLAlchemyAlertRepository(db), DeviceRepository(db), events=events)


async def get_bulk_service(
    db: AsyncSession = Depends(get_db),
    events: AlertEventPublisher | None = Depends(get_event_publisher),
) -> BulkAcknowledgeService:
    return BulkAcknowledgeService(SQLAlchemyAlertRepository(db), events=events)
