"""
Ownership-based access decisions.

Callers must look the resource up first and report NOT_FOUND when it is
missing; only an existing resource is passed through the guard. Running the
guard first would turn "does not exist" into "forbidden" for outsiders.
"""
import enum
import logging
import uuid
from dataclasses import dataclass

from fleet_alerts.core.exceptions import ForbiddenError
from fleet_alerts.models.user import UserRole

logger = logging.getLogger(__name__)


class AccessDecision(str, enum.Enum):
    ALLOW = "ALLOW"
    DENY = "DENY"


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as vouched for by the identity layer."""

    id: uuid.UUID
    role: UserRole


def authorize(actor_id: uuid.UUID, actor_role: UserRole, owner_id: uuid.UUID) -> AccessDecision:
    if actor_role == UserRole.ADMIN or actor_id == owner_id:
        return AccessDecision.ALLOW
    return AccessDecision.DENY


def ensure_access(actor: Actor, owner_id: uuid.UUID, resource: str = "resource") -> None:
    if authorize(actor.id, actor.role, owner_id) is AccessDecision.DENY:
        logger.warning("Access denied: user %s on %s owned by %s", actor.id, resource, owner_id)
        raise ForbiddenError("Access denied")
