# backend/parkbook/api/dependencies/auth.py
"""
Identity dependencies.

Authentication happens upstream: the gateway verifies the caller and forwards
the identity as ``X-Actor-Id`` and ``X-Actor-Role``. These dependencies only
turn those headers into an ``Actor`` and enforce roles.
"""

import logging
from typing import Optional

from fastapi import Depends, Header

from ...core.constants import ACTOR_ID_HEADER, ACTOR_ROLE_HEADER
from ...core.enums import RoleName
from ...core.exceptions import ForbiddenException, UnauthorizedException
from ...principal import Actor

logger = logging.getLogger(__name__)


def get_current_actor(
    actor_id: Optional[str] = Header(None, alias=ACTOR_ID_HEADER),
    actor_role: Optional[str] = Header(None, alias=ACTOR_ROLE_HEADER),
) -> Actor:
    """
    Resolve the caller from identity headers.

    Raises:
        HTTPException 401: If the actor id is missing or the role is unknown
    """
    actor_id = (actor_id or "").strip()
    if not actor_id:
        raise UnauthorizedException(
            "Not authenticated", code="MISSING_ACTOR"
        ).to_http_exception()

    role_value = (actor_role or RoleName.USER.value).strip().lower()
    try:
        role = RoleName(role_value)
    except ValueError:
        logger.warning("Rejected request with unknown actor role %r", actor_role)
        raise UnauthorizedException(
            "Unknown actor role", code="INVALID_ACTOR_ROLE"
        ).to_http_exception() from None

    return Actor(id=actor_id, role=role)


def require_company(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Require the company role."""
    if not actor.is_company:
        raise ForbiddenException(
            "Access denied. Only companies can view this data.",
            code="COMPANY_ROLE_REQUIRED",
        ).to_http_exception()
    return actor
