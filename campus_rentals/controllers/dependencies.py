"""Shared FastAPI dependency providers for controller layer.

The acting user is taken as-is from the ``X-User-Id`` header. That header is
not authenticated: any caller can claim any user id, including a room
organizer's. Deployments must put a real identity provider in front of this
service and let it set the header. Only admin rights are checked here, through
bearer session tokens issued by ``POST /login``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from campus_rentals.domain.errors import ErrorKind, RentalError
from campus_rentals.services.auth_service import (
    AdminTokenNotConfiguredError,
    AuthService,
    InvalidAdminTokenError,
)
from campus_rentals.services.availability_service import AvailabilityService
from campus_rentals.services.rental_service import RentalService
from campus_rentals.services.room_service import RoomService
from campus_rentals.utils.config import get_settings


bearer_scheme = HTTPBearer(auto_error=False)

_STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID: status.HTTP_400_BAD_REQUEST,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
}


@dataclass(frozen=True)
class Actor:
    """Caller identity: the X-User-Id header plus an optional admin session."""

    user_id: Optional[int]
    is_admin: bool


def to_http_exception(exc: RentalError) -> HTTPException:
    return HTTPException(
        status_code=_STATUS_BY_KIND[exc.kind],
        detail={"kind": exc.kind.value, "reason": exc.reason},
    )


def _service_from_state(request: Request, attribute: str, label: str) -> Any:
    service = getattr(request.app.state, attribute, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} is not initialized",
        )
    return service


def get_auth_service(request: Request) -> AuthService:
    service = getattr(request.app.state, "auth_service", None)
    if service is None:
        service = AuthService(settings=get_settings())
        request.app.state.auth_service = service
    return service


def get_room_service(request: Request) -> RoomService:
    return _service_from_state(request, "room_service", "Room service")


def get_rental_service(request: Request) -> RentalService:
    return _service_from_state(request, "rental_service", "Rental service")


def get_availability_service(request: Request) -> AvailabilityService:
    return _service_from_state(request, "availability_service", "Availability service")


async def get_actor(
    x_user_id: Optional[int] = Header(default=None, alias="X-User-Id"),
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> Actor:
    bearer = credentials.credentials if credentials is not None else None
    return Actor(user_id=x_user_id, is_admin=auth_service.is_admin_session(bearer))


async def require_user(actor: Actor = Depends(get_actor)) -> int:
    if actor.user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header is required",
        )
    return actor.user_id


async def require_actor(actor: Actor = Depends(get_actor)) -> Actor:
    """Either an identified user or an admin session."""
    if actor.user_id is None and not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header or admin bearer token is required",
        )
    return actor


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> None:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header with Bearer token is required",
        )
    try:
        auth_service.validate_bearer_token(credentials.credentials)
    except (AdminTokenNotConfiguredError, InvalidAdminTokenError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
