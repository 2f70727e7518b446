from typing import Annotated
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from lrems_backend.api.cache import ResponseCache
from lrems_backend.api.exceptions import ForbiddenException, UnauthorizedException
from lrems_backend.database import get_db
from lrems_backend.permissions.core import check_admin
from lrems_backend.permissions.overrides import OverridePolicy
from lrems_backend.permissions.principal import Principal
from lrems_backend.services.book_service import BookService
from lrems_backend.services.monitoring_service import MonitoringService


def get_current_principal(request: Request) -> Principal:
    """Principal attached to the request by the authentication middleware"""
    principal = getattr(request.state, "principal", None)

    if principal is None:
        raise UnauthorizedException("No authorization provided")

    return principal


def get_response_cache(request: Request) -> ResponseCache:
    return request.app.state.response_cache


def get_override_policy(request: Request) -> OverridePolicy:
    return request.app.state.override_policy


def get_admin_principal(
    principal: Annotated[Principal, Depends(get_current_principal)],
    policy: Annotated[OverridePolicy, Depends(get_override_policy)],
) -> Principal:
    if not check_admin(principal, policy):
        raise ForbiddenException("Admin access required")
    return principal


def get_book_service(
    cache: Annotated[ResponseCache, Depends(get_response_cache)],
    policy: Annotated[OverridePolicy, Depends(get_override_policy)],
    db: Session = Depends(get_db),
) -> BookService:
    return BookService(db, cache, policy)


def get_monitoring_service(
    cache: Annotated[ResponseCache, Depends(get_response_cache)],
    policy: Annotated[OverridePolicy, Depends(get_override_policy)],
    db: Session = Depends(get_db),
) -> MonitoringService:
    return MonitoringService(db, cache, policy)
