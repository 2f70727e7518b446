from typing import Annotated
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from lrems_backend.api.cache import ResponseCache
from lrems_backend.api.dependencies import get_current_principal, get_response_cache
from lrems_backend.database import get_db
from lrems_backend.interface.auth import LoginResult, SessionValidate, SessionValidationResult
from lrems_backend.permissions.auth import AuthenticationService
from lrems_backend.permissions.principal import Principal
from lrems_backend.permissions.session import SessionVersionService

auth_router = APIRouter()

_REASON_STATUS = {
    "user_not_found": status.HTTP_404_NOT_FOUND,
    "server_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@auth_router.post("/session", response_model=LoginResult)
async def complete_login(
    principal: Annotated[Principal, Depends(get_current_principal)],
    cache: Annotated[ResponseCache, Depends(get_response_cache)],
    db: Session = Depends(get_db),
):
    """Finish a successful login: hand out the current access_rules_version"""
    return await AuthenticationService.complete_login(db, cache, principal.username)


@auth_router.post("/validate", response_model=SessionValidationResult)
def validate_session(
    payload: SessionValidate,
    principal: Annotated[Principal, Depends(get_current_principal)],
    db: Session = Depends(get_db),
):
    result = SessionVersionService(db).validate(principal.username, payload.access_rules_version)

    if result.reason in _REASON_STATUS:
        return JSONResponse(
            status_code=_REASON_STATUS[result.reason],
            content=result.model_dump(mode="json", exclude_none=True),
        )

    return result
