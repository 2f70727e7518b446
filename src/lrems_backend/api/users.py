from typing import Annotated, Any, Dict
from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from lrems_backend.api.dependencies import get_admin_principal
from lrems_backend.database import get_db
from lrems_backend.interface.auth import UserAccessGet
from lrems_backend.permissions.principal import Principal
from lrems_backend.services.user_access_service import UserAccessService

users_router = APIRouter()


@users_router.get("/{username}/access", response_model=UserAccessGet)
def get_user_access(
    username: str,
    principal: Annotated[Principal, Depends(get_admin_principal)],
    db: Session = Depends(get_db),
):
    return UserAccessService(db).get_access(username)


@users_router.patch("/{username}/access", response_model=UserAccessGet)
def update_user_access(
    username: str,
    principal: Annotated[Principal, Depends(get_admin_principal)],
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
):
    return UserAccessService(db).update_access(username, payload)


@users_router.post("/{username}/force-reauthentication", response_model=UserAccessGet)
def force_reauthentication(
    username: str,
    principal: Annotated[Principal, Depends(get_admin_principal)],
    db: Session = Depends(get_db),
):
    return UserAccessService(db).force_reauthentication(username)
