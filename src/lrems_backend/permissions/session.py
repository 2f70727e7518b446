"""
Session version protocol.

Every user carries an ``access_rules_version`` counter. Clients receive it at
login and present it on validation; any grant change increments it so that
sessions issued before the change are reported stale. Nothing is tracked
server side per session.
"""

import logging
from typing import Optional
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lrems_backend.api.exceptions import NotFoundException
from lrems_backend.interface.auth import SessionValidationResult
from lrems_backend.model.auth import User

logger = logging.getLogger(__name__)

STALE_SESSION_MESSAGE = "Your access permissions have been updated. Please log in again."


class VersionToken(BaseModel):
    username: str
    access_rules_version: int = 1


def _current_version(user: User) -> int:
    return user.access_rules_version or 1


class SessionVersionService:

    def __init__(self, db: Session):
        self.db = db

    def _get_user(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def issue(self, username: str) -> VersionToken:
        user = self._get_user(username)

        if user is None:
            raise NotFoundException(f"User {username} not found")

        return VersionToken(username=user.username, access_rules_version=_current_version(user))

    def validate(self, username: str, carried_version: Optional[int]) -> SessionValidationResult:
        try:
            user = self._get_user(username)
        except SQLAlchemyError as e:
            logger.error(f"Session validation failed for {username}: {e}")
            return SessionValidationResult(valid=False, reason="server_error", message="Server error during validation")

        if user is None:
            return SessionValidationResult(valid=False, reason="user_not_found", message="User not found")

        current_version = _current_version(user)
        client_version = carried_version or 1

        if current_version != client_version:
            logger.warning(
                f"Session invalidated for user {user.username}: version mismatch "
                f"(client: {client_version}, server: {current_version})"
            )
            return SessionValidationResult(
                valid=False,
                reason="access_rules_changed",
                message=STALE_SESSION_MESSAGE,
                current_version=current_version,
            )

        return SessionValidationResult(
            valid=True,
            current_version=current_version,
            access_rules=user.access_rules or [],
            is_admin_access=bool(user.is_admin_access),
        )

    def bump(self, username: str) -> int:
        """Increment the version; the caller commits"""
        user = self._get_user(username)

        if user is None:
            raise NotFoundException(f"User {username} not found")

        user.access_rules_version = _current_version(user) + 1
        logger.info(f"access_rules_version for {user.username} is now {user.access_rules_version}")

        return user.access_rules_version
