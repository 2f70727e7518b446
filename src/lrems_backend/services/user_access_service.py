import logging
from typing import Any, Dict, Union
from pydantic import ValidationError
from sqlalchemy.orm import Session

from lrems_backend.api.exceptions import BadRequestException, NotFoundException
from lrems_backend.interface.auth import AccessUpdate, UserAccessGet
from lrems_backend.model.auth import User
from lrems_backend.permissions.principal import AccessRule
from lrems_backend.permissions.session import SessionVersionService

logger = logging.getLogger(__name__)


def _normalized_rules(raw) -> list:
    return [AccessRule.model_validate(rule).model_dump() for rule in (raw or [])]


class UserAccessService:
    """Administration of access grants.

    Every effective change increments the user's ``access_rules_version`` so
    that sessions issued under the old grants are reported stale.
    """

    def __init__(self, db: Session):
        self.db = db
        self.sessions = SessionVersionService(db)

    def _get_user_or_throw(self, username: str) -> User:
        user = self.db.query(User).filter(User.username == username).first()

        if user is None:
            raise NotFoundException(f"User {username} not found")

        return user

    def get_access(self, username: str) -> UserAccessGet:
        user = self._get_user_or_throw(username)

        return UserAccessGet(
            username=user.username,
            access_rules=user.access_rules or [],
            is_admin_access=bool(user.is_admin_access),
            access_rules_version=user.access_rules_version or 1,
        )

    def update_access(self, username: str, update: Union[AccessUpdate, Dict[str, Any]]) -> UserAccessGet:
        try:
            update = AccessUpdate.model_validate(update)
        except ValidationError as e:
            raise BadRequestException(f"Invalid access rules: {e.errors(include_url=False)}")

        user = self._get_user_or_throw(username)

        changed = False

        if update.access_rules is not None:
            new_rules = [rule.model_dump() for rule in update.access_rules]
            if new_rules != _normalized_rules(user.access_rules):
                user.access_rules = new_rules
                changed = True

        if update.is_admin_access is not None and update.is_admin_access != bool(user.is_admin_access):
            user.is_admin_access = update.is_admin_access
            changed = True

        if changed:
            self.sessions.bump(user.username)

        self.db.commit()
        self.db.refresh(user)

        if changed:
            logger.info(f"Access updated for {user.username}, version {user.access_rules_version}")
        else:
            logger.info(f"Access update for {user.username} made no changes")

        result = self.get_access(user.username)
        result.version_changed = changed

        return result

    def force_reauthentication(self, username: str) -> UserAccessGet:
        user = self._get_user_or_throw(username)

        self.sessions.bump(user.username)
        self.db.commit()

        logger.info(f"Forced re-authentication for {user.username}")

        result = self.get_access(user.username)
        result.version_changed = True

        return result
