"""
Login completion and Principal construction.

Credential checking itself lives outside this package; once a user is
authenticated, ``AuthenticationService.complete_login`` hands back the
version token the client must carry and drops all cached responses.
"""

import logging
from sqlalchemy.orm import Session

from lrems_backend.api.cache import ResponseCache
from lrems_backend.api.exceptions import UnauthorizedException
from lrems_backend.interface.auth import LoginResult
from lrems_backend.model.auth import User
from lrems_backend.permissions.principal import Principal
from lrems_backend.permissions.session import SessionVersionService

logger = logging.getLogger(__name__)


class PrincipalBuilder:
    """Builder for creating Principal objects from stored users"""

    @staticmethod
    def build(user: User) -> Principal:
        return Principal(
            username=user.username,
            name=user.name,
            access_rules=user.access_rules or [],
            is_admin_access=bool(user.is_admin_access),
            role=user.role or "Facilitator",
            evaluator_id=user.evaluator_id,
            access_rules_version=user.access_rules_version or 1,
        )

    @staticmethod
    def build_for_username(username: str, db: Session) -> Principal:
        user = db.query(User).filter(User.username == username).first()

        if user is None:
            raise UnauthorizedException("Invalid credentials")

        return PrincipalBuilder.build(user)


class AuthenticationService:

    @staticmethod
    async def complete_login(db: Session, cache: ResponseCache, username: str) -> LoginResult:
        principal = PrincipalBuilder.build_for_username(username, db)
        token = SessionVersionService(db).issue(principal.username)

        # Cached responses may have been computed under the previous grants
        await cache.clear_all()

        logger.info(f"User {principal.username} logged in (access_rules_version {token.access_rules_version})")

        return LoginResult(
            username=principal.username,
            name=principal.name,
            role=principal.role,
            access_rules=principal.access_rules,
            is_admin_access=principal.is_admin_access,
            evaluator_id=principal.evaluator_id,
            access_rules_version=token.access_rules_version,
        )
