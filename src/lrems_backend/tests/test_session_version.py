"""
Tests for the access_rules_version session protocol, grant administration
and login completion.
"""

import pytest
from unittest.mock import MagicMock
from sqlalchemy.exc import OperationalError

from lrems_backend.api.cache import BOOKS_NAMESPACE
from lrems_backend.api.exceptions import BadRequestException, NotFoundException, UnauthorizedException
from lrems_backend.interface.auth import AccessUpdate
from lrems_backend.permissions.auth import AuthenticationService, PrincipalBuilder
from lrems_backend.permissions.principal import AccessRule
from lrems_backend.permissions.session import SessionVersionService
from lrems_backend.services.user_access_service import UserAccessService
from lrems_backend.tests.conftest import add_user

MATH_RULES = [{"learning_areas": ["Mathematics"], "grade_levels": [1]}]


class TestSessionVersionService:

    def test_issue_returns_current_version(self, session):
        add_user(session, "mak", MATH_RULES)
        token = SessionVersionService(session).issue("mak")
        assert token.username == "mak"
        assert token.access_rules_version == 1

    def test_matching_version_is_valid(self, session):
        add_user(session, "mak", MATH_RULES)
        result = SessionVersionService(session).validate("mak", 1)
        assert result.valid
        assert result.current_version == 1
        assert result.access_rules[0].learning_areas == ["Mathematics"]
        assert result.is_admin_access is False

    def test_missing_version_counts_as_one(self, session):
        add_user(session, "mak", MATH_RULES)
        assert SessionVersionService(session).validate("mak", None).valid

    def test_version_mismatch_is_stale(self, session):
        add_user(session, "mak", MATH_RULES)
        service = SessionVersionService(session)

        service.bump("mak")
        session.commit()

        result = service.validate("mak", 1)
        assert not result.valid
        assert result.reason == "access_rules_changed"
        assert result.current_version == 2
        assert result.access_rules is None

    def test_unknown_user(self, session):
        result = SessionVersionService(session).validate("ghost", 1)
        assert not result.valid
        assert result.reason == "user_not_found"

    def test_database_error_is_a_result(self):
        db = MagicMock()
        db.query.side_effect = OperationalError("SELECT", {}, Exception("gone"))
        result = SessionVersionService(db).validate("mak", 1)
        assert not result.valid
        assert result.reason == "server_error"

    def test_bump_unknown_user(self, session):
        with pytest.raises(NotFoundException):
            SessionVersionService(session).bump("ghost")


class TestUserAccessService:

    def test_rule_change_increments_version(self, session):
        add_user(session, "mak", MATH_RULES)

        result = UserAccessService(session).update_access(
            "mak", {"access_rules": [{"learning_areas": ["English"], "grade_levels": []}]}
        )

        assert result.version_changed
        assert result.access_rules_version == 2
        assert result.access_rules == [AccessRule(learning_areas=["English"])]

    def test_old_session_reported_stale_after_change(self, session):
        add_user(session, "mak", MATH_RULES)
        UserAccessService(session).update_access("mak", AccessUpdate(is_admin_access=True))

        result = SessionVersionService(session).validate("mak", 1)
        assert not result.valid
        assert result.current_version == 2

    def test_unchanged_rules_keep_version(self, session):
        add_user(session, "mak", MATH_RULES)

        # Same grant, different order of values
        result = UserAccessService(session).update_access(
            "mak", {"access_rules": [{"learning_areas": ["Mathematics"], "grade_levels": [1, 1]}]}
        )

        assert not result.version_changed
        assert result.access_rules_version == 1

    def test_malformed_rules_rejected(self, session):
        add_user(session, "mak", MATH_RULES)
        with pytest.raises(BadRequestException):
            UserAccessService(session).update_access(
                "mak", {"access_rules": [{"learning_areas": ["Math"], "grade_levels": [-1]}]}
            )
        assert SessionVersionService(session).validate("mak", 1).valid

    def test_unknown_user(self, session):
        with pytest.raises(NotFoundException):
            UserAccessService(session).update_access("ghost", {"is_admin_access": True})

    def test_force_reauthentication(self, session):
        add_user(session, "mak", MATH_RULES)
        result = UserAccessService(session).force_reauthentication("mak")
        assert result.access_rules_version == 2
        assert not SessionVersionService(session).validate("mak", 1).valid


class TestLogin:

    def test_principal_builder(self, session):
        user = add_user(session, "Celso", MATH_RULES, evaluator_id="ev-9")
        principal = PrincipalBuilder.build(user)
        assert principal.identity == "celso"
        assert principal.access_rules[0].grade_levels == [1]
        assert principal.evaluator_id == "ev-9"

    @pytest.mark.asyncio
    async def test_complete_login_clears_cache(self, session, cache):
        add_user(session, "mak", MATH_RULES, access_rules_version=3)
        await cache.set(BOOKS_NAMESPACE, "k", {"v": 1})

        result = await AuthenticationService.complete_login(session, cache, "mak")

        assert result.access_rules_version == 3
        assert result.username == "mak"
        assert await cache.get(BOOKS_NAMESPACE, "k") is None

    @pytest.mark.asyncio
    async def test_complete_login_unknown_user(self, session, cache):
        with pytest.raises(UnauthorizedException):
            await AuthenticationService.complete_login(session, cache, "ghost")
