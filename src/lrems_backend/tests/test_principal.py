"""
Tests for Principal and AccessRule models.
"""

import pytest
from pydantic import ValidationError

from lrems_backend.permissions.principal import AccessRule, Principal


class TestAccessRule:

    def test_values_are_sorted_and_deduplicated(self):
        rule = AccessRule(learning_areas=["Science", "English", "Science"], grade_levels=[3, 1, 3])
        assert rule.learning_areas == ["English", "Science"]
        assert rule.grade_levels == [1, 3]

    def test_equal_grants_serialize_identically(self):
        a = AccessRule(learning_areas=["Math", "EPP"], grade_levels=[2, 1])
        b = AccessRule(learning_areas=["EPP", "Math"], grade_levels=[1, 2])
        assert a.model_dump_json() == b.model_dump_json()

    def test_wildcard_detection(self):
        assert AccessRule(learning_areas=["*"]).is_wildcard
        assert not AccessRule(learning_areas=["Math"]).is_wildcard

    @pytest.mark.parametrize("grades", [[0], [-1], [1, -3]])
    def test_non_positive_grades_rejected(self, grades):
        with pytest.raises(ValidationError):
            AccessRule(learning_areas=["Math"], grade_levels=grades)

    def test_blank_area_rejected(self):
        with pytest.raises(ValidationError):
            AccessRule(learning_areas=["  "])

    def test_area_whitespace_trimmed(self):
        assert AccessRule(learning_areas=[" Math "]).learning_areas == ["Math"]

    def test_empty_grade_levels_means_all(self):
        assert AccessRule(learning_areas=["Math"]).grade_levels == []


class TestPrincipal:

    def test_identity_is_lowercase(self):
        assert Principal(username="Celso").identity == "celso"

    def test_admin_flag_is_unrestricted(self):
        assert Principal(username="a", is_admin_access=True).unrestricted

    def test_administrator_role_is_unrestricted(self):
        assert Principal(username="a", role="Administrator").unrestricted

    def test_facilitator_is_restricted(self):
        assert not Principal(username="a", role="Facilitator").unrestricted

    def test_unknown_role_rejected(self):
        with pytest.raises(ValidationError):
            Principal(username="a", role="Superuser")

    def test_rules_from_stored_json(self):
        principal = Principal.model_validate({
            "username": "mak",
            "access_rules": [{"learning_areas": ["English"], "grade_levels": [1, 2]}],
        })
        assert principal.access_rules[0].learning_areas == ["English"]
        assert principal.access_rules_version == 1
