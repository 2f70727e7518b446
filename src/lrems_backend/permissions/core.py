"""
Access rule compilation.

``compile_filter`` turns a principal's declared access rules, the per-identity
override table and the caller's requested filters into a ``RecordPredicate``.
The predicate is evaluated either in the database (see ``query_builders``) or
in Python for single-record write checks.
"""

import logging
from types import SimpleNamespace
from typing import Any, List, Optional

from lrems_backend.api.exceptions import ForbiddenException
from lrems_backend.permissions.overrides import OverridePolicy, PolicyOverride
from lrems_backend.permissions.predicate import AccessClause, RecordPredicate, RecordQuery
from lrems_backend.permissions.principal import AccessRule, Principal

logger = logging.getLogger(__name__)

WRITE_ACTIONS = ("create", "update", "delete", "remark")


def check_admin(principal: Principal, policy: Optional[OverridePolicy] = None) -> bool:
    """Check if principal bypasses access rules (stored flag not revoked by an override)"""
    if not principal.unrestricted:
        return False
    if policy is None:
        return True
    override = policy.resolve(principal.identity)
    if override is None:
        return True
    # A malformed override leaves the identity on the ownership fallback
    if len(override.defects()) > 0:
        return False
    return not override.revoke_unrestricted


def _topic_allowed(override: Optional[PolicyOverride]) -> bool:
    return override is not None and override.sensitive_topic_allowed


def _rule_clause(rule: AccessRule, policy: OverridePolicy, topic_allowed: bool, ceiling: Optional[List[int]]) -> AccessClause:
    learning_areas = None
    excluded = None

    if rule.is_wildcard:
        if not topic_allowed:
            excluded = [policy.sensitive_topic]
    else:
        learning_areas = [a for a in rule.learning_areas if topic_allowed or a != policy.sensitive_topic]

    grade_levels = list(rule.grade_levels) if len(rule.grade_levels) > 0 else None
    if ceiling is not None:
        grade_levels = [g for g in (grade_levels or ceiling) if g in ceiling]

    return AccessClause(
        learning_areas=learning_areas,
        excluded_learning_areas=excluded,
        grade_levels=grade_levels,
    )


def _ownership_clause(principal: Principal, policy: OverridePolicy, topic_allowed: bool, ceiling: Optional[List[int]]) -> AccessClause:
    return AccessClause(
        created_by=principal.username,
        excluded_learning_areas=None if topic_allowed else [policy.sensitive_topic],
        grade_levels=list(ceiling) if ceiling is not None else None,
    )


def _warn_on_restricted_request(principal: Principal, requested: RecordQuery, policy: OverridePolicy, topic_allowed: bool):
    if topic_allowed or requested.learning_areas is None:
        return
    if policy.sensitive_topic in requested.learning_areas:
        logger.warning(f"Unauthorized {policy.sensitive_topic} data view attempt by {principal.username}")


def compile_filter(principal: Principal, requested: Optional[RecordQuery], policy: OverridePolicy) -> RecordPredicate:
    """Compile the visibility predicate for ``principal``.

    Never raises: a principal without any access gets a predicate that
    matches nothing (or only its own records), not an error.
    """
    requested = requested if requested is not None else RecordQuery()

    override = policy.resolve(principal.identity)

    if override is not None:
        defects = override.defects()
        if len(defects) > 0:
            logger.error(f"Malformed access override for '{principal.identity}' ignored: {'; '.join(defects)}")
            return RecordPredicate(
                clauses=[_ownership_clause(principal, policy, False, None)],
                query=requested,
            )

    if principal.unrestricted and not (override is not None and override.revoke_unrestricted):
        return RecordPredicate(clauses=None, query=requested)

    topic_allowed = _topic_allowed(override)
    ceiling = override.grade_ceiling if override is not None else None

    _warn_on_restricted_request(principal, requested, policy, topic_allowed)

    if override is not None and override.learning_areas is not None:
        rules = [AccessRule(learning_areas=override.learning_areas)]
    else:
        rules = principal.access_rules

    if len(rules) == 0:
        clauses = [_ownership_clause(principal, policy, topic_allowed, ceiling)]
    else:
        clauses = [_rule_clause(rule, policy, topic_allowed, ceiling) for rule in rules]

    return RecordPredicate(clauses=clauses, query=requested)


def candidate_record(learning_area: str, grade_level: int, created_by: Optional[str] = None) -> Any:
    """Lightweight stand-in for a record that does not exist yet"""
    return SimpleNamespace(learning_area=learning_area, grade_level=grade_level, created_by=created_by)


def can_access_record(principal: Principal, record: Any, policy: OverridePolicy, action: str) -> bool:
    if action not in WRITE_ACTIONS:
        raise ValueError(f"Unknown action '{action}'")

    if check_admin(principal, policy):
        return True

    if action != "create" and getattr(record, "created_by", None) == principal.username:
        return True

    if action == "create":
        # Ownership never grants the right to create
        record = candidate_record(getattr(record, "learning_area", None), getattr(record, "grade_level", None))

    return compile_filter(principal, None, policy).matches(record)


def check_record_access(principal: Principal, record: Any, policy: OverridePolicy, action: str):
    if not can_access_record(principal, record, policy, action):
        logger.warning(
            f"Access denied: {principal.username} cannot {action} record "
            f"({getattr(record, 'learning_area', None)}, grade {getattr(record, 'grade_level', None)})"
        )
        raise ForbiddenException(detail="Access denied: insufficient permissions for this learning area or grade level")
