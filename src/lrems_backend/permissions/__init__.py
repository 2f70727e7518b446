from lrems_backend.permissions.principal import AccessRule, Principal
from lrems_backend.permissions.overrides import OverridePolicy, PolicyOverride, StaticOverridePolicy, load_override_policy
from lrems_backend.permissions.predicate import AccessClause, RecordPredicate, RecordQuery
from lrems_backend.permissions.core import compile_filter, check_record_access, can_access_record, check_admin

__all__ = [
    "AccessRule",
    "Principal",
    "OverridePolicy",
    "PolicyOverride",
    "StaticOverridePolicy",
    "load_override_policy",
    "AccessClause",
    "RecordPredicate",
    "RecordQuery",
    "compile_filter",
    "check_record_access",
    "can_access_record",
    "check_admin",
]
