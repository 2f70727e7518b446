import logging
import os
from typing import Any, Dict, List, Mapping, Optional
import yaml
from pydantic import BaseModel, Field

from lrems_backend.settings import settings

logger = logging.getLogger(__name__)

DEFAULT_SENSITIVE_TOPIC = "Science"

DEFAULT_POLICY_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "config", "access_policy.yaml")


class PolicyOverride(BaseModel):
    """Per-identity adjustment applied on top of the declared access rules"""

    learning_areas: Optional[List[str]] = None
    grade_ceiling: Optional[List[int]] = None
    sensitive_topic_allowed: bool = False
    revoke_unrestricted: bool = False

    def defects(self) -> List[str]:
        """Return the reasons this entry cannot be applied (empty if well-formed)"""
        problems = []

        if self.learning_areas is not None:
            if len(self.learning_areas) == 0:
                problems.append("learning_areas is empty")
            elif any(not isinstance(a, str) or a.strip() == "" for a in self.learning_areas):
                problems.append("learning_areas contains an empty value")

        if self.grade_ceiling is not None:
            if len(self.grade_ceiling) == 0:
                problems.append("grade_ceiling is empty")
            elif any(g < 1 for g in self.grade_ceiling):
                problems.append("grade_ceiling contains a non-positive grade")

        return problems


class OverridePolicy:
    """Lookup of per-identity overrides plus the single restricted topic"""

    sensitive_topic: str = DEFAULT_SENSITIVE_TOPIC

    def resolve(self, identity: str) -> Optional[PolicyOverride]:
        raise NotImplementedError()


class StaticOverridePolicy(OverridePolicy):

    def __init__(self, overrides: Optional[Mapping[str, Any]] = None, sensitive_topic: str = DEFAULT_SENSITIVE_TOPIC):
        self.sensitive_topic = sensitive_topic
        self._overrides: Dict[str, PolicyOverride] = {}

        for identity, entry in (overrides or {}).items():
            if isinstance(entry, PolicyOverride):
                override = entry
            else:
                override = PolicyOverride.model_validate(entry or {})
            self._overrides[identity.strip().lower()] = override

    def resolve(self, identity: str) -> Optional[PolicyOverride]:
        return self._overrides.get(identity.strip().lower())

    def identities(self) -> List[str]:
        return sorted(self._overrides.keys())

    def __repr__(self):
        return f"StaticOverridePolicy(identities={self.identities()}, sensitive_topic={self.sensitive_topic!r})"


def load_override_policy(path: Optional[str] = None) -> StaticOverridePolicy:
    """Load the override table from YAML.

    Falls back to ``ACCESS_POLICY_CONFIG`` and then to the packaged default.
    """
    path = path or settings.ACCESS_POLICY_CONFIG or DEFAULT_POLICY_PATH

    with open(path, "r") as file:
        data = yaml.safe_load(file) or {}

    overrides = data.get("overrides") or {}
    sensitive_topic = data.get("sensitive_topic", DEFAULT_SENSITIVE_TOPIC)

    policy = StaticOverridePolicy(overrides, sensitive_topic=sensitive_topic)
    logger.info(f"Loaded access policy from {path} ({len(policy.identities())} identities)")

    return policy
