from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

WILDCARD_AREA = "*"

PRINCIPAL_ROLES = ("Administrator", "Facilitator", "Evaluator")


class AccessRule(BaseModel):
    """A single access grant: a set of learning areas crossed with a set of grade levels.

    An empty ``grade_levels`` list means all grades. The literal ``"*"`` in
    ``learning_areas`` means all areas.
    """

    learning_areas: List[str] = Field(default_factory=list)
    grade_levels: List[int] = Field(default_factory=list)

    @field_validator("learning_areas", mode="before")
    @classmethod
    def normalize_learning_areas(cls, value: Any):
        if value is None:
            return []
        areas = []
        for area in value:
            if not isinstance(area, str) or area.strip() == "":
                raise ValueError("learning areas must be non-empty strings")
            areas.append(area.strip())
        return sorted(set(areas))

    @field_validator("grade_levels", mode="before")
    @classmethod
    def normalize_grade_levels(cls, value: Any):
        if value is None:
            return []
        grades = []
        for grade in value:
            if isinstance(grade, bool) or not isinstance(grade, int) or grade < 1:
                raise ValueError("grade levels must be positive integers")
            grades.append(grade)
        return sorted(set(grades))

    @property
    def is_wildcard(self) -> bool:
        return WILDCARD_AREA in self.learning_areas


class Principal(BaseModel):
    """The authenticated identity whose access is being evaluated"""

    model_config = ConfigDict(from_attributes=True)

    username: str
    name: Optional[str] = None
    access_rules: List[AccessRule] = Field(default_factory=list)
    is_admin_access: bool = False
    role: str = "Facilitator"
    evaluator_id: Optional[str] = None
    access_rules_version: int = 1

    @model_validator(mode='after')
    def check_role(self):
        if self.role not in PRINCIPAL_ROLES:
            raise ValueError(f"Unknown role '{self.role}'")
        return self

    @property
    def identity(self) -> str:
        """Normalized identity used for policy lookups"""
        return self.username.strip().lower()

    @property
    def unrestricted(self) -> bool:
        """Stored super-admin flag; an Administrator role counts as well"""
        return self.is_admin_access or self.role == "Administrator"
