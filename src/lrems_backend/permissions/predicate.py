from typing import Any, List, Optional
from pydantic import BaseModel, Field, field_validator

SEARCH_FIELDS = ("learning_area", "publisher", "title")


def _sorted_unique(value: Any):
    if value is None:
        return None
    return sorted(set(value))


class AccessClause(BaseModel):
    """One disjunct of an authorization predicate.

    ``None`` means the attribute is unconstrained, an empty list means the
    clause can never match.
    """

    learning_areas: Optional[List[str]] = None
    excluded_learning_areas: Optional[List[str]] = None
    grade_levels: Optional[List[int]] = None
    created_by: Optional[str] = None

    @field_validator("learning_areas", "excluded_learning_areas", "grade_levels", mode="before")
    @classmethod
    def normalize_sets(cls, value: Any):
        return _sorted_unique(value)

    @property
    def matches_nothing(self) -> bool:
        return self.learning_areas == [] or self.grade_levels == []

    def matches(self, record: Any) -> bool:
        if self.matches_nothing:
            return False

        area = getattr(record, "learning_area", None)
        grade = getattr(record, "grade_level", None)

        if self.learning_areas is not None and area not in self.learning_areas:
            return False
        if self.excluded_learning_areas is not None and area in self.excluded_learning_areas:
            return False
        if self.grade_levels is not None and grade not in self.grade_levels:
            return False
        if self.created_by is not None and getattr(record, "created_by", None) != self.created_by:
            return False

        return True


class RecordQuery(BaseModel):
    """Caller supplied filters, always AND-ed with the authorization clauses"""

    learning_areas: Optional[List[str]] = None
    grade_levels: Optional[List[int]] = None
    statuses: Optional[List[str]] = None
    publishers: Optional[List[str]] = None
    search: Optional[str] = None

    @field_validator("learning_areas", "grade_levels", "statuses", "publishers", mode="before")
    @classmethod
    def normalize_filters(cls, value: Any):
        # An empty filter means no filter
        return _sorted_unique(value) if value else None

    @field_validator("search", mode="before")
    @classmethod
    def strip_search(cls, value: Any):
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    def matches(self, record: Any) -> bool:
        if self.learning_areas is not None and getattr(record, "learning_area", None) not in self.learning_areas:
            return False
        if self.grade_levels is not None and getattr(record, "grade_level", None) not in self.grade_levels:
            return False
        if self.statuses is not None and getattr(record, "status", None) not in self.statuses:
            return False
        if self.publishers is not None and getattr(record, "publisher", None) not in self.publishers:
            return False
        if self.search is not None:
            needle = self.search.lower()
            haystack = [getattr(record, field, None) for field in SEARCH_FIELDS]
            if not any(value is not None and needle in str(value).lower() for value in haystack):
                return False
        return True


class RecordPredicate(BaseModel):
    """Compiled visibility predicate.

    ``clauses`` set to ``None`` means no authorization constraint. Otherwise a
    record is visible when any clause matches it, and always only when the
    requested filters match as well.
    """

    clauses: Optional[List[AccessClause]] = None
    query: RecordQuery = Field(default_factory=RecordQuery)

    @field_validator("clauses", mode="after")
    @classmethod
    def order_clauses(cls, value: Optional[List[AccessClause]]):
        # Equal access must serialize identically regardless of rule order
        if value is None:
            return None
        unique = {clause.model_dump_json(exclude_none=True): clause for clause in value}
        return [unique[key] for key in sorted(unique.keys())]

    @property
    def is_unconstrained(self) -> bool:
        return self.clauses is None

    def canonical(self) -> str:
        return self.model_dump_json(exclude_none=True)

    def matches(self, record: Any) -> bool:
        if not self.query.matches(record):
            return False
        if self.clauses is None:
            return True
        return any(clause.matches(record) for clause in self.clauses)
