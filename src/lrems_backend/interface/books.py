from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from lrems_backend.interface.base import BaseEntityGet, ListQuery, Pagination
from lrems_backend.model.book import BOOK_STATUSES
from lrems_backend.permissions.predicate import RecordQuery

BookStatus = Literal[
    'For Evaluation',
    'For Revision',
    'For ROR',
    'For Finalization',
    'For FRR and Signing Off',
    'Final Revised copy',
    'NOT FOUND',
    'RETURNED',
    'DQ/FOR RETURN',
    'In Progress',
]

# Client facing sort names
SORT_FIELDS = {
    "bookCode": "book_code",
    "learningArea": "learning_area",
    "gradeLevel": "grade_level",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

SORTABLE_COLUMNS = ("book_code", "learning_area", "grade_level", "publisher", "title", "status", "created_at", "updated_at")


def map_sort_field(sort_by: Optional[str]) -> str:
    column = SORT_FIELDS.get(sort_by, sort_by)
    return column if column in SORTABLE_COLUMNS else "created_at"


class RemarkCreate(BaseModel):
    text: str = Field(min_length=1, max_length=1000)
    from_party: Optional[str] = None
    to_party: Optional[str] = None


class RemarkGet(BaseModel):
    id: int
    text: str
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None
    from_party: Optional[str] = None
    to_party: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class BookCreate(BaseModel):
    book_code: Optional[str] = None
    learning_area: str = Field(min_length=1)
    grade_level: int = Field(ge=1)
    publisher: str = Field(min_length=1)
    title: str = Field(min_length=1)
    status: BookStatus = 'For Evaluation'
    is_new: bool = True
    ntp_date: Optional[datetime] = None
    remark: Optional[str] = None

    @field_validator("learning_area", "publisher", "title", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value


class BookUpdate(BaseModel):
    book_code: Optional[str] = None
    learning_area: Optional[str] = Field(None, min_length=1)
    grade_level: Optional[int] = Field(None, ge=1)
    publisher: Optional[str] = Field(None, min_length=1)
    title: Optional[str] = Field(None, min_length=1)
    status: Optional[BookStatus] = None
    is_new: Optional[bool] = None
    ntp_date: Optional[datetime] = None
    remark: Optional[str] = None


class BookGet(BaseEntityGet):
    id: int
    book_code: str
    learning_area: str
    grade_level: int
    publisher: str
    title: str
    status: str
    is_new: bool
    ntp_date: Optional[datetime] = None
    remarks: List[RemarkGet] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class BookList(BookGet):
    remarks_count: int = 0


class BookFilterOptions(BaseModel):
    available_statuses: List[str] = Field(default_factory=list)
    available_learning_areas: List[str] = Field(default_factory=list)
    grade_levels: List[int] = Field(default_factory=list)
    available_publishers: List[str] = Field(default_factory=list)


class BookListResponse(BaseModel):
    data: List[BookList]
    pagination: Pagination
    filters: BookFilterOptions


class BookQuery(ListQuery):
    search: Optional[str] = None
    status: Optional[List[str]] = None
    learning_area: Optional[List[str]] = None
    grade_level: Optional[List[int]] = None
    publisher: Optional[List[str]] = None
    has_remarks: Optional[bool] = None

    @field_validator("status")
    @classmethod
    def check_status(cls, value):
        if value is not None:
            unknown = [s for s in value if s not in BOOK_STATUSES]
            if len(unknown) > 0:
                raise ValueError(f"Unknown status: {', '.join(unknown)}")
        return value

    def to_record_query(self) -> RecordQuery:
        return RecordQuery(
            learning_areas=self.learning_area,
            grade_levels=self.grade_level,
            statuses=self.status,
            publishers=self.publisher,
            search=self.search,
        )
