from datetime import datetime
from math import ceil
from typing import Literal, Optional
from pydantic import BaseModel, Field


class ListQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    sort_by: str = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total_items: int) -> "Pagination":
        return cls(
            current_page=page,
            total_pages=ceil(total_items / limit),
            total_items=total_items,
            items_per_page=limit,
            has_next=page * limit < total_items,
            has_prev=page > 1,
        )


class BaseEntityList(BaseModel):
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Update timestamp")

class BaseEntityGet(BaseEntityList):
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
