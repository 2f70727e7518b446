from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, Enum,
    ForeignKey, Index, Integer, String, Text, func
)
from sqlalchemy.orm import relationship

from .base import Base

BOOK_STATUSES = (
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
)


class Book(Base):
    __tablename__ = 'book'
    __table_args__ = (
        CheckConstraint('grade_level >= 1', name='ck_book_grade_level_positive'),
        Index('book_learning_area_grade_idx', 'learning_area', 'grade_level'),
        Index('book_status_idx', 'status'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(True), nullable=False, server_default=func.now(), onupdate=func.now())
    created_by = Column(String(255))
    updated_by = Column(String(255))

    book_code = Column(String(255), unique=True, nullable=False)
    learning_area = Column(String(255), nullable=False)
    grade_level = Column(Integer, nullable=False)
    publisher = Column(String(255), nullable=False)
    title = Column(String(1024), nullable=False)
    status = Column(Enum(*BOOK_STATUSES, name='book_status'), nullable=False, default='For Evaluation')
    is_new = Column(Boolean, nullable=False, default=True)
    ntp_date = Column(DateTime(True))

    remarks = relationship(
        "Remark",
        back_populates="book",
        cascade="all, delete-orphan",
        order_by="Remark.created_at.desc()",
        lazy="select",
    )


class Remark(Base):
    __tablename__ = 'remark'

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(True), nullable=False, server_default=func.now())
    created_by = Column(String(255))
    book_id = Column(ForeignKey('book.id', ondelete='CASCADE', onupdate='RESTRICT'), nullable=False)
    text = Column(Text, nullable=False)
    from_party = Column(String(255))
    to_party = Column(String(255))

    book = relationship("Book", back_populates="remarks")
