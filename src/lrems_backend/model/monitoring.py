from sqlalchemy import (
    Column, DateTime, Enum, ForeignKey, Index, Integer, String, func
)
from sqlalchemy.orm import relationship

from .base import Base

TASK_PROGRESS_STATES = ('Done', 'Pending', 'Ongoing Evaluation')


class EvaluationMonitoring(Base):
    __tablename__ = 'evaluation_monitoring'
    __table_args__ = (
        Index('evaluation_monitoring_area_idx', 'learning_area'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(True), nullable=False, server_default=func.now(), onupdate=func.now())
    created_by = Column(String(255))
    updated_by = Column(String(255))

    # Grade level is taken from the referenced book
    book_code = Column(ForeignKey('book.book_code', ondelete='CASCADE', onupdate='CASCADE'), unique=True, nullable=False)
    learning_area = Column(String(255), nullable=False)
    event_name = Column(String(255))
    event_date = Column(String(255))

    book = relationship("Book", lazy="select")
    evaluators = relationship(
        "MonitoringEvaluator",
        back_populates="monitoring",
        cascade="all, delete-orphan",
        lazy="select",
    )


class MonitoringEvaluator(Base):
    __tablename__ = 'monitoring_evaluator'
    __table_args__ = (
        Index('monitoring_evaluator_assignment_idx', 'monitoring_id', 'evaluator_id', unique=True),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    monitoring_id = Column(ForeignKey('evaluation_monitoring.id', ondelete='CASCADE', onupdate='RESTRICT'), nullable=False)
    evaluator_id = Column(String(255), nullable=False)
    name = Column(String(255))

    has_tx_and_tm = Column(Enum('Yes', 'No', name='tx_and_tm_state'), nullable=False, default='No')
    individual_upload = Column(Enum(*TASK_PROGRESS_STATES, name='individual_upload_state'), nullable=False, default='Pending')
    team_upload = Column(Enum(*TASK_PROGRESS_STATES, name='team_upload_state'), nullable=False, default='Pending')
    tx_and_tm_with_marginal_notes = Column(Enum(*TASK_PROGRESS_STATES, name='marginal_notes_state'), nullable=False, default='Pending')
    signed_summary_form = Column(Enum(*TASK_PROGRESS_STATES, name='summary_form_state'), nullable=False, default='Pending')
    clearance = Column(Enum(*TASK_PROGRESS_STATES, name='clearance_state'), nullable=False, default='Pending')

    monitoring = relationship("EvaluationMonitoring", back_populates="evaluators")
