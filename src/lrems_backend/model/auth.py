from sqlalchemy import (
    Boolean, Column, DateTime, Enum, Integer, String, JSON, func
)

from .base import Base


class User(Base):
    __tablename__ = 'user'

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(True), nullable=False, server_default=func.now(), onupdate=func.now())
    username = Column(String(255), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(Enum('Administrator', 'Facilitator', 'Evaluator', name='user_role'), nullable=False, default='Facilitator')

    # Access grants: JSON array of {learning_areas, grade_levels}
    access_rules = Column(JSON, nullable=False, default=list)
    access_rules_version = Column(Integer, nullable=False, default=1, server_default="1")
    is_admin_access = Column(Boolean, nullable=False, default=False)

    # Link to an external reviewer profile
    evaluator_id = Column(String(255), nullable=True)
