"""
Pytest configuration and fixtures for all tests.
"""

import os
import sys
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure lrems_backend is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from lrems_backend.api.cache import ResponseCache
from lrems_backend.model import Base, Book, EvaluationMonitoring, MonitoringEvaluator, User
from lrems_backend.permissions.overrides import StaticOverridePolicy, load_override_policy
from lrems_backend.permissions.principal import Principal


@pytest.fixture
def engine():
    """In-memory SQLite engine shared across connections."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def Session(engine):
    """Create session factory."""
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def session(Session):
    """Create a new database session for a test."""
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def policy():
    """Override table as shipped with the package."""
    return load_override_policy()


@pytest.fixture
def empty_policy():
    return StaticOverridePolicy({})


@pytest.fixture
def cache():
    return ResponseCache(enabled=True)


SAMPLE_BOOKS = [
    # book_code, learning_area, grade_level, publisher, title, created_by
    ("MATH-1", "Mathematics", 1, "Rex", "Math Adventures 1", "admin"),
    ("MATH-4", "Mathematics", 4, "Vibal", "Math Adventures 4", "admin"),
    ("EPP-5", "EPP", 5, "Rex", "EPP Today", "admin"),
    ("ENG-3", "English", 3, "Phoenix", "Reading Corner", "admin"),
    ("SCI-1", "Science", 1, "Vibal", "Science Explorers 1", "admin"),
    ("SCI-3", "Science", 3, "Phoenix", "Science Explorers 3", "admin"),
    ("SCI-7", "Science", 7, "Rex", "Science Explorers 7", "admin"),
    ("GMRC-2", "GMRC", 2, "Rex", "Good Manners", "admin"),
    ("FIL-3", "Filipino", 3, "Vibal", "Wika at Kultura", "owner"),
    ("AP-7", "Araling Panlipunan", 7, "Phoenix", "Kasaysayan", "owner"),
]


def add_sample_books(session):
    for code, area, grade, publisher, title, created_by in SAMPLE_BOOKS:
        session.add(Book(
            book_code=code,
            learning_area=area,
            grade_level=grade,
            publisher=publisher,
            title=title,
            status="For Evaluation",
            created_by=created_by,
        ))
    session.commit()


@pytest.fixture
def books(session):
    add_sample_books(session)
    return session.query(Book).all()


@pytest.fixture
def monitoring_entries(session, books):
    """One monitoring entry per book; reviewer ev-1 is assigned to the grade 1 books."""
    for book in books:
        evaluators = [MonitoringEvaluator(evaluator_id="ev-2", name="Reviewer Two")]
        if book.grade_level == 1:
            evaluators.append(MonitoringEvaluator(evaluator_id="ev-1", name="Reviewer One"))
        session.add(EvaluationMonitoring(
            book_code=book.book_code,
            learning_area=book.learning_area,
            event_name="Batch 1",
            created_by=book.created_by,
            evaluators=evaluators,
        ))
    session.commit()
    return session.query(EvaluationMonitoring).all()


def make_principal(username: str, rules=None, **kwargs) -> Principal:
    return Principal(username=username, name=username.title(), access_rules=rules or [], **kwargs)


def add_user(session, username: str, rules=None, **kwargs) -> User:
    user = User(
        username=username,
        name=username.title(),
        role=kwargs.pop("role", "Facilitator"),
        access_rules=rules or [],
        **kwargs,
    )
    session.add(user)
    session.commit()
    return user
