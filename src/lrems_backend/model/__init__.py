from .base import Base, metadata
from .auth import User
from .book import Book, Remark, BOOK_STATUSES
from .monitoring import EvaluationMonitoring, MonitoringEvaluator, TASK_PROGRESS_STATES

__all__ = [
    'Base',
    'metadata',
    'User',
    'Book',
    'Remark',
    'BOOK_STATUSES',
    'EvaluationMonitoring',
    'MonitoringEvaluator',
    'TASK_PROGRESS_STATES',
]
