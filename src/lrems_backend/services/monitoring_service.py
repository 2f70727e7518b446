import logging
from typing import Any, Optional
from sqlalchemy import desc
from sqlalchemy.orm import Session, selectinload

from lrems_backend.api.cache import MONITORING_NAMESPACE, ResponseCache, build_cache_key
from lrems_backend.api.exceptions import BadRequestException, ForbiddenException, NotFoundException
from lrems_backend.interface.base import Pagination
from lrems_backend.interface.monitoring import (
    EvaluatorGet,
    MonitoringCreate,
    MonitoringGet,
    MonitoringListResponse,
    MonitoringQuery,
    MonitoringUpdate,
    TaskStatusUpdate,
)
from lrems_backend.model.book import Book
from lrems_backend.model.monitoring import EvaluationMonitoring, MonitoringEvaluator
from lrems_backend.permissions.core import can_access_record, candidate_record, check_admin, check_record_access, compile_filter
from lrems_backend.permissions.overrides import OverridePolicy
from lrems_backend.permissions.principal import Principal
from lrems_backend.permissions.query_builders import RecordFilterQueryBuilder

logger = logging.getLogger(__name__)


def monitoring_record(entry: EvaluationMonitoring) -> Any:
    """View of a monitoring entry carrying the grade level of its book"""
    grade_level = entry.book.grade_level if entry.book is not None else None
    return candidate_record(entry.learning_area, grade_level, created_by=entry.created_by)


def monitoring_get(entry: EvaluationMonitoring) -> MonitoringGet:
    result = MonitoringGet.model_validate(entry)
    result.grade_level = entry.book.grade_level if entry.book is not None else None
    return result


class MonitoringService:

    def __init__(self, db: Session, cache: ResponseCache, policy: OverridePolicy):
        self.db = db
        self.cache = cache
        self.policy = policy

    def _get_entry_or_throw(self, book_code: str) -> EvaluationMonitoring:
        entry = (
            self.db.query(EvaluationMonitoring)
            .filter(EvaluationMonitoring.book_code == book_code)
            .first()
        )

        if entry is None:
            raise NotFoundException(f"Monitoring entry for book {book_code} not found")

        return entry

    def _assignment_filter(self, principal: Principal) -> Optional[str]:
        # Reviewers only see the entries they are assigned to
        if principal.evaluator_id is not None and not check_admin(principal, self.policy):
            return principal.evaluator_id
        return None

    def _query_entries(self, predicate, evaluator_id: Optional[str], params: MonitoringQuery) -> dict:
        query = RecordFilterQueryBuilder.filter_query(
            self.db.query(EvaluationMonitoring), EvaluationMonitoring, predicate
        )

        if evaluator_id is not None:
            query = query.filter(
                EvaluationMonitoring.evaluators.any(MonitoringEvaluator.evaluator_id == evaluator_id)
            )

        total_items = query.count()

        entries = (
            query.options(selectinload(EvaluationMonitoring.evaluators), selectinload(EvaluationMonitoring.book))
            .order_by(desc(EvaluationMonitoring.created_at), EvaluationMonitoring.id)
            .offset(params.skip)
            .limit(params.limit)
            .all()
        )

        response = MonitoringListResponse(
            data=[monitoring_get(entry) for entry in entries],
            pagination=Pagination.build(params.page, params.limit, total_items),
        )

        return response.model_dump(mode="json")

    async def list_entries(self, principal: Principal, params: MonitoringQuery) -> dict:
        predicate = compile_filter(principal, params.to_record_query(), self.policy)
        evaluator_id = self._assignment_filter(principal)

        cache_key = build_cache_key(
            predicate,
            evaluator_id=evaluator_id,
            page=params.page,
            limit=params.limit,
        )

        result, _ = await self.cache.get_or_set(
            MONITORING_NAMESPACE,
            cache_key,
            lambda: self._query_entries(predicate, evaluator_id, params),
        )

        return result

    def get_entry(self, principal: Principal, book_code: str) -> MonitoringGet:
        entry = self._get_entry_or_throw(book_code)
        record = monitoring_record(entry)

        if not compile_filter(principal, None, self.policy).matches(record):
            if entry.learning_area == self.policy.sensitive_topic:
                logger.warning(f"Unauthorized {self.policy.sensitive_topic} monitoring view attempt by {principal.username}")
            raise ForbiddenException("You do not have permission to view this monitoring entry")

        return monitoring_get(entry)

    async def create_entry(self, principal: Principal, data: MonitoringCreate) -> MonitoringGet:
        book = self.db.query(Book).filter(Book.book_code == data.book_code).first()

        if book is None:
            raise NotFoundException(f"Book with code {data.book_code} not found")

        check_record_access(principal, candidate_record(data.learning_area, book.grade_level), self.policy, "create")

        existing = (
            self.db.query(EvaluationMonitoring)
            .filter(EvaluationMonitoring.book_code == data.book_code)
            .first()
        )

        if existing is not None:
            raise BadRequestException(f"Monitoring entry for book {data.book_code} already exists")

        entry = EvaluationMonitoring(
            book_code=data.book_code,
            learning_area=data.learning_area,
            event_name=data.event_name,
            event_date=data.event_date,
            created_by=principal.username,
            evaluators=[MonitoringEvaluator(evaluator_id=e.evaluator_id, name=e.name) for e in data.evaluators],
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)

        logger.info(f"Monitoring entry created for book {data.book_code} by {principal.username}")
        await self.cache.invalidate_namespace(MONITORING_NAMESPACE)

        return monitoring_get(entry)

    async def update_entry(self, principal: Principal, book_code: str, data: MonitoringUpdate) -> MonitoringGet:
        entry = self._get_entry_or_throw(book_code)

        check_record_access(principal, monitoring_record(entry), self.policy, "update")

        fields = data.model_dump(exclude_unset=True, exclude={"evaluators"})

        if fields.get("learning_area") is not None:
            # Moving an entry requires access to the destination as well
            grade_level = monitoring_record(entry).grade_level
            target = candidate_record(fields["learning_area"], grade_level, created_by=entry.created_by)
            check_record_access(principal, target, self.policy, "update")

        for field, value in fields.items():
            if value is None and field == "learning_area":
                continue
            setattr(entry, field, value)

        if data.evaluators is not None:
            current = {e.evaluator_id: e for e in entry.evaluators}
            entry.evaluators = [
                current.get(e.evaluator_id) or MonitoringEvaluator(evaluator_id=e.evaluator_id, name=e.name)
                for e in data.evaluators
            ]

        entry.updated_by = principal.username

        self.db.commit()
        self.db.refresh(entry)

        logger.info(f"Monitoring entry updated for book {book_code}")
        await self.cache.invalidate_namespace(MONITORING_NAMESPACE)

        return monitoring_get(entry)

    async def delete_entry(self, principal: Principal, book_code: str):
        entry = self._get_entry_or_throw(book_code)

        check_record_access(principal, monitoring_record(entry), self.policy, "delete")

        self.db.delete(entry)
        self.db.commit()

        logger.info(f"Monitoring entry deleted for book {book_code}")
        await self.cache.invalidate_namespace(MONITORING_NAMESPACE)

    async def update_task_status(self, principal: Principal, book_code: str, evaluator_id: str, update: TaskStatusUpdate) -> EvaluatorGet:
        entry = self._get_entry_or_throw(book_code)

        evaluator = next((e for e in entry.evaluators if e.evaluator_id == evaluator_id), None)

        if evaluator is None:
            raise NotFoundException("Evaluator not found in this monitoring entry")

        # Reviewers may report progress on their own assignment
        if principal.evaluator_id != evaluator_id and not can_access_record(principal, monitoring_record(entry), self.policy, "update"):
            logger.warning(f"Access denied: {principal.username} cannot update task status for {evaluator_id} on {book_code}")
            raise ForbiddenException("You do not have permission to update this task status")

        update.apply(evaluator)
        entry.updated_by = principal.username

        self.db.commit()
        self.db.refresh(evaluator)

        logger.info(f"Task {update.task_field} set to '{update.status}' for evaluator {evaluator_id} on {book_code}")
        await self.cache.invalidate_namespace(MONITORING_NAMESPACE)

        return EvaluatorGet.model_validate(evaluator)
