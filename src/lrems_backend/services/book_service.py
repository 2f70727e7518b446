import logging
import secrets
import time
from typing import Optional
from sqlalchemy import asc, desc, func
from sqlalchemy.orm import Session, selectinload

from lrems_backend.api.cache import BOOKS_NAMESPACE, MONITORING_NAMESPACE, ResponseCache, build_cache_key
from lrems_backend.api.exceptions import BadRequestException, ForbiddenException, NotFoundException
from lrems_backend.interface.base import Pagination
from lrems_backend.interface.books import (
    BookCreate,
    BookFilterOptions,
    BookGet,
    BookList,
    BookListResponse,
    BookQuery,
    BookUpdate,
    RemarkCreate,
    RemarkGet,
    map_sort_field,
)
from lrems_backend.model.book import Book, Remark
from lrems_backend.model.monitoring import EvaluationMonitoring
from lrems_backend.permissions.core import candidate_record, check_record_access, compile_filter
from lrems_backend.permissions.overrides import OverridePolicy
from lrems_backend.permissions.predicate import RecordPredicate, RecordQuery
from lrems_backend.permissions.principal import Principal
from lrems_backend.permissions.query_builders import RecordFilterQueryBuilder

logger = logging.getLogger(__name__)


def generate_book_code() -> str:
    timestamp = str(int(time.time() * 1000))[-6:]
    return f"{timestamp}{secrets.token_hex(2).upper()}"


class BookService:

    def __init__(self, db: Session, cache: ResponseCache, policy: OverridePolicy):
        self.db = db
        self.cache = cache
        self.policy = policy

    def _get_book_or_throw(self, book_code: str) -> Book:
        book = self.db.query(Book).filter(Book.book_code == book_code).first()

        if book is None:
            raise NotFoundException(f"Book with code {book_code} not found")

        return book

    async def _invalidate(self):
        # Monitoring entries take their grade level from the book
        await self.cache.invalidate_namespace(BOOKS_NAMESPACE)
        await self.cache.invalidate_namespace(MONITORING_NAMESPACE)

    def _filter_options(self, predicate: RecordPredicate) -> BookFilterOptions:
        visible = RecordPredicate(clauses=predicate.clauses, query=RecordQuery())

        def distinct(column):
            query = RecordFilterQueryBuilder.filter_query(self.db.query(column).distinct(), Book, visible)
            return sorted(value for (value,) in query.all() if value is not None)

        return BookFilterOptions(
            available_statuses=distinct(Book.status),
            available_learning_areas=distinct(Book.learning_area),
            grade_levels=distinct(Book.grade_level),
            available_publishers=distinct(Book.publisher),
        )

    def _query_books(self, predicate: RecordPredicate, params: BookQuery) -> dict:
        remarks_count = (
            self.db.query(func.count(Remark.id))
            .filter(Remark.book_id == Book.id)
            .correlate(Book)
            .scalar_subquery()
        )

        query = RecordFilterQueryBuilder.filter_query(self.db.query(Book), Book, predicate)

        if params.has_remarks is not None:
            query = query.filter(remarks_count > 0 if params.has_remarks else remarks_count == 0)

        total_items = query.count()

        sort_column = getattr(Book, map_sort_field(params.sort_by))
        order = asc(sort_column) if params.sort_order == "asc" else desc(sort_column)

        books = (
            query.options(selectinload(Book.remarks))
            .order_by(order, Book.id)
            .offset(params.skip)
            .limit(params.limit)
            .all()
        )

        data = []
        for book in books:
            entry = BookList.model_validate(book)
            entry.remarks_count = len(book.remarks)
            data.append(entry)

        response = BookListResponse(
            data=data,
            pagination=Pagination.build(params.page, params.limit, total_items),
            filters=self._filter_options(predicate),
        )

        return response.model_dump(mode="json")

    async def list_books(self, principal: Principal, params: BookQuery) -> dict:
        predicate = compile_filter(principal, params.to_record_query(), self.policy)

        cache_key = build_cache_key(
            predicate,
            page=params.page,
            limit=params.limit,
            sort_by=map_sort_field(params.sort_by),
            sort_order=params.sort_order,
            has_remarks=params.has_remarks,
        )

        result, hit = await self.cache.get_or_set(
            BOOKS_NAMESPACE,
            cache_key,
            lambda: self._query_books(predicate, params),
        )

        logger.debug(f"Book list for {principal.username} ({'cached' if hit else 'computed'})")

        return result

    def get_book(self, principal: Principal, book_code: str) -> BookGet:
        book = self._get_book_or_throw(book_code)

        if not compile_filter(principal, None, self.policy).matches(book):
            logger.warning(f"Access denied: {principal.username} cannot view book {book_code}")
            raise ForbiddenException("You do not have permission to view this book")

        return BookGet.model_validate(book)

    async def create_book(self, principal: Principal, data: BookCreate) -> BookGet:
        check_record_access(principal, candidate_record(data.learning_area, data.grade_level), self.policy, "create")

        book_code = data.book_code or generate_book_code()

        if self.db.query(Book).filter(Book.book_code == book_code).first() is not None:
            raise BadRequestException(f"Book code {book_code} already exists.")

        book = Book(
            book_code=book_code,
            learning_area=data.learning_area,
            grade_level=data.grade_level,
            publisher=data.publisher,
            title=data.title,
            status=data.status,
            is_new=data.is_new,
            ntp_date=data.ntp_date,
            created_by=principal.username,
        )
        self.db.add(book)

        if data.remark:
            book.remarks.append(Remark(text=data.remark, created_by=principal.name or principal.username))

        self.db.commit()
        self.db.refresh(book)

        logger.info(f"Book created successfully: {book_code} by {principal.username}")
        await self._invalidate()

        return BookGet.model_validate(book)

    async def update_book(self, principal: Principal, book_code: str, data: BookUpdate) -> BookGet:
        book = self._get_book_or_throw(book_code)

        check_record_access(principal, book, self.policy, "update")

        fields = data.model_dump(exclude_unset=True, exclude={"remark"})

        if "learning_area" in fields or "grade_level" in fields:
            # Moving a book requires access to the destination as well
            target = candidate_record(
                fields.get("learning_area") or book.learning_area,
                fields.get("grade_level") or book.grade_level,
                created_by=book.created_by,
            )
            check_record_access(principal, target, self.policy, "update")

        new_code = fields.get("book_code")
        if new_code is not None and new_code != book.book_code:
            if self.db.query(Book).filter(Book.book_code == new_code).first() is not None:
                raise BadRequestException(f"Book code {new_code} already exists.")

        previous_status = book.status

        for field, value in fields.items():
            if value is None and field != "ntp_date":
                continue
            setattr(book, field, value)

        book.updated_by = principal.username

        if data.remark:
            book.remarks.append(Remark(text=data.remark, created_by=principal.name or principal.username))

        self.db.commit()
        self.db.refresh(book)

        logger.info(f"Book updated successfully: {book_code} -> {book.book_code}")
        if previous_status != book.status:
            logger.info(f"Status changed: {previous_status} -> {book.status} for {book.book_code}")

        await self._invalidate()

        return BookGet.model_validate(book)

    async def delete_book(self, principal: Principal, book_code: str):
        book = self._get_book_or_throw(book_code)

        check_record_access(principal, book, self.policy, "delete")

        for entry in self.db.query(EvaluationMonitoring).filter(EvaluationMonitoring.book_code == book.book_code).all():
            self.db.delete(entry)
        self.db.delete(book)
        self.db.commit()

        logger.info(f"Book deleted successfully: {book_code}")
        await self._invalidate()

    async def add_remark(self, principal: Principal, book_code: str, data: RemarkCreate) -> RemarkGet:
        book = self._get_book_or_throw(book_code)

        check_record_access(principal, book, self.policy, "remark")

        remark = Remark(
            book_id=book.id,
            text=data.text,
            from_party=data.from_party,
            to_party=data.to_party,
            created_by=principal.name or principal.username,
        )
        self.db.add(remark)
        self.db.commit()
        self.db.refresh(remark)

        logger.info(f"Remark added to book {book_code}")
        await self.cache.invalidate_namespace(BOOKS_NAMESPACE)

        return RemarkGet.model_validate(remark)

    async def delete_remark(self, principal: Principal, book_code: str, remark_id: int):
        book = self._get_book_or_throw(book_code)

        remark: Optional[Remark] = self.db.query(Remark).filter(Remark.id == remark_id).first()

        if remark is None:
            raise NotFoundException(f"Remark with ID {remark_id} not found")

        if remark.book_id != book.id:
            raise BadRequestException("Remark does not belong to this book")

        check_record_access(principal, book, self.policy, "remark")

        self.db.delete(remark)
        self.db.commit()

        logger.info(f"Remark {remark_id} deleted from book {book_code}")
        await self.cache.invalidate_namespace(BOOKS_NAMESPACE)
