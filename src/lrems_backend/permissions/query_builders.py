from typing import Any, List, Optional, Type
from sqlalchemy import and_, false, func, or_, true
from sqlalchemy.orm import Query
from lrems_backend.model.book import Book
from lrems_backend.permissions.predicate import SEARCH_FIELDS, AccessClause, RecordPredicate, RecordQuery

BOOK_ATTRIBUTES = ("learning_area", "grade_level", "status", "publisher", "title")


class RecordFilterQueryBuilder:
    """Translates a compiled RecordPredicate into SQLAlchemy filters.

    Attributes are read from the entity itself when it has the column, otherwise
    through the referenced ``Book`` (entities with a ``book_code`` column).
    """

    @classmethod
    def needs_book_join(cls, entity: Type[Any]) -> bool:
        table_keys = entity.__table__.columns.keys()

        if entity.__tablename__ == Book.__tablename__ or "book_code" not in table_keys:
            return False

        return any(attribute not in table_keys for attribute in BOOK_ATTRIBUTES)

    @classmethod
    def column(cls, entity: Type[Any], name: str):
        if name in entity.__table__.columns.keys():
            return getattr(entity, name)
        elif cls.needs_book_join(entity) and name in Book.__table__.columns.keys():
            return getattr(Book, name)
        return None

    @classmethod
    def clause_expression(cls, entity: Type[Any], clause: AccessClause):
        if clause.matches_nothing:
            return false()

        conditions = []

        if clause.learning_areas is not None:
            conditions.append(cls.column(entity, "learning_area").in_(clause.learning_areas))

        if clause.excluded_learning_areas is not None:
            conditions.append(cls.column(entity, "learning_area").not_in(clause.excluded_learning_areas))

        if clause.grade_levels is not None:
            conditions.append(cls.column(entity, "grade_level").in_(clause.grade_levels))

        if clause.created_by is not None:
            conditions.append(entity.created_by == clause.created_by)

        if len(conditions) == 0:
            return true()

        return and_(*conditions)

    @classmethod
    def query_conditions(cls, entity: Type[Any], requested: RecordQuery) -> List[Any]:
        conditions = []

        filters = (
            ("learning_area", requested.learning_areas),
            ("grade_level", requested.grade_levels),
            ("status", requested.statuses),
            ("publisher", requested.publishers),
        )

        for name, values in filters:
            if values is None:
                continue
            column = cls.column(entity, name)
            if column is None:
                # Attribute does not exist for this entity, nothing can match
                conditions.append(false())
            else:
                conditions.append(column.in_(values))

        if requested.search is not None:
            needle = requested.search.lower()
            columns = [c for c in (cls.column(entity, name) for name in SEARCH_FIELDS) if c is not None]
            conditions.append(or_(*[func.lower(c).contains(needle, autoescape=True) for c in columns]))

        return conditions

    @classmethod
    def predicate_expression(cls, entity: Type[Any], predicate: RecordPredicate) -> Optional[Any]:
        conditions = cls.query_conditions(entity, predicate.query)

        if predicate.clauses is not None:
            if len(predicate.clauses) == 0:
                conditions.append(false())
            else:
                conditions.append(or_(*[cls.clause_expression(entity, c) for c in predicate.clauses]))

        if len(conditions) == 0:
            return None

        return and_(*conditions)

    @classmethod
    def filter_query(cls, query: Query, entity: Type[Any], predicate: RecordPredicate) -> Query:
        """Restrict ``query`` over ``entity`` to the records ``predicate`` admits"""
        if cls.needs_book_join(entity):
            query = query.join(Book, Book.book_code == entity.book_code)

        expression = cls.predicate_expression(entity, predicate)

        if expression is None:
            return query

        return query.filter(expression)
