"""Generic SQLAlchemy repository.

One implementation of ``IRepository[T, K]`` serves every entity type: a
subclass names its table model and supplies the two mapping hooks between
the table row and the immutable domain entity. Store faults are rolled back
and wrapped once, as ``DuplicateKeyError`` or ``StorageError``.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, inspect, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased

from fivet.core.exceptions import (
    DuplicateKeyError,
    InvalidArgumentError,
    RepositoryError,
    StorageError,
)
from fivet.domain.interfaces import IQueryBuilder, IRepository, K, T

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION_SQLSTATE = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code == UNIQUE_VIOLATION_SQLSTATE:
        return True
    return "unique" in str(orig if orig is not None else exc).lower()


def translate_store_error(
    session: Session, exc: Exception, operation: str, entity: str
) -> RepositoryError:
    """Roll back ``session`` and return the repository error for ``exc``.

    Driver errors SQLAlchemy does not wrap (e.g. an ``OverflowError`` while
    binding an integer) become ``StorageError`` like any other fault.
    """
    session.rollback()
    context = {"operation": operation, "entity": entity}
    if isinstance(exc, IntegrityError) and is_unique_violation(exc):
        logger.warning("Uniqueness constraint violated", extra={"context": context})
        return DuplicateKeyError(f"{entity} {operation} violates a unique constraint")
    logger.error(
        "Backing store fault", exc_info=exc, extra={"context": context}
    )
    return StorageError(f"{entity} {operation} failed: {exc.__class__.__name__}")


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class SqlAlchemyQueryBuilder(IQueryBuilder[T]):
    """Composed filter over one repository's table.

    Dotted paths join through relationships, each prefix joined once under
    its own alias so ``owner.rut`` and ``owner.first_name`` share a join.
    """

    def __init__(self, repository: "SqlAlchemyRepository"):
        self._repository = repository
        self._stmt = select(repository.model)
        self._aliases: Dict[str, Any] = {}

    def _resolve(self, path: str):
        if not isinstance(path, str) or not path:
            raise InvalidArgumentError(f"Invalid field path: {path!r}")

        *relations, field = path.split(".")
        target = self._repository.model
        prefix = ""
        for name in relations:
            mapper = inspect(target).mapper
            if name not in mapper.relationships:
                raise InvalidArgumentError(
                    f"Unknown relation '{name}' in path '{path}'"
                )
            prefix = f"{prefix}.{name}" if prefix else name
            alias = self._aliases.get(prefix)
            if alias is None:
                alias = aliased(mapper.relationships[name].mapper.class_)
                self._stmt = self._stmt.join(getattr(target, name).of_type(alias))
                self._aliases[prefix] = alias
            target = alias

        if field not in inspect(target).mapper.column_attrs:
            raise InvalidArgumentError(f"Unknown field '{field}' in path '{path}'")
        return getattr(target, field)

    def where_equals(self, path: str, value: Any) -> "SqlAlchemyQueryBuilder[T]":
        column = self._resolve(path)
        self._stmt = self._stmt.where(column == _plain(value))
        return self

    def where_contains(self, path: str, text: str) -> "SqlAlchemyQueryBuilder[T]":
        if text is None:
            raise InvalidArgumentError("Substring filter requires text")
        column = self._resolve(path)
        self._stmt = self._stmt.where(column.contains(str(text), autoescape=True))
        return self

    def order_by(self, path: str) -> "SqlAlchemyQueryBuilder[T]":
        self._stmt = self._stmt.order_by(self._resolve(path))
        return self

    def all(self) -> List[T]:
        return self._repository._fetch(self._stmt, "query")


class SqlAlchemyRepository(IRepository[T, K]):
    """CRUD over one table model bound to a single session.

    Subclasses set ``model`` and implement ``_to_domain`` / ``_to_values``.
    """

    model: Any = None
    entity_name = "entity"

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    # ----- mapping hooks -----
    def _to_domain(self, record) -> T:
        raise NotImplementedError

    def _to_values(self, obj: T) -> Dict[str, Any]:
        """Column values for ``obj``, excluding ``id``."""
        raise NotImplementedError

    def _check_references(self, obj: T) -> None:
        """Reject entities that reference unpersisted parents."""

    @staticmethod
    def _require_persisted(parent, name: str) -> int:
        parent_id = getattr(parent, "id", None)
        if parent_id is None:
            raise InvalidArgumentError(f"{name} must be persisted first")
        return parent_id

    # ----- reads -----
    def _fetch(self, stmt, operation: str) -> List[T]:
        try:
            records = self.db.execute(stmt).scalars().all()
        except Exception as exc:
            raise translate_store_error(
                self.db, exc, operation, self.entity_name
            ) from exc
        return [self._to_domain(record) for record in records]

    def find_all(self) -> List[T]:
        return self._fetch(select(self.model).order_by(self.model.id), "find_all")

    def find_by_id(self, id: K) -> Optional[T]:
        if id is None:
            raise InvalidArgumentError("id is required")
        try:
            record = self.db.get(self.model, id)
        except Exception as exc:
            raise translate_store_error(
                self.db, exc, "find_by_id", self.entity_name
            ) from exc
        return self._to_domain(record) if record else None

    def find_all_by_field(self, field: str, value: Any) -> List[T]:
        return self.new_query().where_equals(field, value).order_by("id").all()

    def new_query(self) -> SqlAlchemyQueryBuilder[T]:
        return SqlAlchemyQueryBuilder(self)

    # ----- writes -----
    def create(self, obj: T, commit: bool = True) -> bool:
        if obj is None:
            raise InvalidArgumentError(f"Cannot create a missing {self.entity_name}")
        if getattr(obj, "id", None) is not None:
            raise InvalidArgumentError(f"{self.entity_name} is already persisted")
        self._check_references(obj)

        record = self.model(**self._to_values(obj))
        try:
            self.db.add(record)
            if commit:
                self.db.commit()
            else:
                self.db.flush()
        except Exception as exc:
            raise translate_store_error(
                self.db, exc, "create", self.entity_name
            ) from exc

        # Entities are frozen; identity is the one field the store assigns
        object.__setattr__(obj, "id", record.id)
        return record.id is not None

    def update(self, obj: T) -> bool:
        if obj is None:
            raise InvalidArgumentError(f"Cannot update a missing {self.entity_name}")
        if getattr(obj, "id", None) is None:
            raise InvalidArgumentError(f"{self.entity_name} ID is required for update")
        self._check_references(obj)

        stmt = (
            update(self.model)
            .where(self.model.id == obj.id)
            .values(**self._to_values(obj))
        )
        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except Exception as exc:
            raise translate_store_error(
                self.db, exc, "update", self.entity_name
            ) from exc
        return result.rowcount == 1

    def delete(self, id: K) -> bool:
        if id is None:
            raise InvalidArgumentError("id is required")
        try:
            result = self.db.execute(delete(self.model).where(self.model.id == id))
            self.db.commit()
        except Exception as exc:
            raise translate_store_error(
                self.db, exc, "delete", self.entity_name
            ) from exc
        return result.rowcount == 1
