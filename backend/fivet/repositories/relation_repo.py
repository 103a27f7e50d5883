"""Ordered parent -> children collections kept in explicit link tables.

A patient's visits and a visit's lab tests are not live collections on the
entities; each append writes a link row at the next position, and reading
the collection joins the link table back to the child table.
"""

from typing import Any, List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from fivet.core.exceptions import InvalidArgumentError
from fivet.db.base import PatientVisit, VisitLabTest
from fivet.domain.interfaces import C, IChildRelation
from fivet.repositories.base_repository import SqlAlchemyRepository, translate_store_error
from fivet.repositories.lab_test_repo import LabTestRepository
from fivet.repositories.visit_repo import VisitRepository


class ChildRelationRepository(IChildRelation[C]):
    """Append-only ordered relation between two repositories' tables."""

    def __init__(
        self,
        db_session: Session,
        link_model: Any,
        parent_column: str,
        child_column: str,
        children_repository: SqlAlchemyRepository,
    ) -> None:
        self.db = db_session
        self.link_model = link_model
        self._parent = getattr(link_model, parent_column)
        self._child = getattr(link_model, child_column)
        self._parent_column = parent_column
        self._child_column = child_column
        self.children_repository = children_repository

    @property
    def _name(self) -> str:
        return self.link_model.__tablename__

    def append(self, parent_id: int, child_id: int, commit: bool = True) -> bool:
        if parent_id is None or child_id is None:
            raise InvalidArgumentError("Parent and child must be persisted first")

        try:
            next_position = self.db.execute(
                select(func.coalesce(func.max(self.link_model.position) + 1, 0)).where(
                    self._parent == parent_id
                )
            ).scalar_one()
            link = self.link_model(
                **{
                    self._parent_column: parent_id,
                    self._child_column: child_id,
                    "position": next_position,
                }
            )
            self.db.add(link)
            if commit:
                self.db.commit()
            else:
                self.db.flush()
        except Exception as exc:
            raise translate_store_error(self.db, exc, "append", self._name) from exc
        return link.id is not None

    def children(self, parent_id: int) -> List[C]:
        child_model = self.children_repository.model
        stmt = (
            select(child_model)
            .join(self.link_model, self._child == child_model.id)
            .where(self._parent == parent_id)
            .order_by(self.link_model.position)
        )
        return self.children_repository._fetch(stmt, f"{self._name}.children")

    def count(self, parent_id: int) -> int:
        try:
            return self.db.execute(
                select(func.count())
                .select_from(self.link_model)
                .where(self._parent == parent_id)
            ).scalar_one()
        except Exception as exc:
            raise translate_store_error(self.db, exc, "count", self._name) from exc


def patient_visits(
    db_session: Session, visit_repository: VisitRepository
) -> ChildRelationRepository:
    """A patient's visits, in registration order."""
    return ChildRelationRepository(
        db_session, PatientVisit, "patient_id", "visit_id", visit_repository
    )


def visit_lab_tests(
    db_session: Session, lab_test_repository: LabTestRepository
) -> ChildRelationRepository:
    """A visit's lab tests, in registration order."""
    return ChildRelationRepository(
        db_session, VisitLabTest, "visit_id", "lab_test_id", lab_test_repository
    )
