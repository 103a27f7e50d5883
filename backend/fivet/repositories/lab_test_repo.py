"""LabTest repository: maps ``lab_tests`` rows to LabTest entities."""

from typing import Any, Dict

from fivet.db.base import LabTestRecord
from fivet.domain.entities import LabTest
from fivet.repositories.base_repository import SqlAlchemyRepository
from fivet.repositories.visit_repo import visit_to_domain


def lab_test_to_domain(db_lab_test: LabTestRecord) -> LabTest:
    return LabTest(
        id=db_lab_test.id,
        name=db_lab_test.name,
        date=db_lab_test.date,
        visit=visit_to_domain(db_lab_test.visit),
    )


class LabTestRepository(SqlAlchemyRepository[LabTest, int]):
    """Repository for LabTest persistence operations."""

    model = LabTestRecord
    entity_name = "lab_test"

    def _to_domain(self, record: LabTestRecord) -> LabTest:
        return lab_test_to_domain(record)

    def _check_references(self, lab_test: LabTest) -> None:
        self._require_persisted(lab_test.visit, "visit")

    def _to_values(self, lab_test: LabTest) -> Dict[str, Any]:
        return {
            "name": lab_test.name,
            "date": lab_test.date,
            "visit_id": lab_test.visit.id,
        }
