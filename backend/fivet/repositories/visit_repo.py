"""Visit repository: maps ``visits`` rows to Visit entities."""

from typing import Any, Dict

from fivet.db.base import VisitRecord
from fivet.domain.entities import Visit
from fivet.repositories.base_repository import SqlAlchemyRepository
from fivet.repositories.owner_repo import owner_to_domain
from fivet.repositories.patient_repo import patient_to_domain


def visit_to_domain(db_visit: VisitRecord) -> Visit:
    # Rehydrated with its identity, so the date and vital-range rules are not re-applied
    return Visit(
        id=db_visit.id,
        date=db_visit.date,
        next_visit=db_visit.next_visit,
        temperature=db_visit.temperature,
        weight=db_visit.weight,
        height=db_visit.height,
        diagnosis=db_visit.diagnosis,
        vet=owner_to_domain(db_visit.vet),
        patient=patient_to_domain(db_visit.patient),
    )


class VisitRepository(SqlAlchemyRepository[Visit, int]):
    """Repository for Visit persistence operations."""

    model = VisitRecord
    entity_name = "visit"

    def _to_domain(self, record: VisitRecord) -> Visit:
        return visit_to_domain(record)

    def _check_references(self, visit: Visit) -> None:
        self._require_persisted(visit.vet, "vet")
        self._require_persisted(visit.patient, "patient")

    def _to_values(self, visit: Visit) -> Dict[str, Any]:
        return {
            "date": visit.date,
            "next_visit": visit.next_visit,
            "temperature": visit.temperature,
            "weight": visit.weight,
            "height": visit.height,
            "diagnosis": visit.diagnosis,
            "vet_id": visit.vet.id,
            "patient_id": visit.patient.id,
        }
