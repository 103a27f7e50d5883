"""Patient repository: maps ``patients`` rows to Patient entities."""

from typing import Any, Dict

from fivet.db.base import PatientRecord
from fivet.domain.entities import Patient
from fivet.repositories.base_repository import SqlAlchemyRepository
from fivet.repositories.owner_repo import owner_to_domain


def patient_to_domain(db_patient: PatientRecord) -> Patient:
    return Patient(
        id=db_patient.id,
        number=db_patient.number,
        name=db_patient.name,
        species=db_patient.species,
        birth_date=db_patient.birth_date,
        breed=db_patient.breed,
        sex=db_patient.sex,
        color=db_patient.color,
        category=db_patient.category,
        owner=owner_to_domain(db_patient.owner),
    )


class PatientRepository(SqlAlchemyRepository[Patient, int]):
    """Repository for Patient persistence operations."""

    model = PatientRecord
    entity_name = "patient"

    def _to_domain(self, record: PatientRecord) -> Patient:
        return patient_to_domain(record)

    def _check_references(self, patient: Patient) -> None:
        self._require_persisted(patient.owner, "owner")

    def _to_values(self, patient: Patient) -> Dict[str, Any]:
        return {
            "number": patient.number,
            "name": patient.name,
            "species": patient.species,
            "birth_date": patient.birth_date,
            "breed": patient.breed,
            "sex": patient.sex.value,
            "color": patient.color,
            "category": patient.category.value,
            "owner_id": patient.owner.id,
        }
