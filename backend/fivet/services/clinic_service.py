"""
Clinic service: the operations the outside world calls into.

This service:
- Owns the engine and the single session built from its StorageConfig
- Composes the entity repositories, the child relations and the patient search
- Works with domain entities, not database models
"""

import logging
from typing import List, Optional

from fivet.core.config import StorageConfig
from fivet.core.exceptions import NotFoundError, RepositoryError, StorageError
from fivet.db.session import create_engine_from_config, create_tables, make_session_factory
from fivet.domain.entities import LabTest, Owner, Patient, Visit
from fivet.repositories.lab_test_repo import LabTestRepository
from fivet.repositories.owner_repo import OwnerRepository
from fivet.repositories.patient_repo import PatientRepository
from fivet.repositories.relation_repo import patient_visits, visit_lab_tests
from fivet.repositories.visit_repo import VisitRepository
from fivet.services.search_service import PatientSearchService

logger = logging.getLogger(__name__)


class ClinicService:
    """Application service for the clinic records use-cases."""

    def __init__(self, config: Optional[StorageConfig] = None) -> None:
        self.config = config or StorageConfig.from_env()
        self.engine = create_engine_from_config(self.config)
        create_tables(self.engine)
        self.db = make_session_factory(self.engine)()

        self.owners = OwnerRepository(self.db)
        self.patients = PatientRepository(self.db)
        self.visits = VisitRepository(self.db)
        self.lab_tests = LabTestRepository(self.db)
        self.patient_visits = patient_visits(self.db, self.visits)
        self.visit_lab_tests = visit_lab_tests(self.db, self.lab_tests)
        self.patient_search = PatientSearchService(self.patients)

    # ----- lifecycle -----
    def close(self) -> None:
        """Release the session and dispose of the engine."""
        self.db.close()
        self.engine.dispose()

    def __enter__(self) -> "ClinicService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @staticmethod
    def _discard(entity) -> None:
        # The repository rolled the transaction back; the flushed id is gone too
        object.__setattr__(entity, "id", None)

    # ----- registrations -----
    def register_owner(self, owner: Owner) -> Owner:
        """Persist a new owner and return it as stored."""
        if not self.owners.create(owner):
            raise StorageError("Owner was not stored")
        logger.info(
            "Owner registered", extra={"context": {"entity": "owner", "id": owner.id}}
        )
        return self.owners.find_by_id(owner.id)

    def register_patient(self, patient: Patient) -> Patient:
        """Persist a new patient for an already registered owner."""
        if not self.patients.create(patient):
            raise StorageError("Patient was not stored")
        logger.info(
            "Patient registered",
            extra={
                "context": {
                    "entity": "patient",
                    "id": patient.id,
                    "number": patient.number,
                }
            },
        )
        return self.patients.find_by_id(patient.id)

    def register_visit(self, visit: Visit) -> Visit:
        """Persist a visit and append it to its patient's visits.

        The visit row, its link row and the re-persisted patient commit as
        one transaction; on a store fault none of them is kept.
        """
        try:
            if not self.visits.create(visit, commit=False):
                raise StorageError("Visit was not stored")
            self.patient_visits.append(visit.patient.id, visit.id, commit=False)
            self.patients.update(visit.patient)
        except RepositoryError:
            self._discard(visit)
            raise
        logger.info(
            "Visit registered",
            extra={
                "context": {
                    "entity": "visit",
                    "id": visit.id,
                    "patient_id": visit.patient.id,
                }
            },
        )
        return self.visits.find_by_id(visit.id)

    def register_lab_test(self, lab_test: LabTest) -> LabTest:
        """Persist a lab test and append it to its visit's lab tests, atomically."""
        try:
            if not self.lab_tests.create(lab_test, commit=False):
                raise StorageError("Lab test was not stored")
            self.visit_lab_tests.append(lab_test.visit.id, lab_test.id, commit=False)
            self.visits.update(lab_test.visit)
        except RepositoryError:
            self._discard(lab_test)
            raise
        logger.info(
            "Lab test registered",
            extra={
                "context": {
                    "entity": "lab_test",
                    "id": lab_test.id,
                    "visit_id": lab_test.visit.id,
                }
            },
        )
        return self.lab_tests.find_by_id(lab_test.id)

    # ----- queries -----
    def search_patients(self, query: str) -> List[Patient]:
        return self.patient_search.search(query)

    def list_patients(self) -> List[Patient]:
        return self.patients.find_all()

    def list_owners(self) -> List[Owner]:
        return self.owners.find_all()

    def lookup_owner(self, owner_id: int) -> Optional[Owner]:
        return self.owners.find_by_id(owner_id)

    def find_patient(self, number: int) -> Optional[Patient]:
        """Resolve a patient number to its patient, or None."""
        matches = self.patients.find_all_by_field("number", number)
        return matches[0] if matches else None

    def owner_of_patient(self, number: int) -> Optional[Owner]:
        patient = self.find_patient(number)
        return patient.owner if patient else None

    def list_visits(self, number: int) -> List[Visit]:
        """Visits of the patient carrying ``number``, in registration order.

        Raises:
            NotFoundError: no patient carries that number
        """
        patient = self.find_patient(number)
        if patient is None:
            raise NotFoundError(f"No patient with number {number}")
        return self.patient_visits.children(patient.id)

    def list_lab_tests(self, visit_id: int) -> List[LabTest]:
        """Lab tests of a visit, in registration order.

        Raises:
            NotFoundError: the visit does not exist
        """
        if self.visits.find_by_id(visit_id) is None:
            raise NotFoundError(f"No visit with id {visit_id}")
        return self.visit_lab_tests.children(visit_id)
