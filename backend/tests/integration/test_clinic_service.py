"""
Integration tests for ClinicService: registrations, listings and lifecycle.
"""

import logging

import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError

from factories.entity_factories import (
    LabTestFactory,
    OwnerFactory,
    PatientFactory,
    VisitFactory,
)
from fivet.core.exceptions import (
    DuplicateKeyError,
    InvalidArgumentError,
    NotFoundError,
    StorageError,
)
from fivet.db.base import PatientVisit, VisitLabTest
from fivet.db.seed import seed_demo_records
from fivet.services.clinic_service import ClinicService


@pytest.fixture
def owner(clinic_service):
    return clinic_service.register_owner(OwnerFactory.build())


@pytest.fixture
def vet(clinic_service):
    return clinic_service.register_owner(OwnerFactory.vet())


@pytest.fixture
def patient(clinic_service, owner):
    return clinic_service.register_patient(PatientFactory.build(owner))


@pytest.fixture
def visit(clinic_service, vet, patient):
    return clinic_service.register_visit(VisitFactory.build(vet, patient))


class TestRegistrations:
    def test_register_owner_returns_stored_owner(self, clinic_service):
        owner = OwnerFactory.build()

        stored = clinic_service.register_owner(owner)

        assert stored.id is not None
        assert stored == owner
        assert clinic_service.lookup_owner(stored.id) == stored

    def test_registration_is_logged(self, clinic_service, caplog):
        with caplog.at_level(logging.INFO, logger="fivet.services.clinic_service"):
            stored = clinic_service.register_owner(OwnerFactory.build())

        record = caplog.records[-1]
        assert record.getMessage() == "Owner registered"
        assert record.context == {"entity": "owner", "id": stored.id}

    def test_register_duplicate_owner(self, clinic_service, owner):
        with pytest.raises(DuplicateKeyError):
            clinic_service.register_owner(OwnerFactory.build())
        assert len(clinic_service.list_owners()) == 1

    def test_register_patient(self, clinic_service, owner):
        stored = clinic_service.register_patient(PatientFactory.build(owner))

        assert stored.owner == owner
        assert clinic_service.list_patients() == [stored]

    def test_register_patient_for_unknown_owner(self, clinic_service):
        with pytest.raises(InvalidArgumentError):
            clinic_service.register_patient(PatientFactory.build(OwnerFactory.build()))

    def test_register_visit_appends_to_patient(self, clinic_service, vet, patient):
        before = clinic_service.patient_visits.count(patient.id)

        stored = clinic_service.register_visit(VisitFactory.build(vet, patient))

        assert clinic_service.patient_visits.count(patient.id) == before + 1
        assert clinic_service.list_visits(patient.number) == [stored]
        assert stored.patient == patient

    def test_visits_are_listed_in_registration_order(self, clinic_service, vet, patient):
        first = clinic_service.register_visit(
            VisitFactory.build(vet, patient, diagnosis="Vacuna")
        )
        second = clinic_service.register_visit(
            VisitFactory.build(vet, patient, diagnosis="Desparasitacion")
        )

        assert clinic_service.list_visits(patient.number) == [first, second]

    def test_register_lab_test_appends_to_visit(self, clinic_service, visit):
        stored = clinic_service.register_lab_test(LabTestFactory.build(visit))

        assert clinic_service.visit_lab_tests.count(visit.id) == 1
        assert clinic_service.list_lab_tests(visit.id) == [stored]
        assert stored.visit == visit

    def test_failed_patient_write_leaves_service_usable(self, clinic_service, owner):
        patient = PatientFactory.build(owner)
        object.__setattr__(patient, "number", 10**20)

        with pytest.raises(StorageError):
            clinic_service.register_patient(patient)

        assert clinic_service.list_owners() == [owner]
        assert clinic_service.list_patients() == []

    def test_visit_is_not_kept_when_its_link_fails(self, clinic_service, vet, patient):
        def reject_links(session, flush_context, instances):
            if any(isinstance(obj, PatientVisit) for obj in session.new):
                raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        visit = VisitFactory.build(vet, patient)
        event.listen(clinic_service.db, "before_flush", reject_links)
        try:
            with pytest.raises(StorageError):
                clinic_service.register_visit(visit)
        finally:
            event.remove(clinic_service.db, "before_flush", reject_links)

        assert visit.id is None
        assert clinic_service.visits.find_all() == []
        assert clinic_service.list_visits(patient.number) == []

    def test_lab_test_is_not_kept_when_its_link_fails(self, clinic_service, visit):
        def reject_links(session, flush_context, instances):
            if any(isinstance(obj, VisitLabTest) for obj in session.new):
                raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        lab_test = LabTestFactory.build(visit)
        event.listen(clinic_service.db, "before_flush", reject_links)
        try:
            with pytest.raises(StorageError):
                clinic_service.register_lab_test(lab_test)
        finally:
            event.remove(clinic_service.db, "before_flush", reject_links)

        assert lab_test.id is None
        assert clinic_service.lab_tests.find_all() == []
        assert clinic_service.list_visits(visit.patient.number) == [visit]


class TestLookups:
    def test_list_owners(self, clinic_service, owner, vet):
        assert clinic_service.list_owners() == [owner, vet]

    def test_lookup_missing_owner(self, clinic_service):
        assert clinic_service.lookup_owner(42) is None

    def test_find_patient_by_number(self, clinic_service, patient):
        assert clinic_service.find_patient(patient.number) == patient
        assert clinic_service.find_patient(9999) is None

    def test_owner_of_patient(self, clinic_service, owner, patient):
        assert clinic_service.owner_of_patient(patient.number) == owner
        assert clinic_service.owner_of_patient(9999) is None

    def test_list_visits_of_unknown_patient(self, clinic_service):
        with pytest.raises(NotFoundError):
            clinic_service.list_visits(9999)

    def test_list_visits_of_patient_without_visits(self, clinic_service, patient):
        assert clinic_service.list_visits(patient.number) == []

    def test_list_lab_tests_of_unknown_visit(self, clinic_service):
        with pytest.raises(NotFoundError):
            clinic_service.list_lab_tests(77)


class TestLifecycle:
    def test_context_manager_closes_session(self, storage_config):
        with ClinicService(storage_config) as service:
            service.register_owner(OwnerFactory.build())
            assert len(service.list_owners()) == 1

    def test_each_service_owns_its_database(self, storage_config, clinic_service, owner):
        with ClinicService(storage_config) as other:
            assert other.list_owners() == []

    def test_file_database_survives_restart(self, tmp_path):
        from fivet.core.config import StorageConfig

        config = StorageConfig(
            database_url=f"sqlite:///{tmp_path / 'fivet.db'}", slow_query_alerts=False
        )
        with ClinicService(config) as service:
            seed_demo_records(service)

        with ClinicService(config) as service:
            assert [p.number for p in service.list_patients()] == [23, 22, 404]
            # Seeding again is a no-op
            assert seed_demo_records(service) == []
            assert len(service.list_owners()) == 3
