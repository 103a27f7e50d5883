"""
Demo data seeding.

Registers the sample owners and patients used throughout the test suite so a
fresh database has something to search. Idempotent: owners whose rut is
already stored, and patients whose number is already stored, are skipped.
"""

import logging
from datetime import date
from typing import List

from fivet.domain.entities import Category, Owner, Patient, Sex

logger = logging.getLogger(__name__)

DEMO_OWNERS = [
    {
        "first_name": "Dylan",
        "last_name": "Frost",
        "rut": "247305335",
        "address": "Fake 541",
        "landline": "55229988",
        "mobile": "998761234",
        "email": "dfrost@gmail.com",
    },
    {
        "first_name": "Brenda",
        "last_name": "Lopez",
        "rut": "191468694",
        "address": "Fake 653",
        "landline": "55218877",
        "mobile": "963293074",
        "email": "blopez@hotmail.com",
    },
    {
        "first_name": "Mauro",
        "last_name": "Fuentes",
        "rut": "198774081",
        "address": "Fake 123",
        "landline": "55225544",
        "mobile": "948931276",
        "email": "mfuentes@gmail.com",
    },
]

DEMO_PATIENTS = [
    {
        "number": 23,
        "name": "Harry",
        "species": "Felino",
        "breed": "American shorthair",
        "sex": Sex.MALE,
        "color": "Amarillo",
        "category": Category.OUTPATIENT,
        "owner_rut": "191468694",
    },
    {
        "number": 22,
        "name": "Artemi",
        "species": "Felino",
        "breed": "Siberiano",
        "sex": Sex.FEMALE,
        "color": "Gris",
        "category": Category.RESIDENT,
        "owner_rut": "198774081",
    },
    {
        "number": 404,
        "name": "Askar",
        "species": "Canino",
        "breed": "Pastor belga",
        "sex": Sex.MALE,
        "color": "Negro",
        "category": Category.OUTPATIENT,
        "owner_rut": "247305335",
    },
]


def seed_demo_records(service) -> List[Patient]:
    """Register the demo owners and patients through ``service``.

    Returns the patients registered by this call.
    """
    owners = {}
    for data in DEMO_OWNERS:
        existing = service.owners.find_all_by_field("rut", data["rut"])
        if existing:
            owners[data["rut"]] = existing[0]
            logger.info(
                "Demo owner already present",
                extra={"context": {"owner_id": existing[0].id}},
            )
            continue
        owners[data["rut"]] = service.register_owner(Owner(**data))

    created = []
    for data in DEMO_PATIENTS:
        fields = dict(data)
        owner = owners[fields.pop("owner_rut")]
        if service.find_patient(fields["number"]) is not None:
            continue
        patient = Patient(birth_date=date.today(), owner=owner, **fields)
        created.append(service.register_patient(patient))

    logger.info(
        "Demo records seeded",
        extra={"context": {"patients_created": len(created)}},
    )
    return created
