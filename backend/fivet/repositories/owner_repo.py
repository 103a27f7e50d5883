"""Owner repository: maps ``persons`` rows to Owner entities."""

from typing import Any, Dict

from fivet.db.base import Person
from fivet.domain.entities import Owner
from fivet.repositories.base_repository import SqlAlchemyRepository


def owner_to_domain(db_person: Person) -> Owner:
    return Owner(
        id=db_person.id,
        first_name=db_person.first_name,
        last_name=db_person.last_name,
        rut=db_person.rut,
        address=db_person.address,
        landline=db_person.landline,
        mobile=db_person.mobile,
        email=db_person.email,
    )


class OwnerRepository(SqlAlchemyRepository[Owner, int]):
    """Repository for Owner persistence operations.

    Veterinarians attending a visit are stored here as well.
    """

    model = Person
    entity_name = "owner"

    def _to_domain(self, record: Person) -> Owner:
        return owner_to_domain(record)

    def _to_values(self, owner: Owner) -> Dict[str, Any]:
        return {
            "rut": owner.rut,
            "first_name": owner.first_name,
            "last_name": owner.last_name,
            "address": owner.address,
            "landline": owner.landline,
            "mobile": owner.mobile,
            "email": owner.email,
        }
