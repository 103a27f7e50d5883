import logging
import re
from typing import List

from fivet.core.exceptions import InvalidArgumentError
from fivet.domain.entities import PATIENT_NUMBER_MAX, Patient
from fivet.domain.interfaces import IRepository

logger = logging.getLogger(__name__)

NUMERIC_QUERY = re.compile(r"[0-9]+")


class PatientSearchService:
    """Resolve a free-text query into matching patients.

    Up to four sub-searches run independently and their results are
    concatenated in branch order, duplicates included:

    1. numeric query: patients whose number equals the query (none when it
       exceeds the largest storable patient number)
    2. numeric query: patients whose owner's rut contains the query
    3. patients whose name contains the query
    4. patients whose owner's first name contains the query

    Substring matches are case-sensitive. Each branch is ordered by patient id.
    """

    def __init__(self, patient_repository: IRepository[Patient, int]):
        self.patients = patient_repository

    def search(self, query: str) -> List[Patient]:
        if query is None:
            raise InvalidArgumentError("Search query is required")
        if not isinstance(query, str):
            raise InvalidArgumentError("Search query must be text")

        results: List[Patient] = []

        if NUMERIC_QUERY.fullmatch(query):
            number = int(query)
            # No stored number exceeds the column range
            by_number = (
                self.patients.find_all_by_field("number", number)
                if number <= PATIENT_NUMBER_MAX
                else []
            )
            self._log_branch("number", query, by_number)
            results.extend(by_number)

            by_rut = (
                self.patients.new_query()
                .where_contains("owner.rut", query)
                .order_by("id")
                .all()
            )
            self._log_branch("owner_rut", query, by_rut)
            results.extend(by_rut)

        by_name = (
            self.patients.new_query().where_contains("name", query).order_by("id").all()
        )
        self._log_branch("name", query, by_name)
        results.extend(by_name)

        by_owner_name = (
            self.patients.new_query()
            .where_contains("owner.first_name", query)
            .order_by("id")
            .all()
        )
        self._log_branch("owner_name", query, by_owner_name)
        results.extend(by_owner_name)

        return results

    @staticmethod
    def _log_branch(branch: str, query: str, hits: List[Patient]) -> None:
        logger.debug(
            "Patient search branch evaluated",
            extra={"context": {"branch": branch, "query": query, "hits": len(hits)}},
        )
