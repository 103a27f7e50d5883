"""
Domain entities - Pure business rules for the clinic records.

Each entity validates itself on construction and is immutable afterwards.
The only field a store may assign later is ``id``; an entity without an
``id`` has not been persisted yet.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional

from fivet.core.config import APP_TZ
from fivet.core.exceptions import InvalidFormatError, OutOfRangeError
from fivet.core.validation import (
    check_range,
    require_date,
    require_datetime,
    require_enum,
    require_fields,
    require_min_length,
    require_number,
    require_pattern,
    require_rut,
)

LANDLINE_PATTERN = re.compile(r"[0-9]{8}")
MOBILE_PATTERN = re.compile(r"9[0-9]{8}")
EMAIL_PATTERN = re.compile(
    r"[_a-z0-9-]+(\.[_a-z0-9-]+)*@[a-z0-9-]+(\.[a-z0-9-]+)*(\.[a-z]{2,4})"
)

# Declared bounds for visit vitals: (minimum, maximum)
TEMPERATURE_RANGE = (0.0, 50.0)
WEIGHT_RANGE = (0.0, 1000.0)
HEIGHT_RANGE = (0.0, 200.0)

# Largest patient number a 64-bit integer column holds
PATIENT_NUMBER_MAX = 2**63 - 1


def _set(entity, name, value) -> None:
    object.__setattr__(entity, name, value)


class Sex(str, Enum):
    MALE = "male"
    FEMALE = "female"


class Category(str, Enum):
    """Whether the patient is hospitalized or attended as an outpatient."""

    RESIDENT = "resident"
    OUTPATIENT = "outpatient"


@dataclass(frozen=True)
class Owner:
    """A clinic client. Also used for the veterinarian attending a visit.

    Phones may be given as int or str; they are stored as digit strings.
    """

    first_name: str
    last_name: str
    rut: str
    address: str
    landline: str
    mobile: str
    email: str
    id: Optional[int] = None

    def __post_init__(self):
        """Validate domain rules."""
        require_fields(
            [
                ("first_name", self.first_name),
                ("last_name", self.last_name),
                ("rut", self.rut),
                ("address", self.address),
                ("landline", self.landline),
                ("mobile", self.mobile),
                ("email", self.email),
            ]
        )
        require_min_length(self.first_name, "first_name", 2)
        require_min_length(self.last_name, "last_name", 3)
        require_rut(self.rut)
        require_min_length(self.address, "address", 2)
        _set(self, "landline", require_pattern(self.landline, "landline", LANDLINE_PATTERN))
        _set(self, "mobile", require_pattern(self.mobile, "mobile", MOBILE_PATTERN))
        require_pattern(self.email, "email", EMAIL_PATTERN)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass(frozen=True)
class Patient:
    """An animal under clinic care, identified by its unique patient number."""

    number: int
    name: str
    species: str
    birth_date: date
    breed: Optional[str]
    sex: Sex
    color: str
    category: Category
    owner: Owner
    id: Optional[int] = None

    def __post_init__(self):
        """Validate domain rules."""
        require_fields(
            [
                ("number", self.number),
                ("name", self.name),
                ("species", self.species),
                ("birth_date", self.birth_date),
                ("sex", self.sex),
                ("color", self.color),
                ("category", self.category),
                ("owner", self.owner),
            ]
        )
        if isinstance(self.number, bool) or not isinstance(self.number, int):
            require_pattern(self.number, "number", re.compile(r"[0-9]+"))
            _set(self, "number", int(self.number))
        if self.number <= 0:
            raise OutOfRangeError("number must be positive", "number")
        if self.number > PATIENT_NUMBER_MAX:
            raise OutOfRangeError("number is too large", "number")
        _set(self, "birth_date", require_date(self.birth_date, "birth_date"))
        _set(self, "sex", require_enum(self.sex, "sex", Sex))
        _set(self, "category", require_enum(self.category, "category", Category))


@dataclass(frozen=True)
class Visit:
    """A dated clinical encounter recording vitals and a diagnosis.

    New visits (no ``id``) must be dated today and, if a follow-up is
    given, schedule it strictly in the future. Visits read back from the
    store keep their historical dates and skip the vital-range policy.
    """

    date: datetime
    next_visit: Optional[datetime]
    temperature: float
    weight: float
    height: float
    diagnosis: str
    vet: Owner
    patient: Patient
    id: Optional[int] = None

    def __post_init__(self):
        """Validate business rules."""
        require_fields(
            [
                ("date", self.date),
                ("temperature", self.temperature),
                ("weight", self.weight),
                ("height", self.height),
                ("diagnosis", self.diagnosis),
                ("vet", self.vet),
                ("patient", self.patient),
            ]
        )
        _set(self, "date", require_datetime(self.date, "date"))
        if self.next_visit is not None:
            _set(self, "next_visit", require_datetime(self.next_visit, "next_visit"))

        if self.id is None:
            now = datetime.now(APP_TZ)
            if self.date.astimezone(APP_TZ).date() != now.date():
                raise OutOfRangeError("date must be today", "date")
            if self.next_visit is not None and self.next_visit <= now:
                raise OutOfRangeError("next_visit must be in the future", "next_visit")

        for name, (minimum, maximum) in (
            ("temperature", TEMPERATURE_RANGE),
            ("weight", WEIGHT_RANGE),
            ("height", HEIGHT_RANGE),
        ):
            value = require_number(getattr(self, name), name)
            # Stored visits were range-checked when first registered
            if self.id is None:
                value = check_range(value, name, minimum, maximum)
            _set(self, name, value)

        if not isinstance(self.diagnosis, str):
            raise InvalidFormatError("diagnosis must be text", "diagnosis")


@dataclass(frozen=True)
class LabTest:
    """A named test performed within a visit."""

    name: str
    date: datetime
    visit: Visit
    id: Optional[int] = None

    def __post_init__(self):
        """Validate business rules."""
        require_fields(
            [("name", self.name), ("date", self.date), ("visit", self.visit)]
        )
        require_min_length(self.name, "name", 2)
        _set(self, "date", require_datetime(self.date, "date"))
