from __future__ import annotations

from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from .session import Base


class UTCDateTime(TypeDecorator):
    """Store aware datetimes as naive UTC and read them back as aware UTC."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("UTCDateTime requires timezone-aware datetimes")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class Person(Base):
    """Owner / veterinarian model for database persistence"""

    __tablename__ = "persons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    rut: Mapped[str] = mapped_column(String(12), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    landline: Mapped[str] = mapped_column(String(8), nullable=False)
    mobile: Mapped[str] = mapped_column(String(9), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    patients: Mapped[List["PatientRecord"]] = relationship(back_populates="owner")

    def __repr__(self):
        return f"<Person(id={self.id}, rut='{self.rut}', first_name='{self.first_name}')>"


class PatientRecord(Base):
    """Patient file (ficha) model for database persistence"""

    __tablename__ = "patients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    number: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    species: Mapped[str] = mapped_column(String(100), nullable=False)
    birth_date: Mapped[date] = mapped_column(Date, nullable=False)
    breed: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    sex: Mapped[str] = mapped_column(String(10), nullable=False)
    color: Mapped[str] = mapped_column(String(50), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    owner_id: Mapped[int] = mapped_column(
        ForeignKey("persons.id"), nullable=False, index=True
    )
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    owner: Mapped[Person] = relationship(back_populates="patients", lazy="joined")

    def __repr__(self):
        return f"<PatientRecord(id={self.id}, number={self.number}, name='{self.name}')>"


class VisitRecord(Base):
    """Visit (control) model for database persistence"""

    __tablename__ = "visits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    next_visit: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    temperature: Mapped[float] = mapped_column(Float, nullable=False)
    weight: Mapped[float] = mapped_column(Float, nullable=False)
    height: Mapped[float] = mapped_column(Float, nullable=False)
    diagnosis: Mapped[str] = mapped_column(Text, nullable=False)
    vet_id: Mapped[int] = mapped_column(ForeignKey("persons.id"), nullable=False)
    patient_id: Mapped[int] = mapped_column(
        ForeignKey("patients.id"), nullable=False, index=True
    )
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    vet: Mapped[Person] = relationship(foreign_keys=[vet_id], lazy="joined")
    patient: Mapped[PatientRecord] = relationship(lazy="joined")

    def __repr__(self):
        return f"<VisitRecord(id={self.id}, patient_id={self.patient_id})>"


class LabTestRecord(Base):
    """Lab test (examen) model for database persistence"""

    __tablename__ = "lab_tests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    visit_id: Mapped[int] = mapped_column(
        ForeignKey("visits.id"), nullable=False, index=True
    )
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    visit: Mapped[VisitRecord] = relationship(lazy="joined")

    def __repr__(self):
        return f"<LabTestRecord(id={self.id}, name='{self.name}')>"


# ------------------- CHILD COLLECTIONS -------------------
class PatientVisit(Base):
    """Ordered link between a patient and its visits"""

    __tablename__ = "patient_visits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    patient_id: Mapped[int] = mapped_column(
        ForeignKey("patients.id"), nullable=False, index=True
    )
    visit_id: Mapped[int] = mapped_column(ForeignKey("visits.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("patient_id", "visit_id", name="uq_patient_visit"),
    )


class VisitLabTest(Base):
    """Ordered link between a visit and its lab tests"""

    __tablename__ = "visit_lab_tests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    visit_id: Mapped[int] = mapped_column(
        ForeignKey("visits.id"), nullable=False, index=True
    )
    lab_test_id: Mapped[int] = mapped_column(
        ForeignKey("lab_tests.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("visit_id", "lab_test_id", name="uq_visit_lab_test"),
    )
