"""
Domain package - Pure business logic layer.

This package contains:
- entities.py: Owner, Patient, Visit and LabTest with their validation rules
- interfaces.py: Repository and relation contracts
"""

from .entities import Category, LabTest, Owner, Patient, Sex, Visit
from .interfaces import (
    IChildRelation,
    IQueryBuilder,
    IReader,
    IRepository,
    IWriter,
)

__all__ = [
    # Domain entities
    "Owner",
    "Patient",
    "Visit",
    "LabTest",
    "Sex",
    "Category",
    # Repository interfaces
    "IRepository",
    "IQueryBuilder",
    "IChildRelation",
    # Segregated interfaces
    "IReader",
    "IWriter",
]
