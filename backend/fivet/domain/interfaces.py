"""
Abstract interfaces for repositories following Interface Segregation Principle.

These interfaces define contracts without implementation details, so the
search aggregator and the clinic service never depend on a particular
backing store.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, List, Optional, TypeVar

T = TypeVar("T")
K = TypeVar("K")
C = TypeVar("C")


class IQueryBuilder(ABC, Generic[T]):
    """Composable filter over one entity type.

    Field paths may cross relationships with dots, e.g. ``"owner.rut"``.
    """

    @abstractmethod
    def where_equals(self, path: str, value: Any) -> "IQueryBuilder[T]":
        """Keep rows whose field equals ``value``."""
        pass

    @abstractmethod
    def where_contains(self, path: str, text: str) -> "IQueryBuilder[T]":
        """Keep rows whose text field contains ``text`` (case-sensitive)."""
        pass

    @abstractmethod
    def order_by(self, path: str) -> "IQueryBuilder[T]":
        """Sort ascending by a field."""
        pass

    @abstractmethod
    def all(self) -> List[T]:
        """Run the query and return the matching entities."""
        pass


class IReader(ABC, Generic[T, K]):
    """Interface for read operations."""

    @abstractmethod
    def find_all(self) -> List[T]:
        """Get every persisted instance."""
        pass

    @abstractmethod
    def find_by_id(self, id: K) -> Optional[T]:
        """Get one instance by identity, or None."""
        pass

    @abstractmethod
    def find_all_by_field(self, field: str, value: Any) -> List[T]:
        """Get every instance whose ``field`` equals ``value``."""
        pass

    @abstractmethod
    def new_query(self) -> IQueryBuilder[T]:
        """Start a composed query."""
        pass


class IWriter(ABC, Generic[T, K]):
    """Interface for write operations.

    Each returns True only when exactly one row was written.
    """

    @abstractmethod
    def create(self, obj: T, commit: bool = True) -> bool:
        """Persist a new instance and assign its identity.

        With ``commit=False`` the row is only flushed into the open transaction.
        """
        pass

    @abstractmethod
    def update(self, obj: T) -> bool:
        """Overwrite the stored row of an identified instance."""
        pass

    @abstractmethod
    def delete(self, id: K) -> bool:
        """Remove the row with the given identity."""
        pass


class IRepository(IReader[T, K], IWriter[T, K]):
    """Complete repository interface combining read/write operations."""

    pass


class IChildRelation(ABC, Generic[C]):
    """Ordered parent -> children relation (a patient's visits, a visit's lab tests)."""

    @abstractmethod
    def append(self, parent_id: int, child_id: int, commit: bool = True) -> bool:
        """Append a persisted child at the end of the parent's collection."""
        pass

    @abstractmethod
    def children(self, parent_id: int) -> List[C]:
        """Get the parent's children in append order."""
        pass

    @abstractmethod
    def count(self, parent_id: int) -> int:
        """Get the size of the parent's collection."""
        pass
