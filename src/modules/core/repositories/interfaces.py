"""Repository contracts shared by the bounded contexts.

Services depend on these abstractions, never on the ORM directly.  Most
records here are never removed (orders and their events, profiles,
audit rows), so deletion is a separate, opt-in contract.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        """``None`` for unknown or malformed ids."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[T]: ...

    @abstractmethod
    def save(self, entity: T) -> T:
        """Insert or update ``entity`` and return it."""


class IDeletableRepository(IRepository[T]):
    @abstractmethod
    def delete(self, id: str) -> bool:
        """Remove the entity (soft delete where the model supports it).

        Returns ``False`` when nothing matched ``id``.
        """
