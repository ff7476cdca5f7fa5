"""
Data Layer Base Classes.

Use cases reach storage through repository ports defined on top of
``Repository``. The orchestration layer depends only on the port, so the
Cosmos DB adapter and the in-memory store used by the tests are
interchangeable.

Repositories read and write records. They never decide whether a change
is allowed.
"""

from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar

# Record type handled by a repository
T = TypeVar("T")


class Repository(ABC, Generic[T]):
    """
    Point reads for one record type.

    Use-case ports extend this with the writes and queries they need
    (see ``use_cases.orders.data.OrderRepository``).
    """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        """Return the record, or None when it does not exist."""
        pass
