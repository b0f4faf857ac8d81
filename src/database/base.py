"""
Capability interface shared by all image metadata stores.
"""

from abc import ABC, abstractmethod
from typing import List, Sequence

from .schemas import ImageRecord, StorageDescriptor


class ImageStore(ABC):
    """Records storage descriptors and answers recency-ordered listings.

    Implementations hold no request state; everything lives in the
    underlying engine.
    """

    def init_collections(self) -> None:
        """Create collections, tables or indexes the engine needs."""

    @abstractmethod
    def insert_batch(self, descriptors: Sequence[StorageDescriptor]) -> List[ImageRecord]:
        """Create one record per descriptor, all or nothing.

        Every record of a batch shares one `uploaded_at`. Records come back
        in input order with their store-assigned ids.

        Raises:
            PersistenceError: If the store is unreachable or rejects the write.
        """

    @abstractmethod
    def list_all(self) -> List[ImageRecord]:
        """Return every record, newest `uploaded_at` first.

        Records sharing a timestamp keep their insertion order.

        Raises:
            PersistenceError: If the store is unreachable.
        """

    @abstractmethod
    def ping(self) -> bool:
        """Check that the engine answers."""

    def close(self) -> None:
        """Release connections held by the engine."""
