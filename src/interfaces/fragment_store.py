"""Abstract base class for knowledge fragment persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.fragment import KnowledgeFragment


# Concrete implementation: MongoFragmentStore (src/providers/fragment/)
class IFragmentStore(ABC):
    """Contract for the ``fragments`` collection."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create indexes. Idempotent."""

    @abstractmethod
    async def insert(self, fragment: KnowledgeFragment) -> KnowledgeFragment:
        """Persist *fragment* and return it with its assigned ``id``."""

    @abstractmethod
    async def get(self, fragment_id: str) -> KnowledgeFragment | None:
        """Return the fragment, or None for unknown or malformed ids."""

    @abstractmethod
    async def list(
        self,
        tag: str | None = None,
        source_file_id: str | None = None,
        limit: int = 50,
        skip: int = 0,
    ) -> list[KnowledgeFragment]:
        """Return fragments newest first, optionally filtered."""

    @abstractmethod
    async def delete(self, fragment_id: str) -> bool:
        """Delete the fragment; return False when nothing matched."""
