"""Knowledge fragment persistence adapters."""

from src.providers.fragment.mongo_fragment_store import MongoFragmentStore

__all__ = ["MongoFragmentStore"]
