"""Service layer for content collections."""

from content_collections.services.collection_service import CollectionService

__all__ = ["CollectionService"]
