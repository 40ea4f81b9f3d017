"""Per-entity-type search index with query rehydration."""

import threading
from typing import Any

import structlog

from entity_search.search.engine import EngineIndex, TypeScopedQuery
from entity_search.search.errors import (
    InvalidSearchEntity,
    QueryError,
    RehydrationError,
)
from entity_search.search.fields import project
from entity_search.search.schemas import SearchPage
from entity_search.search.types import Repository, entity_name_of, is_indexable

logger = structlog.get_logger()


class SearchIndex:
    """Search index owning the documents of one entity type.

    Hits only carry document keys, so every search result is resolved back
    into a full entity through the type's storage repository.

    Attributes:
        name: Entity type name, also the value of the reserved type field.
        entity_type: Entity class indexed here.
        fields: Searchable field set the index was created with.
    """

    def __init__(
        self,
        entity_type: type,
        engine_index: EngineIndex,
        repository: Repository,
    ) -> None:
        """Initialize search index.

        Args:
            entity_type: Entity class indexed here.
            engine_index: Open engine index holding the documents.
            repository: Storage repository used to rehydrate hits.
        """
        self.name = entity_name_of(entity_type)
        self.entity_type = entity_type
        self.fields: tuple[str, ...] = engine_index.fields
        self._engine_index = engine_index
        self._repository = repository
        self._write_lock = threading.RLock()

    def key(self, item_id: str) -> str:
        """Namespace an identifier with the entity type name.

        Args:
            item_id: Entity identifier, prefixed or not.

        Returns:
            Document key of the form ``<type>:<id>``.
        """
        prefix = f"{self.name}:"
        if item_id.startswith(prefix):
            return item_id
        return f"{prefix}{item_id}"

    def item_id(self, key: str) -> str:
        """Strip the type namespace from a document key."""
        return key.removeprefix(f"{self.name}:")

    def update(self, item_id: str, entity: Any) -> None:
        """Index or re-index one entity.

        Args:
            item_id: Entity identifier.
            entity: Entity instance of this index's type.

        Raises:
            InvalidSearchEntity: If the value is not an entity of this type.
            SearchSchemaError: If the entity cannot be projected.
            IndexWriteError: If the engine write fails.
        """
        if not isinstance(entity, self.entity_type):
            raise InvalidSearchEntity(
                f"{type(entity).__name__} is not a {self.name} entity",
                entity_name=self.name,
            )
        if not is_indexable(type(entity)):
            return

        key = self.key(item_id)
        document = project(entity, self.fields)
        with self._write_lock:
            self._engine_index.index(key, document)
        logger.debug("search_document_indexed", entity=self.name, key=key)

    def delete(self, item_id: str) -> None:
        """Remove one entity's document; deleting a missing document is a no-op.

        Raises:
            IndexWriteError: If the engine delete fails.
        """
        key = self.key(item_id)
        with self._write_lock:
            self._engine_index.delete(key)
        logger.debug("search_document_deleted", entity=self.name, key=key)

    def refresh(self, item_id: str) -> bool:
        """Re-index an entity from its current stored state.

        Holds the write lock across the repository read and the index write,
        so a concurrent live update cannot be overwritten by an older copy.

        Args:
            item_id: Entity identifier.

        Returns:
            True if the entity was indexed, False if it no longer exists.
        """
        with self._write_lock:
            entity = self._repository.find_one_by_id(self.item_id(item_id))
            if entity is None:
                self.delete(item_id)
                return False
            self.update(item_id, entity)
            return True

    def search_with_pagination(
        self, query: str, count: int, offset: int
    ) -> SearchPage:
        """Execute a type-scoped search and rehydrate the hits.

        Hits whose entity no longer exists in storage are skipped, so
        ``total`` may exceed the number of hydrated results.

        Args:
            query: Free-text query, passed to the engine unescaped.
            count: Maximum number of hits to resolve.
            offset: Number of hits to skip.

        Returns:
            Page of entities in engine rank order with the engine's total.

        Raises:
            QueryError: If the engine rejects the query or the page bounds are negative.
            RehydrationError: If the repository lookup fails.
        """
        if count < 0 or offset < 0:
            raise QueryError(
                f"count and offset must not be negative, got {count} and {offset}",
                entity_name=self.name,
            )

        scoped = TypeScopedQuery(type_name=self.name, text=query)
        hits, total = self._engine_index.query(scoped, limit=count, offset=offset)

        results: list[Any] = []
        for hit in hits:
            item_id = self.item_id(hit.key)
            try:
                entity = self._repository.find_one_by_id(item_id)
            except Exception as e:
                raise RehydrationError(
                    f"failed to find entity {item_id}: {e}", entity_name=self.name
                ) from e

            if entity is None:
                logger.info("search_stale_hit", entity=self.name, key=hit.key)
                continue
            results.append(entity)

        logger.debug(
            "search_executed",
            entity=self.name,
            type_name=scoped.type_name,
            query=scoped.text,
            total=total,
            returned=len(results),
        )
        return SearchPage(
            query=query, results=results, total=total, limit=count, offset=offset
        )

    def search(self, query: str, count: int, offset: int) -> list[Any]:
        """Execute a type-scoped search, returning only the entities."""
        return self.search_with_pagination(query, count, offset).results

    def count(self) -> int:
        """Number of documents of this type currently indexed."""
        return self._engine_index.count(self.name)

    def close(self) -> None:
        """Release the underlying engine index."""
        self._engine_index.close()
