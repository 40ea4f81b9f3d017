"""Registry of per-entity-type search indexes and their on-disk lifecycle."""

import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog

from entity_search.config import Settings
from entity_search.search.engine import Fts5Engine, FullTextEngine
from entity_search.search.errors import (
    IndexNotRegistered,
    IndexOpenError,
    InvalidSearchEntity,
    RepositoryNotFound,
    SearchSetupError,
    UnknownEntityType,
)
from entity_search.search.fields import discover_fields
from entity_search.search.index import SearchIndex
from entity_search.search.reindex import ReindexCoordinator, ReindexTask
from entity_search.search.types import (
    INDEX_SUFFIX,
    Entity,
    Repository,
    RepositoryResolver,
    entity_name_of,
    is_indexable,
    repository_token,
)

logger = structlog.get_logger()


class SearchClient:
    """Owns one search index per managed entity type.

    Indexes live in ``<search_path>/<EntityName><suffix>`` directories.
    Registration of an index is serialized per entity type because
    rebuilding removes the index directory.

    Call initialize() before use.
    """

    def __init__(
        self,
        search_path: Path,
        entity_types: Iterable[type],
        resolve_repository: RepositoryResolver,
        engine: FullTextEngine | None = None,
        index_suffix: str = INDEX_SUFFIX,
        coordinator: ReindexCoordinator | None = None,
    ) -> None:
        """Initialize search client.

        Args:
            search_path: Root directory holding one directory per index.
            entity_types: Entity classes managed by this client.
            resolve_repository: Looks up a repository by repository token.
            engine: Full-text engine, FTS5 by default.
            index_suffix: Suffix appended to entity names for index directories.
            coordinator: Worker pool for background reindexing.
        """
        self.search_path = Path(search_path)
        self.index_suffix = index_suffix
        self._entity_types = {entity_name_of(t): t for t in entity_types}
        self._resolve_repository = resolve_repository
        self._engine: FullTextEngine = engine or Fts5Engine()
        self._coordinator = coordinator or ReindexCoordinator()
        self._repositories: dict[str, Repository] = {}
        self._indexes: dict[str, SearchIndex] = {}
        self._lock = threading.Lock()
        self._type_locks = {name: threading.Lock() for name in self._entity_types}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        entity_types: Iterable[type],
        resolve_repository: RepositoryResolver,
    ) -> "SearchClient":
        """Build a client laid out according to the service settings.

        Args:
            settings: Service configuration.
            entity_types: Entity classes to manage.
            resolve_repository: Looks up a repository by repository token.

        Returns:
            Uninitialized search client.
        """
        return cls(
            settings.search_path,
            entity_types,
            resolve_repository,
            index_suffix=settings.index_suffix,
            coordinator=ReindexCoordinator(max_workers=settings.reindex_workers),
        )

    @property
    def coordinator(self) -> ReindexCoordinator:
        return self._coordinator

    def initialize(self) -> None:
        """Prepare the search root and reopen persisted indexes.

        Index directories that match no managed entity type are left on
        disk untouched.

        Raises:
            SearchSetupError: If the search root cannot be created.
            RepositoryNotFound: If an entity type has no repository.
        """
        try:
            self.search_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SearchSetupError(
                f"failed to create search path {self.search_path}: {e}"
            ) from e

        for name, entity_type in self._entity_types.items():
            token = repository_token(entity_type)
            repository = self._resolve_repository(token)
            if repository is None:
                raise RepositoryNotFound(
                    f"failed to get repository for: {token}", entity_name=name
                )
            self._repositories[name] = repository

        for item in sorted(self.search_path.iterdir()):
            if not item.is_dir() or not item.name.endswith(self.index_suffix):
                continue

            name = item.name.removesuffix(self.index_suffix)
            entity_type = self._entity_types.get(name)
            if entity_type is None:
                logger.debug("search_index_orphaned", path=str(item))
                continue
            if not is_indexable(entity_type) or not self._engine.exists(item):
                continue

            try:
                index = self._open_index(name, item)
            except IndexOpenError as e:
                logger.warning("search_index_invalid", path=str(item), error=str(e))
                continue

            self._register(index)
            logger.info("search_index_initialized", entity=name, fields=list(index.fields))

    def index_path(self, entity_name: str) -> Path:
        """Directory holding the index of an entity type."""
        return self.search_path / f"{entity_name}{self.index_suffix}"

    def _entity_type(self, entity_name: str) -> type:
        entity_type = self._entity_types.get(entity_name)
        if entity_type is None:
            raise UnknownEntityType(
                f"entity for {entity_name} not found", entity_name=entity_name
            )
        return entity_type

    def _repository(self, entity_name: str) -> Repository:
        repository = self._repositories.get(entity_name)
        if repository is None:
            raise RepositoryNotFound(
                f"no repository resolved for {entity_name}; call initialize() first",
                entity_name=entity_name,
            )
        return repository

    def _open_index(self, entity_name: str, path: Path) -> SearchIndex:
        engine_index = self._engine.open(path)
        return SearchIndex(
            self._entity_type(entity_name),
            engine_index,
            self._repository(entity_name),
        )

    def _register(self, index: SearchIndex) -> None:
        with self._lock:
            previous = self._indexes.get(index.name)
            self._indexes[index.name] = index
        if previous is not None and previous is not index:
            previous.close()

    def create_index(self, entity_name: str, overwrite: bool = False) -> None:
        """Create, reopen or rebuild the index of an entity type.

        Without ``overwrite`` an existing index is reused as is. With it, or
        when no index exists, the directory is replaced by a fresh index
        built from the type's current searchable fields.

        Args:
            entity_name: Entity type name.
            overwrite: Discard any existing index.

        Raises:
            UnknownEntityType: If the type is not managed by this client.
            SearchSetupError: If the type's field declaration is invalid.
            SearchSchemaError: If a declared field does not exist on the type.
            IndexOpenError: If the index cannot be removed or created.
        """
        entity_type = self._entity_type(entity_name)
        if not is_indexable(entity_type):
            return

        path = self.index_path(entity_name)
        with self._type_locks[entity_name]:
            if not overwrite:
                with self._lock:
                    if entity_name in self._indexes:
                        return
                if self._engine.exists(path):
                    try:
                        self._register(self._open_index(entity_name, path))
                        logger.info("search_index_opened", entity=entity_name)
                        return
                    except IndexOpenError as e:
                        logger.warning(
                            "search_index_invalid", path=str(path), error=str(e)
                        )

            fields = discover_fields(entity_type)
            repository = self._repository(entity_name)

            with self._lock:
                previous = self._indexes.pop(entity_name, None)
            if previous is not None:
                previous.close()

            self._engine.remove(path)
            engine_index = self._engine.create(path, entity_name, fields)
            self._register(SearchIndex(entity_type, engine_index, repository))

        logger.info(
            "search_index_created",
            entity=entity_name,
            fields=list(fields),
            overwrite=overwrite,
        )

    def get_index(self, entity_name: str) -> SearchIndex:
        """Return the registered index of an entity type.

        Raises:
            IndexNotRegistered: If no index is registered for the type.
        """
        with self._lock:
            index = self._indexes.get(entity_name)
        if index is None:
            raise IndexNotRegistered(
                f"index for {entity_name} not implemented", entity_name=entity_name
            )
        return index

    def indexes(self) -> dict[str, SearchIndex]:
        """Snapshot of all registered indexes keyed by entity name."""
        with self._lock:
            return dict(self._indexes)

    def update_index(self, entity_name: str) -> ReindexTask | None:
        """Rebuild an index and refill it in the background.

        Intended for operators after an entity type's shape has changed.
        Returns as soon as the empty index is in place.

        Args:
            entity_name: Entity type name.

        Returns:
            Task tracking the background reindex, or None if the type
            opts out of indexing.
        """
        entity_type = self._entity_type(entity_name)
        if not is_indexable(entity_type):
            return None

        self.create_index(entity_name, overwrite=True)
        index = self.get_index(entity_name)
        return self._coordinator.submit(index, self._repository(entity_name))

    def index_entity(self, entity: Any) -> None:
        """Index an entity, creating its type's index on first use.

        Args:
            entity: Entity instance of a managed type.

        Raises:
            InvalidSearchEntity: If the value is not an entity.
            UnknownEntityType: If its type is not managed by this client.
        """
        if not isinstance(entity, Entity):
            raise InvalidSearchEntity(f"{type(entity).__name__} is not an entity")
        entity_name = entity_name_of(type(entity))
        if not is_indexable(self._entity_type(entity_name)):
            return
        self.create_index(entity_name)
        self.get_index(entity_name).update(entity.item_id(), entity)

    def delete_entity(self, entity_name: str, item_id: str) -> None:
        """Remove an entity's document if its type has an index."""
        with self._lock:
            index = self._indexes.get(entity_name)
        if index is not None:
            index.delete(item_id)

    def close(self) -> None:
        """Stop background reindexing and close every index."""
        self._coordinator.shutdown()
        with self._lock:
            indexes = list(self._indexes.values())
            self._indexes.clear()
        for index in indexes:
            index.close()
        logger.info("search_client_closed")
