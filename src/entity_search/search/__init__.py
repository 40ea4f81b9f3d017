"""Entity search subsystem: field projection, FTS5 indexes and reindexing."""

from entity_search.search.client import SearchClient
from entity_search.search.engine import Fts5Engine, TypeScopedQuery
from entity_search.search.errors import (
    FieldResolutionError,
    IndexNotRegistered,
    IndexWriteError,
    InvalidSearchEntity,
    QueryError,
    RehydrationError,
    RepositoryNotFound,
    SearchError,
    UnknownEntityType,
    UnsupportedFieldType,
    UnsupportedSearchFieldType,
)
from entity_search.search.fields import discover_fields, project
from entity_search.search.index import SearchIndex
from entity_search.search.reindex import ReindexCoordinator, ReindexTask
from entity_search.search.schemas import ReindexStatus, SearchPage

__all__ = [
    "FieldResolutionError",
    "Fts5Engine",
    "IndexNotRegistered",
    "IndexWriteError",
    "InvalidSearchEntity",
    "QueryError",
    "RehydrationError",
    "ReindexCoordinator",
    "ReindexStatus",
    "ReindexTask",
    "RepositoryNotFound",
    "SearchClient",
    "SearchError",
    "SearchIndex",
    "SearchPage",
    "TypeScopedQuery",
    "UnknownEntityType",
    "UnsupportedFieldType",
    "UnsupportedSearchFieldType",
    "discover_fields",
    "project",
]
