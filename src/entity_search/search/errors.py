"""Exception hierarchy for the search subsystem."""


class SearchError(Exception):
    """Base class for all search errors.

    Attributes:
        entity_name: Entity type the error relates to, if known.
    """

    def __init__(self, message: str, entity_name: str | None = None) -> None:
        """Initialize search error.

        Args:
            message: Error description.
            entity_name: Entity type the error relates to.
        """
        super().__init__(message)
        self.entity_name = entity_name


class SearchSetupError(SearchError):
    """Raised when the search subsystem cannot be bootstrapped."""


class RepositoryNotFound(SearchSetupError):
    """Raised when an entity type has no backing storage repository."""


class UnsupportedSearchFieldType(SearchSetupError):
    """Raised when a declared searchable attribute is not string-kind."""


class SearchSchemaError(SearchError):
    """Raised when an entity cannot be projected onto its index schema."""


class FieldResolutionError(SearchSchemaError):
    """Raised when a searchable field does not exist on the entity."""


class UnsupportedFieldType(SearchSchemaError):
    """Raised when a searchable field holds a non-string value."""


class ReservedFieldError(SearchSchemaError):
    """Raised when a declared field collides with a name the index reserves."""


class IndexOpenError(SearchError):
    """Raised when a persisted index cannot be opened or created."""


class IndexWriteError(SearchError):
    """Raised when the engine rejects a document write or delete."""


class InvalidSearchEntity(SearchError):
    """Raised when a value is not an entity of the index's type."""


class QueryError(SearchError):
    """Raised when the engine rejects a query."""


class RehydrationError(SearchError):
    """Raised when the storage repository fails to resolve a hit."""


class IndexNotRegistered(SearchError):
    """Raised when no index is registered for an entity type."""


class UnknownEntityType(SearchError):
    """Raised when an entity type name is not managed by the client."""
