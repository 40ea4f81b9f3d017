"""Capability protocols for searchable entities and their collaborators."""

from collections.abc import Callable, Sequence
from typing import Any, Protocol, runtime_checkable

TYPE_FIELD = "type"
KEY_FIELD = "__key"
DOCUMENTS_TABLE = "__documents"
# Names the FTS5 table claims for itself, compared case-insensitively.
RESERVED_FIELDS = frozenset({TYPE_FIELD, KEY_FIELD, DOCUMENTS_TABLE, "rank", "rowid"})
INDEX_SUFFIX = ".index"


@runtime_checkable
class Entity(Protocol):
    """Domain value managed by the search client.

    Entity types are pydantic models. Optional capabilities are plain
    classmethods looked up by name:

    - ``searchable_attributes() -> dict[str, type]`` declares the field set.
    - ``index_content() -> bool`` opts the type out of indexing when False.
    - ``repository_token() -> str`` selects the backing repository.
    """

    @classmethod
    def entity_name(cls) -> str: ...

    def item_id(self) -> str: ...


@runtime_checkable
class Repository(Protocol):
    """Storage repository that owns entities of one or more types."""

    def find_all(self, entity_name: str) -> Sequence[Any]: ...

    def find_one_by_id(self, item_id: str) -> Any | None: ...


RepositoryResolver = Callable[[str], Repository | None]


def entity_name_of(entity_type: type) -> str:
    """Return the schema namespace of an entity type."""
    return entity_type.entity_name()


def is_indexable(entity_type: type) -> bool:
    """Check whether an entity type takes part in indexing.

    Args:
        entity_type: Entity class to inspect.

    Returns:
        False only when the type opts out via ``index_content()``.
    """
    index_content = getattr(entity_type, "index_content", None)
    if index_content is None:
        return True
    return bool(index_content())


def repository_token(entity_type: type) -> str:
    """Return the token used to resolve an entity type's repository."""
    token = getattr(entity_type, "repository_token", None)
    if token is None:
        return entity_name_of(entity_type)
    return token()
