"""Searchable field discovery and entity-to-document projection.

Field sets are derived from the pydantic model of an entity type once and
cached for the lifetime of the process. Projection itself is a pure function
of an entity instance and a field set.
"""

import functools
import types
from typing import Any, Union, get_args, get_origin

import structlog
from pydantic import BaseModel
from pydantic.fields import FieldInfo

from entity_search.search.errors import (
    FieldResolutionError,
    ReservedFieldError,
    UnsupportedFieldType,
    UnsupportedSearchFieldType,
)
from entity_search.search.types import RESERVED_FIELDS, TYPE_FIELD, entity_name_of

logger = structlog.get_logger()


def _model_fields(entity_type: type) -> dict[str, FieldInfo]:
    if isinstance(entity_type, type) and issubclass(entity_type, BaseModel):
        return entity_type.model_fields
    return {}


def _alias(info: FieldInfo) -> str | None:
    """Return the serialization alias of a field unless it is excluded."""
    if info.exclude:
        return None
    return info.serialization_alias or info.alias


def _is_reserved(name: str) -> bool:
    return name.lower() in RESERVED_FIELDS


def _is_string_kind(annotation: Any) -> bool:
    """Check for ``str`` or an optional ``str`` annotation."""
    if annotation is str:
        return True
    if get_origin(annotation) in (Union, types.UnionType):
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        return args == [str]
    return False


@functools.cache
def field_accessors(entity_type: type) -> dict[str, str]:
    """Map every resolvable field name of a type to its attribute.

    Exact attribute names win over serialization aliases when both match.

    Args:
        entity_type: Entity class to inspect.

    Returns:
        Mapping of field name or alias to the model attribute name.
    """
    fields = _model_fields(entity_type)
    accessors: dict[str, str] = {}
    for attribute, info in fields.items():
        alias = _alias(info)
        if alias and alias not in fields:
            accessors.setdefault(alias, attribute)
    for attribute in fields:
        accessors[attribute] = attribute
    return accessors


@functools.cache
def discover_fields(entity_type: type) -> tuple[str, ...]:
    """Compute the searchable field set of an entity type.

    Types that implement ``searchable_attributes()`` get exactly the
    declared fields, validated against the model. All other types get every
    string-kind field, named by its serialization alias when it has one.

    Args:
        entity_type: Entity class to inspect.

    Returns:
        Ordered field names eligible for indexing.

    Raises:
        UnsupportedSearchFieldType: If a declared field kind is not a string.
        FieldResolutionError: If a declared field does not exist on the model.
        ReservedFieldError: If a declared field uses a name the index reserves.
    """
    entity_name = entity_name_of(entity_type)
    declared = getattr(entity_type, "searchable_attributes", None)

    if declared is not None:
        accessors = field_accessors(entity_type)
        names: list[str] = []
        for name, kind in declared().items():
            if not (isinstance(kind, type) and issubclass(kind, str)):
                raise UnsupportedSearchFieldType(
                    f"{getattr(kind, '__name__', kind)} is not supported for search",
                    entity_name=entity_name,
                )
            if _is_reserved(name):
                raise ReservedFieldError(
                    f"field {name!r} is reserved", entity_name=entity_name
                )
            if name not in accessors:
                raise FieldResolutionError(
                    f"invalid field {name}", entity_name=entity_name
                )
            names.append(name)
        return tuple(names)

    names = []
    for attribute, info in _model_fields(entity_type).items():
        if not _is_string_kind(info.annotation):
            continue
        name = _alias(info) or attribute
        if _is_reserved(name):
            logger.debug("search_field_reserved", entity=entity_name, field=name)
            continue
        names.append(name)
    return tuple(names)


def project(entity: Any, fields: tuple[str, ...] | list[str]) -> dict[str, str]:
    """Project an entity onto a flat document of string values.

    Empty and missing values are left out of the document. The reserved
    type field is always present.

    Args:
        entity: Entity instance to project.
        fields: Searchable field set of the entity's type.

    Returns:
        Mapping of field name to indexed value.

    Raises:
        FieldResolutionError: If a field cannot be found on the entity.
        UnsupportedFieldType: If a field holds a non-string value.
    """
    entity_type = type(entity)
    entity_name = entity_name_of(entity_type)
    accessors = field_accessors(entity_type)

    document = {TYPE_FIELD: entity_name}
    for name in fields:
        attribute = accessors.get(name)
        if attribute is None:
            raise FieldResolutionError(
                f"invalid field {name}", entity_name=entity_name
            )

        value = getattr(entity, attribute)
        if value is None or value == "":
            continue
        if not isinstance(value, str):
            raise UnsupportedFieldType(
                f"{name} type {type(value).__name__} is not supported in search",
                entity_name=entity_name,
            )
        document[name] = value
    return document
