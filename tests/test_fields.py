"""Searchable field discovery and projection tests."""

import pytest
from pydantic import BaseModel, Field

from entities import Article, Note
from entity_search.search.errors import (
    FieldResolutionError,
    ReservedFieldError,
    UnsupportedFieldType,
    UnsupportedSearchFieldType,
)
from entity_search.search.fields import discover_fields, field_accessors, project


class Profile(BaseModel):
    """Inferred fields with aliases and an excluded field."""

    id: int
    display_name: str = Field(serialization_alias="displayName")
    bio: str | None = None
    age: int = 0
    secret: str = Field(default="", serialization_alias="s", exclude=True)
    type: str = "member"

    @classmethod
    def entity_name(cls) -> str:
        return "Profile"

    def item_id(self) -> str:
        return str(self.id)


class BadKind(BaseModel):
    id: int
    views: int = 0

    @classmethod
    def entity_name(cls) -> str:
        return "BadKind"

    @classmethod
    def searchable_attributes(cls) -> dict[str, type]:
        return {"views": int}


class MissingField(BaseModel):
    id: int
    title: str = ""

    @classmethod
    def entity_name(cls) -> str:
        return "MissingField"

    @classmethod
    def searchable_attributes(cls) -> dict[str, type]:
        return {"title": str, "subtitle": str}


class ReservedField(BaseModel):
    id: int
    type: str = ""

    @classmethod
    def entity_name(cls) -> str:
        return "ReservedField"

    @classmethod
    def searchable_attributes(cls) -> dict[str, type]:
        return {"type": str}


class Ranked(BaseModel):
    """String fields whose names the index claims for itself."""

    id: int
    title: str = ""
    rank: str = ""
    rowid: str = ""
    key: str = Field(default="", serialization_alias="__key")
    documents: str = ""

    @classmethod
    def entity_name(cls) -> str:
        return "Ranked"

    def item_id(self) -> str:
        return str(self.id)


def test_inferred_fields_select_only_strings() -> None:
    """Inferred mode keeps string fields in declaration order."""
    assert discover_fields(Article) == ("Title", "Body")


def test_inferred_fields_use_serialization_alias() -> None:
    """Aliases name the field unless the field is excluded from serialization."""
    assert discover_fields(Profile) == ("displayName", "bio", "secret")


def test_declared_fields_resolve_aliases() -> None:
    """Declared fields may be named by alias."""
    assert discover_fields(Note) == ("headline", "text_body")


def test_declared_non_string_kind_rejected() -> None:
    """Declaring a non-string kind fails type setup."""
    with pytest.raises(UnsupportedSearchFieldType) as exc_info:
        discover_fields(BadKind)
    assert exc_info.value.entity_name == "BadKind"


def test_declared_unknown_field_rejected() -> None:
    """Declaring a field the model lacks is a schema error."""
    with pytest.raises(FieldResolutionError):
        discover_fields(MissingField)


def test_declared_type_field_rejected() -> None:
    """The reserved type field cannot be declared."""
    with pytest.raises(ReservedFieldError):
        discover_fields(ReservedField)


def test_exact_name_wins_over_alias() -> None:
    """Accessors resolve attribute names before aliases."""
    accessors = field_accessors(Note)
    assert accessors["body"] == "body"
    assert accessors["text_body"] == "body"


def test_project_adds_type_and_omits_empty_values() -> None:
    """Empty strings and None are left out; the type field is always present."""
    article = Article(id=42, Title="Storage Engines", Body="", internalFlag=True)
    assert project(article, discover_fields(Article)) == {
        "type": "Article",
        "Title": "Storage Engines",
    }


def test_project_declared_key_set() -> None:
    """A declared entity projects onto its non-empty declared fields plus type."""
    note = Note(id=1, headline="Quarterly review", text_body="Numbers went up")
    assert project(note, discover_fields(Note)) == {
        "type": "Note",
        "headline": "Quarterly review",
        "text_body": "Numbers went up",
    }


def test_project_by_alias() -> None:
    """Inferred aliases are resolved back to their attributes."""
    profile = Profile(id=1, display_name="Ada", bio=None)
    assert project(profile, discover_fields(Profile)) == {
        "type": "Profile",
        "displayName": "Ada",
    }


def test_project_unresolvable_field() -> None:
    """Projecting a field the entity lacks fails."""
    with pytest.raises(FieldResolutionError):
        project(Article(id=1, Title="x"), ("Title", "Summary"))


def test_project_non_string_value() -> None:
    """Projecting a non-string field fails."""
    with pytest.raises(UnsupportedFieldType):
        project(Article(id=1, Title="x"), ("Title", "internalFlag"))


def test_inferred_fields_skip_index_names() -> None:
    """Names the index uses internally are left out of inferred field sets."""
    assert discover_fields(Ranked) == ("title", "documents")


@pytest.mark.parametrize("name", ["rank", "ROWID", "__key", "__documents", "Type"])
def test_declared_index_names_rejected(name: str) -> None:
    """Declaring a name the index reserves is a schema error."""

    class Declared(BaseModel):
        id: int

        @classmethod
        def entity_name(cls) -> str:
            return "Declared"

        @classmethod
        def searchable_attributes(cls) -> dict[str, type]:
            return {name: str}

    with pytest.raises(ReservedFieldError):
        discover_fields(Declared)
