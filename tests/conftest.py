"""Pytest configuration and fixtures."""

import sys
from collections.abc import Iterator
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from fastapi.testclient import TestClient

from entities import ENTITY_TYPES, MemoryRepository
from entity_search.app import create_app
from entity_search.config import Settings
from entity_search.search import SearchClient


@pytest.fixture
def repositories() -> dict[str, MemoryRepository]:
    """One repository per entity type, keyed by repository token."""
    return {t.entity_name(): MemoryRepository() for t in ENTITY_TYPES}


@pytest.fixture
def search_path(tmp_path: Path) -> Path:
    """Index root inside a temporary data directory."""
    return tmp_path / "search"


@pytest.fixture
def search_client(
    search_path: Path, repositories: dict[str, MemoryRepository]
) -> Iterator[SearchClient]:
    """Initialized search client over the sample entity types."""
    client = SearchClient(search_path, ENTITY_TYPES, repositories.get)
    client.initialize()
    yield client
    client.close()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Create test settings."""
    return Settings(data_dir=tmp_path, debug=True, default_limit=10, max_limit=50)


@pytest.fixture
def client(
    settings: Settings, repositories: dict[str, MemoryRepository]
) -> Iterator[TestClient]:
    """Create test client over an initialized search client."""
    search_client = SearchClient.from_settings(settings, ENTITY_TYPES, repositories.get)
    search_client.initialize()
    app = create_app(search_client, settings)
    with TestClient(app) as test_client:
        yield test_client
