"""HTTP endpoint tests."""

import asyncio
import time
from typing import Any

import pytest
from fastapi.testclient import TestClient

from entities import Article, MemoryRepository
from entity_search.search import SearchClient


def _search_client(client: TestClient) -> SearchClient:
    return client.app.state.search_client


def _seed_articles(client: TestClient, repositories: dict[str, MemoryRepository]) -> None:
    search_client = _search_client(client)
    for item_id, title in [(42, "Storage Engines"), (43, "Storage Tiers"), (44, "Caches")]:
        article = repositories["Article"].save(Article(id=item_id, Title=title))
        search_client.index_entity(article)


def test_liveness_returns_200(client: TestClient) -> None:
    """Liveness endpoint returns alive status."""
    response = client.get("/api/v1/health/live")
    assert response.status_code == 200
    assert response.json()["status"] == "alive"


def test_readiness_reports_indexes(client: TestClient) -> None:
    """Readiness checks the index root."""
    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["indexes"] == 0


def test_search_returns_entities(
    client: TestClient, repositories: dict[str, MemoryRepository]
) -> None:
    """Search serializes stored entities in rank order."""
    _seed_articles(client, repositories)

    response = client.get("/api/v1/search/Article", params={"q": "Title:Storage"})
    assert response.status_code == 200
    data = response.json()
    assert data["entity"] == "Article"
    assert data["total"] == 2
    assert data["limit"] == 10
    assert sorted(r["id"] for r in data["results"]) == [42, 43]
    assert "X-Request-ID" in response.headers


def test_search_limit_is_capped(
    client: TestClient, repositories: dict[str, MemoryRepository]
) -> None:
    """Requested limits above the maximum are clamped."""
    _seed_articles(client, repositories)
    response = client.get("/api/v1/search/Article", params={"limit": 500, "offset": 1})
    data = response.json()
    assert data["limit"] == 50
    assert data["total"] == 3
    assert len(data["results"]) == 2


def test_search_unknown_index_returns_404(client: TestClient) -> None:
    response = client.get("/api/v1/search/Article", params={"q": "anything"})
    assert response.status_code == 404


def test_search_malformed_query_returns_400(
    client: TestClient, repositories: dict[str, MemoryRepository]
) -> None:
    _seed_articles(client, repositories)
    response = client.get("/api/v1/search/Article", params={"q": '"open'})
    assert response.status_code == 400


def test_list_indexes(client: TestClient, repositories: dict[str, MemoryRepository]) -> None:
    """Registered indexes are listed with their fields and sizes."""
    _seed_articles(client, repositories)
    response = client.get("/api/v1/indexes")
    assert response.status_code == 200
    assert response.json() == [
        {"name": "Article", "fields": ["Title", "Body"], "documents": 3}
    ]


def test_list_indexes_counts_off_the_event_loop(
    client: TestClient,
    repositories: dict[str, MemoryRepository],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Document counts are read in a worker thread."""
    _seed_articles(client, repositories)
    offloaded: list[str] = []
    to_thread = asyncio.to_thread

    async def recording_to_thread(func: Any, /, *args: Any, **kwargs: Any) -> Any:
        offloaded.append(func.__name__)
        return await to_thread(func, *args, **kwargs)

    monkeypatch.setattr(asyncio, "to_thread", recording_to_thread)
    response = client.get("/api/v1/indexes")
    assert response.status_code == 200
    assert "_describe_indexes" in offloaded


def test_rebuild_and_poll_task(
    client: TestClient, repositories: dict[str, MemoryRepository]
) -> None:
    """Rebuilding returns a task that can be polled to completion."""
    for item_id in range(1, 4):
        repositories["Article"].save(Article(id=item_id, Title=f"Entry {item_id}"))

    response = client.post("/api/v1/indexes/Article/rebuild")
    assert response.status_code == 202
    task_id = response.json()["id"]

    deadline = time.monotonic() + 10
    while True:
        status = client.get(f"/api/v1/indexes/tasks/{task_id}").json()
        if status["status"] in ("completed", "failed") or time.monotonic() > deadline:
            break
        time.sleep(0.05)

    assert status["status"] == "completed"
    assert status["indexed"] == 3
    assert client.get("/api/v1/search/Article", params={"q": "entry"}).json()["total"] == 3


def test_rebuild_unknown_type_returns_404(client: TestClient) -> None:
    response = client.post("/api/v1/indexes/Invoice/rebuild")
    assert response.status_code == 404


def test_rebuild_opted_out_type_returns_409(client: TestClient) -> None:
    response = client.post("/api/v1/indexes/Draft/rebuild")
    assert response.status_code == 409


def test_unknown_task_returns_404(client: TestClient) -> None:
    response = client.get("/api/v1/indexes/tasks/missing")
    assert response.status_code == 404
