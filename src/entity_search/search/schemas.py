"""Pydantic schemas for search results, index listings and reindex tasks."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SearchPage(BaseModel):
    """One page of rehydrated search results.

    Attributes:
        query: The caller's free-text query.
        results: Entities in engine rank order; stale hits are omitted.
        total: Total hits reported by the engine, independent of paging.
        limit: Maximum hits requested.
        offset: Number of hits skipped.
    """

    query: str
    results: list[Any]
    total: int
    limit: int
    offset: int


class ReindexStatus(str, Enum):
    """Lifecycle states of a bulk reindex task."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ReindexTaskInfo(BaseModel):
    """Point-in-time snapshot of a reindex task.

    Attributes:
        id: Task identifier (UUID).
        entity_name: Entity type being reindexed.
        status: Current task state.
        indexed: Entities written so far.
        skipped: Entities that vanished from storage before being written.
        error: Failure description when status is 'failed'.
        started_at: When the worker picked the task up.
        finished_at: When the task reached a final state.
    """

    id: str
    entity_name: str
    status: ReindexStatus
    indexed: int = 0
    skipped: int = 0
    error: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None


class IndexInfo(BaseModel):
    """Description of a registered index."""

    name: str
    fields: list[str]
    documents: int = Field(description="Documents currently indexed")


class SearchResponse(BaseModel):
    """Paginated search response envelope.

    Attributes:
        entity: Entity type that was searched.
        query: The original search query string.
        results: Serialized entities in rank order.
        total: Total number of matching documents.
        limit: Maximum results per page.
        offset: Number of results skipped.
    """

    entity: str
    query: str
    results: list[dict[str, Any]]
    total: int
    limit: int
    offset: int
