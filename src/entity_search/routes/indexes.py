"""Index administration endpoints: listing, rebuilds and task status."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog
from fastapi import APIRouter, HTTPException, Request

from entity_search.search.errors import SearchError, UnknownEntityType
from entity_search.search.schemas import IndexInfo, ReindexTaskInfo

if TYPE_CHECKING:
    from entity_search.search import SearchClient

logger = structlog.get_logger()

router = APIRouter(prefix="/indexes", tags=["indexes"])


@router.get("", response_model=list[IndexInfo])
async def list_indexes(request: Request) -> list[IndexInfo]:
    """List every registered index with its field set and size."""
    client: SearchClient = request.app.state.search_client
    return await asyncio.to_thread(_describe_indexes, client)


def _describe_indexes(client: SearchClient) -> list[IndexInfo]:
    return [
        IndexInfo(name=name, fields=list(index.fields), documents=index.count())
        for name, index in sorted(client.indexes().items())
    ]


@router.post(
    "/{entity_name}/rebuild",
    response_model=ReindexTaskInfo,
    status_code=202,
)
async def rebuild_index(request: Request, entity_name: str) -> ReindexTaskInfo:
    """Recreate an index from the current entity shape and reindex in the background.

    Args:
        request: FastAPI request (provides access to app state).
        entity_name: Entity type to rebuild.

    Returns:
        Status of the submitted reindex task.

    Raises:
        HTTPException: 404 if the entity type is unknown.
        HTTPException: 409 if the type opts out of indexing.
        HTTPException: 500 if the index cannot be recreated.
    """
    client: SearchClient = request.app.state.search_client

    try:
        task = await asyncio.to_thread(client.update_index, entity_name)
    except UnknownEntityType as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except SearchError as e:
        logger.error("search_index_rebuild_failed", entity=entity_name, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to rebuild index") from e

    if task is None:
        raise HTTPException(status_code=409, detail=f"{entity_name} is not indexable")
    return task.info()


@router.get("/tasks/{task_id}", response_model=ReindexTaskInfo)
async def get_task(request: Request, task_id: str) -> ReindexTaskInfo:
    """Return the status of a reindex task.

    Raises:
        HTTPException: 404 if the task is unknown.
    """
    client: SearchClient = request.app.state.search_client
    task = client.coordinator.get(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task.info()
