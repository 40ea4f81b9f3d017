"""Full-text search API endpoint."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, HTTPException, Path, Query, Request
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from entity_search.search.errors import (
    IndexNotRegistered,
    QueryError,
    RehydrationError,
)
from entity_search.search.schemas import SearchResponse

if TYPE_CHECKING:
    from entity_search.config import Settings
    from entity_search.search import SearchClient

router = APIRouter(tags=["search"])


def _serialize(entity: Any) -> dict[str, Any]:
    if isinstance(entity, BaseModel):
        return entity.model_dump(mode="json", by_alias=True)
    return jsonable_encoder(entity)


@router.get(
    "/search/{entity_name}",
    response_model=SearchResponse,
    summary="Full-text search within one entity type",
    description="Runs an FTS5 query scoped to the entity type and returns stored entities.",
)
async def search(
    request: Request,
    entity_name: str = Path(..., min_length=1, description="Entity type name"),
    q: str = Query(
        default="",
        max_length=500,
        description="FTS5 query string; empty matches every entity",
    ),
    limit: int | None = Query(default=None, ge=1, description="Results per page"),
    offset: int = Query(default=0, ge=0, description="Results to skip"),
) -> SearchResponse:
    """Search one entity type and return the matching stored entities.

    Args:
        request: FastAPI request (provides access to app state).
        entity_name: Entity type whose index is searched.
        q: Query string in FTS5 syntax, e.g. ``title:storage``.
        limit: Results per page, capped by the configured maximum.
        offset: Pagination offset (default 0).

    Returns:
        Paginated search results in rank order.

    Raises:
        HTTPException: 404 if the entity type has no index.
        HTTPException: 400 if the query is malformed.
        HTTPException: 502 if stored entities cannot be loaded.
    """
    client: SearchClient = request.app.state.search_client
    settings: Settings = request.app.state.settings
    limit = min(limit or settings.default_limit, settings.max_limit)

    try:
        index = client.get_index(entity_name)
        page = await asyncio.to_thread(index.search_with_pagination, q, limit, offset)
    except IndexNotRegistered as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except QueryError as e:
        raise HTTPException(status_code=400, detail="Invalid query") from e
    except RehydrationError as e:
        raise HTTPException(status_code=502, detail="Failed to load results") from e

    return SearchResponse(
        entity=entity_name,
        query=page.query,
        results=[_serialize(entity) for entity in page.results],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
    )
