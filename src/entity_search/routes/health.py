"""Health check endpoints for liveness and readiness probes."""
from typing import Literal

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from entity_search.search import SearchClient

router = APIRouter(prefix="/health", tags=["health"])


class LivenessResponse(BaseModel):
    """Response model for liveness probe."""

    status: Literal["alive"]


class ReadinessResponse(BaseModel):
    """Response model for readiness probe.

    Attributes:
        status: Overall readiness ('ready' or 'not_ready').
        search_path: Index root directory checked.
        indexes: Number of registered indexes.
        message: Error details when not ready.
    """

    status: Literal["ready", "not_ready"]
    search_path: str
    indexes: int
    message: str | None = None


@router.get("/live", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness probe endpoint.

    Returns:
        Liveness status response.
    """
    return LivenessResponse(status="alive")


@router.get("/ready", response_model=ReadinessResponse)
async def readiness(request: Request) -> JSONResponse:
    """Readiness probe endpoint.

    Verifies that the search index root exists and is listable. Returns
    200 when it is, 503 otherwise.

    Args:
        request: FastAPI request (provides access to app state).

    Returns:
        Readiness status with the registered index count.
    """
    client: SearchClient = request.app.state.search_client
    path = client.search_path
    message: str | None = None

    try:
        if path.is_dir():
            list(path.iterdir())
        else:
            message = "Directory not found"
    except OSError as e:
        message = str(e)

    response = ReadinessResponse(
        status="ready" if message is None else "not_ready",
        search_path=str(path),
        indexes=len(client.indexes()),
        message=message,
    )
    code = status.HTTP_200_OK if message is None else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(content=response.model_dump(), status_code=code)
