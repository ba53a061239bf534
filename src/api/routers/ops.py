import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from api.dependencies import get_store
from storage import db
from storage.assignment_store import AssignmentStore, PostgresAssignmentStore

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(store: Optional[AssignmentStore] = Depends(get_store)) -> dict:
    """Health check endpoint for container orchestration."""
    health = {
        "status": "healthy" if store is not None else "starting",
        "store": "postgres" if isinstance(store, PostgresAssignmentStore) else "memory",
    }

    if isinstance(store, PostgresAssignmentStore):
        db_health = await db.health_check()
        health["database"] = db_health
        if db_health["status"] != "healthy":
            health["status"] = "degraded"

    return health


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
