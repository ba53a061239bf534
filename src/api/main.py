import logging

from fastapi import FastAPI

from api import state
from api.dependencies import build_pipeline, load_oracle
from api.routers import ops, webhook
from integration.waha_client import WahaClient
from storage import db
from storage.assignment_store import PostgresAssignmentStore
from storage.memory_store import InMemoryAssignmentStore, default_courses

# Logging configuration
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="marbot")

app.include_router(ops.router)
app.include_router(webhook.router)


@app.on_event("startup")
async def startup() -> None:
    if db.is_configured():
        await db.init_db_pool()
        await db.init_schema()
        state.store = PostgresAssignmentStore()
        logger.info("Using PostgreSQL assignment store")
    else:
        state.store = InMemoryAssignmentStore(default_courses())
        logger.warning("DATABASE_URL not set, assignments are kept in memory only")

    state.pipeline = build_pipeline(state.store, oracle=load_oracle())
    state.waha_client = WahaClient()
    logger.info("marbot ready")


@app.on_event("shutdown")
async def shutdown() -> None:
    if db.is_configured():
        await db.close_db_pool()
