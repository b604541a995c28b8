# pipapal/main.py
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pipapal.core.config import settings
from pipapal.core.errors import WorkflowError
from pipapal.core.logs import setup_logging
from pipapal.deps import get_repo
from pipapal.routers import auth, collections, impact, interests, webhooks
from pipapal.services.webhook_worker import run_outbox_loop

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    if settings.use_mongo:
        from pipapal.core.db import get_client, get_db
        from pipapal.core.indexes import ensure_indexes
        await ensure_indexes(get_db())

    worker = None
    if settings.outbox_worker:
        worker = asyncio.create_task(run_outbox_loop(get_repo()))
        logger.info("outbox worker started")

    yield

    if worker is not None:
        worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await worker
    if settings.use_mongo:
        get_client().close()


app = FastAPI(lifespan=lifespan, title="PipaPal API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "error": exc.code})

app.include_router(auth.router)
app.include_router(collections.router)         # /api/collections
app.include_router(interests.router)           # /api/material-interests
app.include_router(impact.router)              # /api/impact, /api/activities, /api/badges
app.include_router(webhooks.router)            # /api/webhooks

# Health
@app.get("/health")
def health():
    return {"ok": True}
