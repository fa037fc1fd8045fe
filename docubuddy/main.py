import os
from docubuddy.routers.auth import router as auth_router
from docubuddy.routers.users import router as user_router
from docubuddy.routers.teams import router as team_router
from docubuddy.routers.members import router as member_router
from docubuddy.routers.documents import router as document_router
from docubuddy.routers.storage import router as storage_router
from docubuddy.routers.workflow import router as workflow_router
from docubuddy.routers.chat import router as chat_router
from docubuddy.routers.websocket import router as websocket_router

from fastapi import Request, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from apscheduler.schedulers.background import BackgroundScheduler
from contextlib import asynccontextmanager
from .config import RUN_SCHEDULER
from .database import init_db
from .errors import DocuBuddyError, NotAuthenticated, PartialBatchFailure
from .services.processing.cleanup import fail_stalled_documents
from .services.storage import bucket_storage, ensure_documents_bucket
from .services.upload import upload_pipeline

# Logger
logger = logging.getLogger("uvicorn.error")

# APScheduler instance
scheduler = BackgroundScheduler()


@asynccontextmanager
async def scheduler_lifespan(app: FastAPI):
    """Start/stop background scheduler."""
    if not RUN_SCHEDULER:
        yield
        return
    scheduler.add_job(fail_stalled_documents, "cron", minute=0,
                      kwargs={"on_failed": upload_pipeline.completion_source.forget})
    scheduler.start()
    logger.info("Scheduler started")

    yield

    scheduler.shutdown()
    logger.info("Scheduler stopped")


@asynccontextmanager
async def storage_lifespan(app: FastAPI):
    """Create tables and the documents bucket if they are missing."""
    init_db()
    try:
        ensure_documents_bucket(bucket_storage)
    except DocuBuddyError as e:
        logger.error(f"Documents bucket is unavailable: {e.message}")

    yield


# Combine lifespans into one
@asynccontextmanager
async def lifespan(app: FastAPI):
    async with storage_lifespan(app):
        async with scheduler_lifespan(app):
            yield


# App instance
app = FastAPI(title="DocuBuddy API", lifespan=lifespan)

# CORS
origins_env = os.getenv("API_CORS_ORIGINS", "")
origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DocuBuddyError)
async def docubuddy_exception_handler(request: Request, exc: DocuBuddyError):
    logger.error(f"{type(exc).__name__} on {request.url}: {exc.message}")
    content = {"detail": exc.message}
    if isinstance(exc, PartialBatchFailure):
        content.update(exc.result.model_dump(mode="json"))
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, NotAuthenticated) else None
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.get("/", include_in_schema=False)
async def root():
    return {"message": "Welcome to DocuBuddy API", "docs": "/docs"}


# API routers
prefix = "/api"

app.include_router(auth_router, prefix=prefix)
app.include_router(user_router, prefix=prefix)
app.include_router(team_router, prefix=prefix)
app.include_router(member_router, prefix=prefix)
app.include_router(document_router, prefix=prefix)
app.include_router(storage_router, prefix=prefix)
app.include_router(workflow_router, prefix=prefix)
app.include_router(chat_router, prefix=prefix)
app.include_router(websocket_router)
