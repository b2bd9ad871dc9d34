import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Load environment variables from .env
from dotenv import load_dotenv
load_dotenv()

from app.api.v1.api import api_router
from app.config import cors_origins, load_google_config
from app.database import engine, Base, SessionLocal
from app.logging_config import setup_logging
from app.models import GoogleToken, GoogleCalendar, GoogleEventLink  # noqa: F401 (register tables)
from app.services.errors import CalendarSyncError
from app.services.sync_queue import SyncQueue, make_sync_runner

setup_logging()
logger = logging.getLogger("app.main")

app = FastAPI(
    title="Student Portal Calendar Sync",
    description="Google Calendar connection, incremental sync and push notifications",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.sync_queue = SyncQueue(make_sync_runner(SessionLocal, load_google_config()))


@app.exception_handler(CalendarSyncError)
async def calendar_sync_error_handler(request: Request, exc: CalendarSyncError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
def on_startup():
    """Create database tables and start the background sync worker."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")
    app.state.sync_queue.start()


@app.on_event("shutdown")
def on_shutdown():
    app.state.sync_queue.stop()


app.include_router(api_router)


@app.get("/")
def health_check():
    return {"status": "ok"}
