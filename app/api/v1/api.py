from fastapi import APIRouter
from app.api.v1.endpoints import google_auth, google_calendars, google_sync, google_webhook

api_router = APIRouter(prefix="/api/v1")

# Include all endpoint routers
api_router.include_router(google_auth.router)
api_router.include_router(google_calendars.router)
api_router.include_router(google_sync.router)
api_router.include_router(google_webhook.router)
