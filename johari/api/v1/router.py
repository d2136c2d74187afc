# johari/api/v1/router.py
from fastapi import APIRouter
from johari.api.v1.endpoints import sessions,vocabulary,auth
from johari.api.v1.endpoints import health as health_endpoint # <--- Alias the health module


api_router = APIRouter()

# Session routes authenticate through get_session_service; the websocket checks its query token itself
api_router.include_router(
    sessions.router,
    prefix="/sessions",
    tags=["Sessions"],
)

# --- Public Routes ---
# Anonymous sign-in is how callers obtain a token in the first place
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(vocabulary.router, prefix="/vocabulary", tags=["Vocabulary"])
api_router.include_router(health_endpoint.router, prefix="/health", tags=["Health"])
