from fastapi import APIRouter
from app.api.v1.endpoints import challenge_sessions

# Create main API router
api_router = APIRouter(
    redirect_slashes=False
)  # Disable redirects to preserve Authorization header

# Include all endpoint routers
api_router.include_router(
    challenge_sessions.router,
    prefix="/challenge-sessions",
    tags=["Challenge Sessions"],
)
