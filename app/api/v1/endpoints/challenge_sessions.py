"""
Challenge Sessions API Endpoints

Handles a user's attempt at a challenge:
- Start (or resume) a session
- Complete it with a reflection
- Cancel it
- Look up the active session
- List in-progress and completed challenges
"""

from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from app.core.flexible_auth import get_current_user, get_current_user_optional
from app.core.store import StoreUnavailableError
from app.models.challenge_sessions import (
    ActiveSessionResponse,
    ChallengeSession,
    CompleteSessionRequest,
    CompletionHistory,
    CompletionResult,
    InProgressChallenge,
    Reflection,
)
from app.services.challenge_session_service import (
    ChallengeSessionService,
    ReflectionValidationError,
    SessionConflictError,
    UnauthenticatedError,
    get_challenge_session_service,
)
from app.services.logger import logger

router = APIRouter(redirect_slashes=False)


def _user_id(user: Optional[Dict[str, Any]]) -> Optional[str]:
    return user["id"] if user else None


def _raise_for(exc: Exception, action: str, user_id: Optional[str], challenge_id: Optional[str] = None):
    """Translate lifecycle errors into HTTP errors."""
    if isinstance(exc, HTTPException):
        raise exc
    if isinstance(exc, UnauthenticatedError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    if isinstance(exc, ReflectionValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, SessionConflictError):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": str(exc), "retryable": True},
        )
    if isinstance(exc, StoreUnavailableError):
        logger.error(
            f"Store unavailable while trying to {action} "
            f"(user {user_id}, challenge {challenge_id}): {exc}"
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service temporarily unavailable. Please try again.",
        )

    logger.error(
        f"Failed to {action} (user {user_id}, challenge {challenge_id}): {exc}"
    )
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


@router.get("/in-progress", response_model=List[InProgressChallenge])
async def get_in_progress_challenges(
    current_user: Optional[dict] = Depends(get_current_user_optional),
    service: ChallengeSessionService = Depends(get_challenge_session_service),
):
    """
    List in-progress challenges for the current user, newest first.

    Sessions whose completion was interrupted (reflection saved, session still
    active) are cleaned up here and not returned.
    """
    user_id = _user_id(current_user)
    try:
        return await service.list_in_progress(user_id)
    except Exception as e:
        _raise_for(e, "fetch in-progress challenges", user_id)


@router.get("/completed", response_model=CompletionHistory)
async def get_completed_challenges(
    current_user: Optional[dict] = Depends(get_current_user_optional),
    service: ChallengeSessionService = Depends(get_challenge_session_service),
):
    """Completed challenges with completion counts and points."""
    user_id = _user_id(current_user)
    try:
        return await service.list_completed(user_id)
    except Exception as e:
        _raise_for(e, "fetch completed challenges", user_id)


@router.post("/{challenge_id}/start", response_model=ChallengeSession)
async def start_challenge_session(
    challenge_id: str,
    current_user: dict = Depends(get_current_user),
    service: ChallengeSessionService = Depends(get_challenge_session_service),
):
    """
    Start a challenge session.

    Returns the existing active session if there is one; never creates a
    second active session for the same challenge.
    """
    user_id = _user_id(current_user)
    try:
        return await service.start_session(user_id, challenge_id)
    except Exception as e:
        _raise_for(e, "start challenge session", user_id, challenge_id)


@router.post("/{challenge_id}/complete", response_model=CompletionResult)
async def complete_challenge_session(
    challenge_id: str,
    request: CompleteSessionRequest,
    current_user: dict = Depends(get_current_user),
    service: ChallengeSessionService = Depends(get_challenge_session_service),
):
    """
    Complete a challenge with a reflection.

    At least one reflection answer is required. The response reports whether
    the active session was found and deactivated.
    """
    user_id = _user_id(current_user)
    try:
        return await service.complete_session(
            user_id,
            challenge_id,
            posted_anonymously=request.posted_anonymously,
            reflection_answers=request.reflections,
        )
    except Exception as e:
        _raise_for(e, "complete challenge session", user_id, challenge_id)


@router.delete("/{challenge_id}")
async def cancel_challenge_session(
    challenge_id: str,
    current_user: Optional[dict] = Depends(get_current_user_optional),
    service: ChallengeSessionService = Depends(get_challenge_session_service),
):
    """Cancel the active session for a challenge. Cancelling nothing succeeds."""
    user_id = _user_id(current_user)
    try:
        cancelled = await service.cancel_session(user_id, challenge_id)
        return {"success": True, "cancelled": cancelled}
    except Exception as e:
        _raise_for(e, "cancel challenge session", user_id, challenge_id)


@router.get("/{challenge_id}/active", response_model=ActiveSessionResponse)
async def get_active_challenge_session(
    challenge_id: str,
    current_user: Optional[dict] = Depends(get_current_user_optional),
    service: ChallengeSessionService = Depends(get_challenge_session_service),
):
    """Get the active session for a challenge, or null."""
    user_id = _user_id(current_user)
    try:
        session = await service.get_active_session(user_id, challenge_id)
        return ActiveSessionResponse(session=session)
    except Exception as e:
        _raise_for(e, "fetch active challenge session", user_id, challenge_id)


@router.get("/{challenge_id}/reflections", response_model=List[Reflection])
async def get_challenge_reflections(
    challenge_id: str,
    current_user: Optional[dict] = Depends(get_current_user_optional),
    service: ChallengeSessionService = Depends(get_challenge_session_service),
):
    """Reflections the user saved for a challenge, newest first."""
    user_id = _user_id(current_user)
    try:
        return await service.list_reflections(user_id, challenge_id)
    except Exception as e:
        _raise_for(e, "fetch challenge reflections", user_id, challenge_id)
