"""
Request Authentication

Resolves the signed-in user from a Bearer JWT. Two flavours:
- get_current_user: required, 401 when missing or invalid
- get_current_user_optional: None when no Authorization header is sent
"""

from fastapi import HTTPException, status, Request
from typing import Optional, Dict, Any
from app.core.auth import verify_token
from app.core.database import get_supabase_client


def _extract_bearer_token(request: Request) -> Optional[str]:
    # Starlette's headers.get() is case-insensitive
    authorization = request.headers.get("authorization")

    if not authorization:
        return None

    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization format. Use 'Bearer <token>'",
        )

    token = authorization.replace("Bearer ", "").strip()

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Token required"
        )

    return token


async def get_current_user(request: Request) -> Dict[str, Any]:
    """Authenticate the request, failing with 401 when no user is signed in."""
    token = _extract_bearer_token(request)

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
        )

    return await authenticate_with_jwt(token)


async def get_current_user_optional(request: Request) -> Optional[Dict[str, Any]]:
    """Authenticate the request if credentials are present, else return None."""
    token = _extract_bearer_token(request)

    if not token:
        return None

    return await authenticate_with_jwt(token)


async def authenticate_with_jwt(token: str) -> Dict[str, Any]:
    """Authenticate using JWT token"""
    try:
        payload = verify_token(token)

        if not payload or payload.get("type") != "access":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token"
            )

        user_id = payload.get("user_id")
        if not user_id:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload"
            )

        supabase = get_supabase_client()

        result = supabase.table("users").select("*").eq("id", user_id).execute()

        if not result.data:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found"
            )

        user = result.data[0]

        user_status = user.get("status", "active")
        if user_status != "active":
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": f"Account {user_status}. Contact support if you believe this is an error.",
                    "status": user_status,
                },
            )

        user["auth_method"] = "jwt"

        return user

    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"JWT authentication failed: {str(e)}",
        )
