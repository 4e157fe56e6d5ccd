from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
import time
import json
from app.core.cache import get_redis_client
from app.core.config import settings
from app.services.logger import logger


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to every API response"""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains; preload"
        )

        return response


class AuditLoggingMiddleware(BaseHTTPMiddleware):
    """Audit trail for challenge session writes"""

    AUDITED_PREFIXES = ["/api/v1/challenge-sessions"]
    AUDITED_METHODS = {"POST", "DELETE"}
    AUDIT_LOG_KEY = "audit_log"

    def _is_audited(self, request: Request) -> bool:
        return request.method in self.AUDITED_METHODS and any(
            request.url.path.startswith(prefix) for prefix in self.AUDITED_PREFIXES
        )

    async def dispatch(self, request: Request, call_next):
        if not self._is_audited(request):
            return await call_next(request)

        start_time = time.time()
        response = await call_next(request)
        self._log_response(request, response, time.time() - start_time)

        return response

    def _log_response(self, request: Request, response: Response, duration: float):
        log_data = {
            "timestamp": time.time(),
            "method": request.method,
            "path": request.url.path,
            "ip": request.client.host if request.client else None,
            "status_code": response.status_code,
            "duration": duration,
        }

        try:
            redis = get_redis_client()
            if redis:
                redis.lpush(self.AUDIT_LOG_KEY, json.dumps(log_data))
                redis.ltrim(self.AUDIT_LOG_KEY, 0, settings.AUDIT_LOG_MAX_ENTRIES - 1)
        except Exception as e:
            logger.warning(f"Failed to write audit log entry: {e}")
