"""
Security middleware for the community API
"""
import time
from typing import Dict
from urllib.parse import urlparse
from collections import defaultdict, deque

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from ..config import settings
from ..logging_config import setup_logging

logger = setup_logging(__name__)

# Per-endpoint limits, e.g. on login and signup
limiter = Limiter(key_func=get_remote_address, enabled=settings.ENABLE_RATE_LIMITING)

RATE_LIMIT_EXEMPT_PATHS = ("/health", "/health/detailed")
AUTH_RATE_LIMIT = "10/minute"

PRIVATE_HOST_PREFIXES = ("127.", "10.", "169.254.", "172.16.", "192.168.")

DANGEROUS_EXTENSIONS = (
    ".exe", ".bat", ".cmd", ".com", ".pif", ".scr", ".vbs", ".js",
    ".jar", ".php", ".asp", ".aspx", ".jsp", ".sh", ".ps1",
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"

        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-client sliding window rate limit"""

    def __init__(self, app, calls: int = 60, period: int = 60):
        super().__init__(app)
        self.calls = calls
        self.period = period
        self.clients: Dict[str, deque] = defaultdict(deque)

    async def dispatch(self, request: Request, call_next):
        if request.url.path in RATE_LIMIT_EXEMPT_PATHS:
            return await call_next(request)

        client_ip = get_remote_address(request)
        now = time.time()

        client_requests = self.clients[client_ip]
        while client_requests and client_requests[0] <= now - self.period:
            client_requests.popleft()

        if len(client_requests) >= self.calls:
            logger.warning(f"Rate limit exceeded for {client_ip}")
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Rate limit exceeded",
                    "code": "RATE_LIMITED",
                    "message": f"Too many requests. Limit: {self.calls} per {self.period} seconds"
                }
            )

        client_requests.append(now)

        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with its outcome and duration"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        client_ip = get_remote_address(request)

        logger.info(
            "Request started",
            extra={
                "method": request.method,
                "path": request.url.path,
                "client_ip": client_ip,
                "user_agent": request.headers.get("user-agent"),
            }
        )

        try:
            response = await call_next(request)

            process_time = time.time() - start_time
            logger.info(
                "Request completed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "process_time": f"{process_time:.3f}s",
                    "client_ip": client_ip,
                }
            )

            return response

        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                "Request failed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "error": str(e),
                    "process_time": f"{process_time:.3f}s",
                    "client_ip": client_ip,
                }
            )
            raise


def setup_security_middleware(app: FastAPI) -> Limiter:
    """Setup all security middleware"""

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
        allow_headers=["*"],
    )

    # Only allow configured hosts outside debug mode
    if settings.DEBUG is False:
        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=settings.ALLOWED_HOSTS
        )

    app.add_middleware(SecurityHeadersMiddleware)

    if settings.ENABLE_RATE_LIMITING:
        app.add_middleware(
            RateLimitMiddleware,
            calls=settings.RATE_LIMIT_PER_MINUTE,
            period=60
        )

    app.add_middleware(RequestLoggingMiddleware)

    # Rate limiter for specific endpoints
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    logger.info("Security middleware configured")

    return limiter


def validate_request_size(request: Request, max_size: int = settings.MAX_UPLOAD_SIZE):
    """Reject bodies whose declared length exceeds max_size"""
    content_length = request.headers.get("content-length")
    if content_length and int(content_length) > max_size:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Request too large. Maximum size: {max_size} bytes"
        )


class SecurityValidator:
    """Security validation utilities"""

    @staticmethod
    def validate_filename(filename: str) -> bool:
        """Validate uploaded filename"""
        if not filename:
            return False

        # Path traversal
        if ".." in filename or "/" in filename or "\\" in filename:
            return False

        return not filename.lower().endswith(DANGEROUS_EXTENSIONS)

    @staticmethod
    def validate_url(url: str) -> bool:
        """Only public http(s) URLs"""
        if not url:
            return False

        if not url.startswith(("http://", "https://")):
            return False

        host = (urlparse(url).hostname or "").lower()
        if not host or host in ("localhost", "0.0.0.0", "::1"):
            return False

        return not host.startswith(PRIVATE_HOST_PREFIXES)
