"""
Security middleware for FastAPI:
- Security headers (HSTS, X-Frame-Options, etc.)
- Audit logging of every request, tagged with the accessor tenant
"""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from datetime import datetime
import logging
import time

from registry.config import get_settings

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.

    The registry only serves JSON, so the content policy denies everything.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cache-Control"] = "no-store"

        return response


class AuditLoggingMiddleware(BaseHTTPMiddleware):
    """
    Audit log line per request: method, path, status, tenant, duration.
    The bearer token is never logged.
    """
    async def dispatch(self, request: Request, call_next):
        client_ip = request.client.host if request.client else "unknown"
        tenant_header = get_settings().tenancy.tenant_header
        tenant = request.headers.get(tenant_header) or None

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} | "
            f"Tenant: {tenant} | IP: {client_ip} | "
            f"Time: {datetime.utcnow().isoformat()} | {elapsed_ms:.1f}ms"
        )

        return response
