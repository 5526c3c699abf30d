"""
Request logging middleware with correlation IDs, and loguru configuration
"""
import json
import sys
import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from src.models.internal import RequestContext

USER_AGENT_LIMIT = 256


def get_client_ip(request: Request) -> str:
    """
    Get client IP address, checking for proxy headers

    Args:
        request: FastAPI request object

    Returns:
        Client IP address
    """
    # X-Forwarded-For can contain multiple IPs, the first is the client
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


def get_request_context(request: Request) -> RequestContext:
    """Provenance stored on audit entries written while serving this request"""
    user_agent = request.headers.get("user-agent")
    return RequestContext(
        ip_address=get_client_ip(request),
        user_agent=user_agent[:USER_AGENT_LIMIT] if user_agent else None,
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for structured request/response logging with correlation IDs
    """

    def __init__(self, app):
        super().__init__(app)
        self.excluded_paths = {
            "/docs",
            "/redoc",
            "/openapi.json",
            "/metrics",
        }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        start_time = time.time()
        method = request.method
        path = request.url.path
        client_ip = get_client_ip(request)
        log = logger.bind(correlation_id=correlation_id, method=method, path=path, client_ip=client_ip)

        if path not in self.excluded_paths:
            log.info("Incoming request")

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = int((time.time() - start_time) * 1000)
            log.bind(duration_ms=duration_ms, exception_type=type(e).__name__).error(
                f"Request failed: {method} {path}: {e}"
            )
            raise

        duration_ms = int((time.time() - start_time) * 1000)
        response.headers["X-Correlation-ID"] = correlation_id

        if path not in self.excluded_paths:
            if response.status_code >= 500:
                log_level = "error"
            elif response.status_code >= 400:
                log_level = "warning"
            else:
                log_level = "info"

            getattr(log.bind(status_code=response.status_code, duration_ms=duration_ms), log_level)(
                f"Request completed: {method} {path} - {response.status_code} ({duration_ms}ms)"
            )

        return response


def _json_sink(message) -> None:
    record = message.record
    log_data = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["module"],
        "function": record["function"],
        "line": record["line"],
    }

    if record["extra"]:
        log_data.update(record["extra"])

    if record["exception"]:
        log_data["exception"] = {
            "type": record["exception"].type.__name__,
            "value": str(record["exception"].value),
        }

    sys.stdout.write(json.dumps(log_data, default=str) + "\n")
    sys.stdout.flush()


def configure_logging():
    """
    Configure loguru: JSON lines for production, colourised text otherwise
    """
    from src.config import settings

    logger.remove()

    if settings.log_format == "json":
        logger.add(_json_sink, level=settings.log_level)
    else:
        logger.add(
            sys.stdout,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
            level=settings.log_level,
            colorize=True,
        )

    logger.info(f"Logging configured: level={settings.log_level}, format={settings.log_format}")
