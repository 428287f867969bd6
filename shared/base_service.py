"""
Base service class for Budaya access gateway services.
"""

import os
import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST

from shared.config import ServiceConfig, get_config
from shared.errors import (
    AccessLayerException,
    RateLimitError,
    ValidationError,
    from_exception,
    utc_timestamp,
)
from shared.logging import clear_context, configure_logging, get_logger, set_request_id
from shared.metrics import get_metrics_collector


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, service_name: str, port: int, config: Optional[ServiceConfig] = None):
        self.service_name = service_name
        self.port = port
        self.config = config or get_config(service_name, port)
        self.logger = get_logger(f"{service_name}.service")
        self.metrics = get_metrics_collector(service_name)
        self._start_time = time.time()

        configure_logging(service_name, self.config.log_level, json_logs=not self.config.is_local)

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_routes()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""
        return FastAPI(
            title=f"{self.service_name.title()} Service",
            description=f"Budaya Access Layer - {self.service_name.title()} Service",
            version="1.0.0",
            docs_url="/docs" if self.config.is_local else None,
            redoc_url="/redoc" if self.config.is_local else None,
        )

    def _setup_middleware(self):
        """Set up middleware."""

        origins = self.config.cors_origins or (["*"] if self.config.is_local else [])
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        @self.app.middleware("http")
        async def request_context(request: Request, call_next):
            request_id = set_request_id(request.headers.get("X-Request-ID"))
            start_time = time.time()

            try:
                response = await call_next(request)
            except Exception as exc:
                # Last-resort wrapper: nothing escapes without the error envelope.
                response = self.error_response(request, from_exception(exc))
            finally:
                clear_context()

            duration = time.time() - start_time
            route = request.scope.get("route")
            endpoint = getattr(route, "path", request.url.path)

            self.metrics.record_http_request(
                method=request.method,
                endpoint=endpoint,
                status_code=response.status_code,
                duration=duration
            )
            self.logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2),
                request_id=request_id,
            )

            response.headers["X-Request-ID"] = request_id
            return response

    def _setup_routes(self):
        """Set up common routes."""

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            started = time.time()
            dependencies = await self._check_dependencies()
            healthy = self._is_healthy() and all(
                dep.get("status") == "up" for dep in dependencies.values()
            )

            self.metrics.record_health_check("ok" if healthy else "error")
            payload: Dict[str, Any] = {
                "service": self.service_name,
                "status": "healthy" if healthy else "unhealthy",
                "timestamp": utc_timestamp(),
                "uptime_seconds": self._get_uptime(),
                "response_time_ms": round((time.time() - started) * 1000, 2),
                "services": dependencies,
                "environment": self.config.env,
                "version": "1.0.0",
                "commit": os.getenv("GIT_COMMIT", "unknown"),
            }
            payload.update(self._health_details())
            return JSONResponse(status_code=200 if healthy else 503, content=payload)

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(content=self.metrics.export(), media_type=CONTENT_TYPE_LATEST)

        @self.app.exception_handler(AccessLayerException)
        async def access_layer_exception_handler(request: Request, exc: AccessLayerException):
            return self.error_response(request, exc)

        @self.app.exception_handler(RequestValidationError)
        async def request_validation_handler(request: Request, exc: RequestValidationError):
            errors = [
                f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
                for err in exc.errors()
            ]
            return self.error_response(request, ValidationError("Invalid request parameters", errors=errors))

    def error_response(self, request: Request, exc: AccessLayerException) -> JSONResponse:
        """Log, record and render an error as the standard envelope."""
        log_fields = {
            "kind": exc.kind.value,
            "code": exc.code,
            "error_message": exc.message,
            "status_code": exc.status_code,
            "retryable": exc.retryable,
            "method": request.method,
            "path": request.url.path,
            "user_agent": request.headers.get("user-agent"),
        }
        if exc.expected:
            self.logger.warning("Request rejected", **log_fields)
        else:
            self.logger.error("Request failed", context=exc.context, **log_fields)

        self.metrics.record_error(exc.kind.value)
        self._record_error(exc)

        headers = {}
        if isinstance(exc, RateLimitError) and exc.retry_after is not None:
            headers["Retry-After"] = str(exc.retry_after)

        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response(debug=self.config.debug).model_dump(exclude_none=True),
            headers=headers,
        )

    def _record_error(self, exc: AccessLayerException) -> None:
        """Hook for services that aggregate errors. Override in subclasses."""

    async def _check_dependencies(self) -> Dict[str, Dict[str, Any]]:
        """Check service dependencies. Override in subclasses."""
        return {}

    def _is_healthy(self) -> bool:
        return True

    def _health_details(self) -> Dict[str, Any]:
        return {}

    def _get_uptime(self) -> float:
        """Get service uptime in seconds."""
        return time.time() - self._start_time

    def run(self):
        """Run the service."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower()
        )
