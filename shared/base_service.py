"""
Base service class for the Posts service.
"""

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from typing import Dict, Optional
import time
import os

from shared.config import ServiceConfig, get_config
from shared.logging import configure_logging, get_logger, set_request_id, set_client_context, clear_context
from shared.metrics import MetricsCollector, get_metrics_collector
from shared.errors import ErrorResponse, PostsServiceException, PayloadTooLargeError


# Paths served without rate limiting or credentials
UNGUARDED_PATHS = frozenset({"/health", "/metrics"})


class BaseService:
    """Base service class with common functionality."""

    def __init__(
        self,
        service_name: str,
        config: Optional[ServiceConfig] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.service_name = service_name
        self.config = config or get_config(service_name=service_name)
        self.logger = get_logger(f"{service_name}.service")
        self.metrics = metrics or get_metrics_collector(service_name)
        self._start_time = time.time()

        # Configure logging
        configure_logging(service_name, self.config.log_level)

        # Create FastAPI app
        self.app = self._create_app()

        # Set up middleware
        self._setup_middleware()

        # Set up routes
        self._setup_routes()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""
        return FastAPI(
            title=f"{self.service_name.title()} Service",
            description=f"{self.service_name.title()} REST service",
            version="1.0.0",
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url="/redoc" if self.config.env == "local" else None,
            lifespan=self._lifespan,
        )

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        """Run startup hooks before serving and shutdown hooks after."""
        await self._on_startup()
        self.logger.info("Service started", service=self.service_name)
        try:
            yield
        finally:
            await self._on_shutdown()
            self.logger.info("Service stopped", service=self.service_name)

    async def _on_startup(self):
        """Startup hook. Override in subclasses."""

    async def _on_shutdown(self):
        """Shutdown hook. Override in subclasses."""

    def _setup_middleware(self):
        """Set up middleware."""

        # Body size cap
        @self.app.middleware("http")
        async def limit_body_size(request: Request, call_next):
            content_length = request.headers.get("Content-Length")
            if content_length and content_length.isdigit() and int(content_length) > self.config.max_body_bytes:
                exc = PayloadTooLargeError()
                self.logger.warning(
                    "Request body rejected",
                    path=request.url.path,
                    content_length=int(content_length),
                    max_body_bytes=self.config.max_body_bytes
                )
                return JSONResponse(status_code=exc.status_code, content=exc.to_response().model_dump())
            return await call_next(request)

        # Middleware added later wraps earlier middleware: the guards run
        # before the body cap and timing sees every response.
        self._setup_guard_middleware()

        # Request timing middleware
        @self.app.middleware("http")
        async def add_request_timing(request: Request, call_next):
            request_id = set_request_id(request.headers.get("X-Request-ID"))
            set_client_context(request.client.host if request.client else None)
            start_time = time.time()

            try:
                # Process request
                response = await call_next(request)

                # Calculate duration
                duration = time.time() - start_time

                # Record metrics
                self.metrics.record_http_request(
                    method=request.method,
                    endpoint=self._endpoint_label(request),
                    status_code=response.status_code,
                    duration=duration
                )

                # Log request
                self.logger.info(
                    "HTTP request",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round(duration * 1000, 2)
                )

                response.headers["X-Request-ID"] = request_id
                return response
            finally:
                clear_context()

    def _setup_guard_middleware(self):
        """Install request guards. Override in subclasses."""

    @staticmethod
    def _endpoint_label(request: Request) -> str:
        """Route template for metrics labels, so path parameters don't explode cardinality."""
        route = request.scope.get("route")
        return getattr(route, "path", None) or "unmatched"

    def _setup_routes(self):
        """Set up common routes."""

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            try:
                # Check dependencies
                dependencies = await self._check_dependencies()

                # Record health check
                self.metrics.record_health_check("ok")

                return {
                    "service": self.service_name,
                    "status": "ok",
                    "uptime_seconds": self._get_uptime(),
                    "dependencies": dependencies,
                    "version": "1.0.0",
                    "commit": os.getenv("GIT_COMMIT", "unknown")
                }
            except Exception as e:
                self.logger.error("Health check failed", error=str(e))
                self.metrics.record_health_check("error")
                return JSONResponse(
                    status_code=503,
                    content={
                        "service": self.service_name,
                        "status": "error",
                        "error": str(e)
                    }
                )

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            from prometheus_client import CONTENT_TYPE_LATEST
            return Response(
                content=self.metrics.render(),
                media_type=CONTENT_TYPE_LATEST
            )

        # Error handlers
        @self.app.exception_handler(PostsServiceException)
        async def posts_exception_handler(request: Request, exc: PostsServiceException):
            """Handle PostsServiceException."""
            log = self.logger.error if exc.status_code >= 500 else self.logger.info
            log(
                "Request failed",
                code=exc.code,
                message=exc.message,
                status_code=exc.status_code,
                path=request.url.path
            )
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_response().model_dump(),
                headers=exc.headers or None
            )

        @self.app.exception_handler(StarletteHTTPException)
        async def http_exception_handler(request: Request, exc: StarletteHTTPException):
            """Render framework errors (unknown path, wrong method) as {error}."""
            return JSONResponse(
                status_code=exc.status_code,
                content=ErrorResponse(error=str(exc.detail)).model_dump(),
                headers=getattr(exc, "headers", None)
            )

        @self.app.exception_handler(RequestValidationError)
        async def request_validation_handler(request: Request, exc: RequestValidationError):
            return JSONResponse(
                status_code=400,
                content=ErrorResponse(error="Invalid request.").model_dump()
            )

        @self.app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            """Handle general exceptions."""
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            return JSONResponse(
                status_code=500,
                content={"error": "Internal server error"}
            )

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check service dependencies. Override in subclasses."""
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
