"""
Posts service: create, count, list, fetch and search posts.
"""

import json
import re
from typing import Any, Awaitable, Callable, Optional

from fastapi import APIRouter, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from shared.base_service import BaseService, UNGUARDED_PATHS
from shared.config import ServiceConfig, get_config
from shared.errors import (
    BackendError,
    NotFoundError,
    PayloadTooLargeError,
    PostsServiceException,
    ValidationError,
)
from shared.metrics import MetricsCollector

from .caching.cache_manager import CacheManager, POST_BY_ID, POST_COUNT, POST_LIST, POST_SEARCH
from .caching.response_cache import ResponseCache
from .domain.auth_middleware import BasicAuthMiddleware, CredentialCheckMiddleware
from .domain.models import PostCreateRequest
from .persistence.postgres import PostgreSQLPostStore
from .ratelimit.fixed_window import FixedWindowRateLimiter, RateLimitMiddleware


_POST_ID_RE = re.compile(r"-?[0-9]+")


def parse_post_id(raw: str) -> int:
    """Parse a path id; anything but an optionally signed run of ASCII digits is rejected."""
    if not _POST_ID_RE.fullmatch(raw):
        raise ValidationError("Post id must be an integer.")
    return int(raw)


class PostsService(BaseService):
    """Posts service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        store: Optional[Any] = None,
        *,
        response_cache: Optional[ResponseCache] = None,
        rate_limiter: Optional[FixedWindowRateLimiter] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        config = config or get_config()
        self.store = store if store is not None else PostgreSQLPostStore(
            config.postgres_dsn,
            language=config.search_language,
            min_size=config.postgres_min_pool_size,
            max_size=config.postgres_max_pool_size,
            command_timeout=config.postgres_command_timeout,
        )
        self.rate_limiter = rate_limiter if rate_limiter is not None else FixedWindowRateLimiter(
            config.rate_limit_max_requests,
            config.rate_limit_window_seconds,
        )
        super().__init__("posts", config, metrics)

        self.cache_manager = CacheManager(
            response_cache if response_cache is not None else ResponseCache(),
            fast_ttl_seconds=self.config.cache_fast_ttl_seconds,
            slow_ttl_seconds=self.config.cache_slow_ttl_seconds,
            metrics=self.metrics,
        )
        self._setup_posts_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.posts_service = self

    async def _on_startup(self):
        """Open the store; a schema failure aborts startup."""
        await self.store.start()
        if self.config.initialize_schema:
            await self.store.ensure_schema()

    async def _on_shutdown(self):
        await self.store.stop()

    def _setup_guard_middleware(self):
        """Credential check on every path but the unguarded ones, with rate limiting outside it."""
        self.auth_middleware = BasicAuthMiddleware(
            self.config.auth_username,
            self.config.auth_password,
            self.config.auth_realm,
            metrics=self.metrics,
        )
        self.app.add_middleware(
            CredentialCheckMiddleware,
            authenticator=self.auth_middleware,
            exempt_paths=UNGUARDED_PATHS,
        )

        if not self.config.rate_limit_enabled:
            return
        self.app.add_middleware(
            RateLimitMiddleware,
            rate_limiter=self.rate_limiter,
            headers_enabled=self.config.rate_limit_headers_enabled,
            trust_forwarded_for=self.config.trust_forwarded_for,
            exempt_paths=UNGUARDED_PATHS,
            metrics=self.metrics,
        )

    async def _call_store(self, operation: str, method: Callable[..., Awaitable[Any]], *args) -> Any:
        """Run a store operation; anything unexpected becomes a BackendError."""
        try:
            return await method(*args)
        except BackendError:
            self.metrics.record_backend_error(operation)
            raise
        except PostsServiceException:
            raise
        except Exception as e:
            self.metrics.record_backend_error(operation)
            self.logger.error("Post store failure", operation=operation, error=str(e), exc_info=True)
            raise BackendError(operation) from e

    async def _read_create_request(self, request: Request) -> PostCreateRequest:
        """Parse and validate the create body."""
        body = await request.body()
        if len(body) > self.config.max_body_bytes:
            raise PayloadTooLargeError()

        try:
            data = json.loads(body) if body else None
        except (ValueError, RecursionError):
            raise ValidationError("Request body must be valid JSON.")

        if not isinstance(data, dict):
            raise ValidationError('Fields "quem" and "comentario" are required.')

        try:
            return PostCreateRequest.model_validate(data)
        except PydanticValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
            self.logger.info("Rejected post body", fields=fields)
            raise ValidationError('Fields "quem" and "comentario" are required and must be non-empty strings.')

    def _setup_posts_routes(self):
        """Set up posts routes."""
        router = APIRouter()

        @router.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "posts",
                "message": "Posts REST service",
                "version": "1.0.0"
            }

        @router.post("/post", status_code=201)
        async def create_post(request: Request):
            """Create a post and drop the cached listing and count."""
            payload = await self._read_create_request(request)

            post = await self._call_store(
                "create", self.store.create_post, payload.quem, payload.comentario, payload.tags
            )

            self.cache_manager.invalidate_after_create()
            return JSONResponse(status_code=201, content=jsonable_encoder(post))

        @router.get("/post/count")
        async def count_posts():
            """Total number of posts."""
            hit = self.cache_manager.lookup(POST_COUNT)
            if hit is not None:
                return hit.payload

            count = await self._call_store("count", self.store.count_posts)

            payload = jsonable_encoder(count)
            self.cache_manager.store(POST_COUNT, payload)
            return payload

        @router.get("/post")
        async def list_posts():
            """Every post, most recent first."""
            hit = self.cache_manager.lookup(POST_LIST)
            if hit is not None:
                return hit.payload

            posts = await self._call_store("list", self.store.list_posts)

            payload = jsonable_encoder(posts)
            self.cache_manager.store(POST_LIST, payload)
            return payload

        @router.get("/post/id/{post_id}")
        async def get_post(post_id: str):
            """Fetch one post by id."""
            hit = self.cache_manager.lookup(POST_BY_ID, post_id)
            if hit is not None:
                return hit.payload

            parsed_id = parse_post_id(post_id)

            post = await self._call_store("get", self.store.get_post, parsed_id)
            if post is None:
                not_found = NotFoundError()
                return JSONResponse(
                    status_code=not_found.status_code,
                    content=not_found.to_response().model_dump()
                )

            payload = jsonable_encoder(post)
            self.cache_manager.store(POST_BY_ID, payload, post_id)
            return payload

        @router.get("/post/exp/{expression}")
        async def search_posts(expression: str):
            """Full-text search; every whitespace-separated term must match."""
            hit = self.cache_manager.lookup(POST_SEARCH, expression)
            if hit is not None:
                return hit.payload

            if not expression.strip():
                raise ValidationError("Search expression must not be empty.")

            posts = await self._call_store("search", self.store.search_posts, expression)

            payload = jsonable_encoder(posts)
            self.cache_manager.store(POST_SEARCH, payload, expression)
            return payload

        self.app.include_router(router)

    async def _check_dependencies(self):
        """Check posts dependencies."""
        healthy = await self.store.health_check()
        return {"postgres": "ok" if healthy else "error"}


def create_app():
    """Create FastAPI application."""
    service = PostsService()
    return service.app


if __name__ == "__main__":
    service = PostsService()
    service.run()
