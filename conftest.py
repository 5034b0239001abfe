"""
Shared pytest fixtures for the Posts service tests.
"""

import base64
from datetime import datetime
from typing import Any, List, Optional, Sequence, Tuple

import pytest
from fastapi.testclient import TestClient

from shared.config import ServiceConfig
from service_posts.app.caching.response_cache import ResponseCache
from service_posts.app.domain.models import Post, PostCount
from service_posts.app.main import PostsService
from service_posts.app.persistence.postgres import build_tsquery


AUTH_USER = "adminho"
AUTH_PASSWORD = "s3cret"


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1200.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class RecordingPostStore:
    """In-memory post store that records every call it receives."""

    def __init__(self):
        self.posts: List[Post] = []
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.fail_with: Optional[Exception] = None
        self.started = False
        self.schema_ready = False
        self._next_id = 1

    def _record(self, operation: str, *args):
        self.calls.append((operation, args))
        if self.fail_with is not None:
            raise self.fail_with

    def call_count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)

    async def start(self):
        self.started = True

    async def stop(self):
        self.started = False

    async def ensure_schema(self):
        self.schema_ready = True

    async def health_check(self) -> bool:
        return self.fail_with is None

    async def create_post(self, quem: str, comentario: str, tags: Optional[Sequence[str]] = None) -> Post:
        self._record("create", quem, comentario, tags)
        post = Post(
            id=self._next_id,
            quem=quem,
            data_hora=datetime.now(),
            comentario=comentario,
            tags=list(tags or [])
        )
        self._next_id += 1
        self.posts.append(post)
        return post

    async def count_posts(self) -> PostCount:
        self._record("count")
        return PostCount(total=len(self.posts))

    async def list_posts(self) -> List[Post]:
        self._record("list")
        return sorted(self.posts, key=lambda p: (p.data_hora, p.id), reverse=True)

    async def get_post(self, post_id: int) -> Optional[Post]:
        self._record("get", post_id)
        for post in self.posts:
            if post.id == post_id:
                return post
        return None

    async def search_posts(self, expression: str) -> List[Post]:
        self._record("search", expression)
        terms = [term.lower() for term in build_tsquery(expression).split(" & ")]
        return [
            post for post in self.posts
            if all(term in (post.comentario or "").lower().split() for term in terms)
        ]


def basic_auth(user: str, password: str) -> dict:
    token = base64.b64encode(f"{user}:{password}".encode("utf-8")).decode("ascii")
    return {"Authorization": f"Basic {token}"}


@pytest.fixture
def clock():
    """Manually advanced clock for the response cache."""
    return FakeClock()


@pytest.fixture
def config():
    """Service configuration with small, test-friendly limits."""
    return ServiceConfig(
        auth_username=AUTH_USER,
        auth_password=AUTH_PASSWORD,
        auth_realm="Posts Test",
        rate_limit_max_requests=50,
        rate_limit_window_seconds=60,
        cache_fast_ttl_seconds=5,
        cache_slow_ttl_seconds=30,
        max_body_bytes=1024,
        initialize_schema=True,
        log_level="warning",
    )


@pytest.fixture
def store():
    return RecordingPostStore()


@pytest.fixture
def posts_service(config, store, clock):
    """PostsService wired to the in-memory store and the fake clock."""
    return PostsService(
        config,
        store,
        response_cache=ResponseCache(clock=clock),
    )


@pytest.fixture
def client(posts_service):
    return TestClient(posts_service.app)


@pytest.fixture
def auth_headers():
    return basic_auth(AUTH_USER, AUTH_PASSWORD)


@pytest.fixture
def make_auth_header():
    """Build a Basic Authorization header for arbitrary credentials."""
    return basic_auth
