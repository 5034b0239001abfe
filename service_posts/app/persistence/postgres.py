"""
PostgreSQL persistence layer for the Posts service.
"""

import re
from typing import Any, List, Optional, Sequence

import asyncpg

from shared.logging import get_logger
from shared.errors import BackendError, MalformedSearchExpressionError, ValidationError
from ..domain.models import Post, PostCount


# Backend id column is SERIAL (int4)
INT4_MIN = -2 ** 31
INT4_MAX = 2 ** 31 - 1

# SQLSTATE the backend reports when to_tsquery cannot parse its input
SYNTAX_ERROR_SQLSTATE = "42601"

_LANGUAGE_RE = re.compile(r"^[a-z_]+$")


def build_tsquery(expression: str) -> str:
    """Join whitespace-separated terms with ``&`` so every term must match."""
    terms = expression.split()
    if not terms:
        raise ValidationError("Search expression must not be empty.")
    return " & ".join(terms)


class PostgreSQLPostStore:
    """PostgreSQL persistence layer for posts."""

    def __init__(
        self,
        dsn: str,
        *,
        language: str = "portuguese",
        min_size: int = 2,
        max_size: int = 10,
        command_timeout: float = 30,
    ):
        if not _LANGUAGE_RE.match(language):
            raise ValueError(f"Invalid text search configuration: {language!r}")
        self.dsn = dsn
        self.language = language
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.logger = get_logger("posts.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout
            )
            self.logger.info("PostgreSQL persistence started")

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise BackendError("start", "Failed to connect to the database.") from e

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL persistence stopped")

    def _require_pool(self, operation: str) -> asyncpg.Pool:
        if self.pool is None:
            raise BackendError(operation, "Database is not available.")
        return self.pool

    async def ensure_schema(self):
        """Create the posts table and its search indexes if they don't exist."""
        pool = self._require_pool("ensure_schema")
        try:
            async with pool.acquire() as conn:
                await conn.execute("""
                    CREATE TABLE IF NOT EXISTS posts (
                        id SERIAL PRIMARY KEY,
                        quem VARCHAR(255) NOT NULL,
                        data_hora TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        comentario TEXT,
                        tags TEXT[] DEFAULT ARRAY[]::TEXT[]
                    );
                """)

                # Full-text search over comments, containment over tags
                await conn.execute(f"""
                    CREATE INDEX IF NOT EXISTS idx_posts_comentario_gin
                    ON posts USING GIN (to_tsvector('{self.language}', comentario));
                """)
                await conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_posts_tags_gin ON posts USING GIN (tags);
                """)

            self.logger.info("Database schema verified")

        except Exception as e:
            self.logger.error("Failed to initialize database schema", error=str(e))
            raise BackendError("ensure_schema", "Failed to initialize the database.") from e

    async def create_post(self, quem: str, comentario: str, tags: Optional[Sequence[str]] = None) -> Post:
        """Insert a post; id and timestamp are assigned by the database."""
        if not isinstance(quem, str) or not quem:
            raise ValidationError('Fields "quem" and "comentario" are required.')
        if not isinstance(comentario, str) or not comentario:
            raise ValidationError('Fields "quem" and "comentario" are required.')
        tag_list = list(tags) if isinstance(tags, (list, tuple)) else []

        pool = self._require_pool("create")
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow("""
                    INSERT INTO posts (quem, comentario, tags)
                    VALUES ($1, $2, $3)
                    RETURNING *
                """, quem, comentario, tag_list)

        except Exception as e:
            self.logger.error("Error inserting post", quem=quem, error=str(e))
            raise BackendError("create", "Error inserting post.") from e

        post = self._row_to_post(row)
        self.logger.info("Post created", post_id=post.id, quem=post.quem)
        return post

    async def count_posts(self) -> PostCount:
        """Get total number of posts."""
        pool = self._require_pool("count")
        try:
            async with pool.acquire() as conn:
                total = await conn.fetchval("SELECT COUNT(*) FROM posts")
        except Exception as e:
            self.logger.error("Error counting posts", error=str(e))
            raise BackendError("count", "Error counting posts.") from e

        return PostCount(total=int(total or 0))

    async def list_posts(self) -> List[Post]:
        """Load every post, most recent first."""
        pool = self._require_pool("list")
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch("""
                    SELECT * FROM posts ORDER BY data_hora DESC
                """)
        except Exception as e:
            self.logger.error("Error loading all posts", error=str(e))
            raise BackendError("list", "Error fetching all posts.") from e

        return [self._row_to_post(row) for row in rows]

    async def get_post(self, post_id: int) -> Optional[Post]:
        """Load a post by id; ``None`` when no row matches."""
        if isinstance(post_id, bool) or not isinstance(post_id, int):
            raise ValidationError("Post id must be an integer.")
        if not INT4_MIN <= post_id <= INT4_MAX:
            return None

        pool = self._require_pool("get")
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow("""
                    SELECT * FROM posts WHERE id = $1
                """, post_id)
        except Exception as e:
            self.logger.error("Error loading post", post_id=post_id, error=str(e))
            raise BackendError("get", "Error fetching post by id.") from e

        if not row:
            return None
        return self._row_to_post(row)

    async def search_posts(self, expression: str) -> List[Post]:
        """Full-text search over comments; every term in ``expression`` must match."""
        tsquery = build_tsquery(expression)

        pool = self._require_pool("search")
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(f"""
                    SELECT * FROM posts
                    WHERE to_tsvector('{self.language}', comentario)
                        @@ to_tsquery('{self.language}', $1)
                """, tsquery)
        except asyncpg.PostgresError as e:
            if e.sqlstate == SYNTAX_ERROR_SQLSTATE:
                self.logger.info("Rejected search expression", tsquery=tsquery, error=str(e))
                raise MalformedSearchExpressionError() from e
            self.logger.error("Error searching posts", tsquery=tsquery, error=str(e))
            raise BackendError("search", "Error searching posts by expression.") from e
        except Exception as e:
            self.logger.error("Error searching posts", tsquery=tsquery, error=str(e))
            raise BackendError("search", "Error searching posts by expression.") from e

        return [self._row_to_post(row) for row in rows]

    def _row_to_post(self, row: Any) -> Post:
        """Convert database row to Post object."""
        return Post(
            id=row['id'],
            quem=row['quem'],
            data_hora=row['data_hora'],
            comentario=row['comentario'],
            tags=row['tags']
        )

    async def health_check(self) -> bool:
        """Check database health."""
        if self.pool is None:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception as e:
            self.logger.warning("Database health check failed", error=str(e))
            return False
