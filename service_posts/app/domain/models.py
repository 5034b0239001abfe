"""
Post data models for the Posts service.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator


class PostCreateRequest(BaseModel):
    """Request body for creating a post.

    ``quem`` and ``comentario`` must be non-empty strings. ``tags`` falls back
    to an empty list when it is missing or anything other than a list of
    strings; it is never a reason to reject the request.
    """

    model_config = ConfigDict(extra="ignore")

    quem: StrictStr = Field(..., min_length=1, description="Author name")
    comentario: StrictStr = Field(..., min_length=1, description="Comment text")
    tags: List[str] = Field(default_factory=list, description="Tags")

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> List[str]:
        if isinstance(value, list) and all(isinstance(tag, str) for tag in value):
            return value
        return []


class Post(BaseModel):
    """Persisted post as returned to clients."""

    id: int
    quem: str
    data_hora: datetime
    comentario: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def _null_tags(cls, value: Any) -> Any:
        return [] if value is None else value


class PostCount(BaseModel):
    """Total number of persisted posts."""

    total: int
