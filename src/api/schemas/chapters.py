"""
Chapter API schemas.
"""

from typing import List, Optional
from pydantic import BaseModel, Field


class ChapterResponse(BaseModel):
    """Response representing a Chapter."""

    id: Optional[str] = Field(default=None, description="Chapter ID (null for the built-in genesis text)")
    title: str = Field(..., description="Display title")
    body: str = Field(..., description="Chapter prose")
    authored_at: Optional[str] = Field(default=None, description="Authoring timestamp (ISO format, UTC)")


class ChapterListResponse(BaseModel):
    """Response for chapter list endpoint."""

    chapters: List[ChapterResponse] = Field(default_factory=list)
    total: int = Field(..., description="Total number of chapters")
    limit: int
    offset: int
