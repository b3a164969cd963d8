"""
Chapter router for reading the story.

Endpoints:
- GET /chapters/latest - Most recent chapter with its display title
- GET /chapters - Chapter history, newest first
"""

import logging

from fastapi import APIRouter, HTTPException, Query

from src.story.canon import GENESIS_CHAPTER_BODY, GENESIS_CHAPTER_TITLE, chapter_title
from src.story.errors import StoreError

from ..schemas.chapters import ChapterListResponse, ChapterResponse
from .._engine_state import get_engine

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/latest", response_model=ChapterResponse)
def get_latest_chapter():
    """
    Get the latest chapter.

    Readers always see a chapter: when the store is empty or unreadable the
    genesis text is returned instead.
    """
    store = get_engine().store

    try:
        chapter = store.latest_chapter()
        count = store.chapter_count()
    except StoreError as e:
        logger.error(f"[ChapterAPI] Failed to load latest chapter, serving genesis: {e}")
        chapter = None

    if chapter is None:
        return ChapterResponse(title=GENESIS_CHAPTER_TITLE, body=GENESIS_CHAPTER_BODY)

    return ChapterResponse(
        id=chapter.id,
        title=chapter_title(count),
        body=chapter.body,
        authored_at=chapter.authored_at,
    )


@router.get("", response_model=ChapterListResponse)
def list_chapters(
    limit: int = Query(default=20, ge=1, le=100, description="Maximum chapters to return"),
    offset: int = Query(default=0, ge=0, description="Chapters to skip"),
):
    """List chapters, newest first, numbered from the oldest."""
    store = get_engine().store

    try:
        total = store.chapter_count()
        chapters = store.list_chapters(limit=limit, offset=offset)
    except StoreError as e:
        logger.error(f"[ChapterAPI] Failed to list chapters: {e}")
        raise HTTPException(status_code=503, detail="Story store unavailable")

    return ChapterListResponse(
        chapters=[
            ChapterResponse(
                id=chapter.id,
                title=chapter_title(total - offset - i),
                body=chapter.body,
                authored_at=chapter.authored_at,
            )
            for i, chapter in enumerate(chapters)
        ],
        total=total,
        limit=limit,
        offset=offset,
    )
