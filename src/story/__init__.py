"""
Story module - storage and generation components of the story loop.

This module provides:
- Domain entities (Chapter, Poll, Vote, PollResult)
- StoryStore and its SQLite / in-memory implementations
- Model providers and the fallback-guarded ChapterGenerator
- Prompt construction and canonical story text
"""

from .entities import (
    Chapter,
    Poll,
    Vote,
    OptionTally,
    PollOptions,
    PollResult,
)

from .errors import (
    StoryEngineError,
    StoreError,
    PollNotFoundError,
    InvalidPollError,
    InvalidVoteError,
)

from .store import StoryStore
from .persistence import SQLiteStoryStore
from .memory_store import InMemoryStoryStore

from .model_provider import (
    ModelProvider,
    ProviderError,
    get_provider,
    get_model_info,
)

from .generator import (
    ChapterGenerator,
    parse_poll_options,
)

from .prompt_builder import (
    build_system_prompt,
    build_chapter_prompt,
    build_poll_options_prompt,
)

__all__ = [
    # entities
    "Chapter",
    "Poll",
    "Vote",
    "OptionTally",
    "PollOptions",
    "PollResult",
    # errors
    "StoryEngineError",
    "StoreError",
    "PollNotFoundError",
    "InvalidPollError",
    "InvalidVoteError",
    # stores
    "StoryStore",
    "SQLiteStoryStore",
    "InMemoryStoryStore",
    # model_provider
    "ModelProvider",
    "ProviderError",
    "get_provider",
    "get_model_info",
    # generator
    "ChapterGenerator",
    "parse_poll_options",
    # prompt_builder
    "build_system_prompt",
    "build_chapter_prompt",
    "build_poll_options_prompt",
]
