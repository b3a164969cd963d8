"""
Story Loop Test Fixtures.

Base fixtures:
  - Empty in-memory store on a mocked clock
  - Scripted providers (well-behaved, failing, blocking)
  - PollCycle wired with recovery enabled

Per-test fixtures:
  - Seeded story with a closed, voted poll
"""

import threading
from typing import Callable, Optional

import pytest

from src.scheduler.poll_cycle import PollCycle
from src.scheduler.recovery import RecoveryManager
from src.scheduler.scheduler import StoryScheduler
from src.story.entities import Poll
from src.story.generator import ChapterGenerator
from src.story.memory_store import InMemoryStoryStore
from src.story.model_provider import GenerationResult, ModelProvider


POLL_PROMPT_MARKER = "Generate two different story options"
GENERATED_CHAPTER = (
    "Torches guttered as the Bald Brothers pressed deeper, their crowns "
    "catching the last of the light."
)
GENERATED_POLL_JSON = (
    '{"question": "What now, brothers?", '
    '"choices": ["Follow the lantern", "Rest by the river"]}'
)


class StoryProvider(ModelProvider):
    """
    Well-behaved provider.

    Answers chapter prompts with prose and poll prompts with valid JSON,
    recording every user prompt it receives.
    """

    def __init__(self, chapter: str = GENERATED_CHAPTER, poll_json: str = GENERATED_POLL_JSON):
        self.chapter = chapter
        self.poll_json = poll_json
        self.prompts = []

    @property
    def provider_name(self) -> str:
        return "story-fake"

    @property
    def chapter_prompts(self) -> list:
        return [p for p in self.prompts if POLL_PROMPT_MARKER not in p]

    def generate(self, system_prompt, user_prompt, config) -> GenerationResult:
        self.prompts.append(user_prompt)
        text = self.poll_json if POLL_PROMPT_MARKER in user_prompt else self.chapter
        return GenerationResult(text=text, usage=None, provider="story-fake", model="fake")


class BlockingProvider(StoryProvider):
    """Blocks every call until `release` is set; `entered` signals the first call."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def generate(self, system_prompt, user_prompt, config) -> GenerationResult:
        self.entered.set()
        self.release.wait(timeout=10)
        return super().generate(system_prompt, user_prompt, config)


# =============================================================================
# Component Fixtures
# =============================================================================


@pytest.fixture
def story_provider() -> StoryProvider:
    return StoryProvider()


@pytest.fixture
def generator(story_provider: StoryProvider) -> ChapterGenerator:
    """ChapterGenerator over the well-behaved provider."""
    return ChapterGenerator(story_provider)


@pytest.fixture
def recovery_manager(memory_store: InMemoryStoryStore) -> RecoveryManager:
    return RecoveryManager(memory_store)


@pytest.fixture
def cycle(
    memory_store: InMemoryStoryStore,
    generator: ChapterGenerator,
    recovery_manager: RecoveryManager,
) -> PollCycle:
    """PollCycle with 30s polls, a 120s first poll and repair enabled."""
    return PollCycle(
        store=memory_store,
        generator=generator,
        arc_id="1",
        poll_duration_seconds=30,
        bootstrap_poll_seconds=120,
        recovery=recovery_manager,
    )


@pytest.fixture
def scheduler(cycle: PollCycle) -> StoryScheduler:
    """Scheduler with a short interval for loop tests."""
    sched = StoryScheduler(cycle, interval_seconds=0.05)
    yield sched
    sched.stop(timeout=5)


# =============================================================================
# Factory Fixtures
# =============================================================================


@pytest.fixture
def closed_poll(memory_store: InMemoryStoryStore, mock_clock) -> Callable:
    """
    Factory fixture for a story with one closed, unprocessed poll.

    Inserts a chapter and a poll, records votes as {client_id: choice},
    then moves the clock past the poll's closing time.
    """

    def _create(
        options: Optional[list] = None,
        votes: Optional[dict] = None,
        chapter_body: Optional[str] = "The brothers stood at the edge of the forest.",
    ) -> Poll:
        if chapter_body is not None:
            memory_store.insert_chapter(chapter_body, "1")
        poll = memory_store.insert_poll("Which way?", options or ["A", "B"], 30)
        for client_id, choice in (votes or {}).items():
            memory_store.upsert_vote(poll.id, client_id, choice)
        mock_clock.tick(30)
        return poll

    return _create


# =============================================================================
# Assertion Helpers
# =============================================================================


def open_polls(store: InMemoryStoryStore) -> list:
    """All polls with closes_at in the future."""
    now = store.now_iso()
    return [p for p in store._polls if p.closes_at > now]


def assert_single_open_poll(store: InMemoryStoryStore) -> Poll:
    """Assert exactly one poll is open and return it."""
    polls = open_polls(store)
    assert len(polls) == 1, f"Expected one open poll, found {len(polls)}"
    return polls[0]
