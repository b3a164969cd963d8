"""
Canonical story text.

Fixed content used at bootstrap and as the deterministic fallback whenever
generation fails. Changing any of these strings changes what a cold start
or a degraded cycle writes to the store.
"""

DEFAULT_ARC_ID = "1"

GENESIS_CHAPTER_TITLE = "Chapter 1: The Quest Begins"

GENESIS_CHAPTER_BODY = (
    "In the age of myth, where legends were forged in the crucible of destiny, "
    "two brothers, known only by their gleaming crowns of flesh, stood at a "
    "crossroads. The world, vast and unknowing, awaited their first, fateful "
    "decision."
)

FIRST_POLL_QUESTION = "What path shall the brothers take first?"

FIRST_POLL_OPTIONS = [
    "Venture into the Whispering Woods",
    "Climb the Sun-Scorched Peaks",
]

FALLBACK_CHAPTER_BODY = (
    "The Bald Brothers continue their journey, but the details are lost to "
    "legend. The story will resume with the next decision."
)

FALLBACK_POLL_QUESTION = "What path should the Bald Brothers take?"

FALLBACK_POLL_CHOICES = [
    "Seek the ancient bald scrolls in the dark temple",
    "Train with the wise bald masters in the mountains",
]


def chapter_title(chapter_number: int) -> str:
    """Display title for the Nth chapter."""
    if chapter_number <= 1:
        return GENESIS_CHAPTER_TITLE
    return f"Chapter {chapter_number}: The Saga Continues"
