"""
Prompt Builder - System and User Prompt Construction

Builds the three prompts the engine sends to the model:
- The Scribe system prompt (shared by every call)
- The chapter prompt (recent chapters + winning option)
- The poll-options prompt (new chapter -> JSON {question, choices})
"""

import json
from typing import Sequence

from .canon import FALLBACK_POLL_QUESTION

MAX_CHOICE_LENGTH = 150
MIN_CHAPTER_CHARS = 400
# Chapters of context sent with each chapter prompt, the previous one included
RECENT_CHAPTER_COUNT = 3


def build_system_prompt() -> str:
    """
    Build the system prompt for the Bald Brothers Scribe persona.

    Returns:
        str: System prompt text
    """
    return f"""You are the Bald Brothers Scribe, a master storyteller tasked with continuing the epic saga of the Bald Brothers. Your role is to write compelling, engaging chapters that build upon the existing lore and narrative threads.

Guidelines:
- Write in a dramatic, engaging narrative style
- Maintain consistency with previous chapters and established lore
- Each chapter should be {MIN_CHAPTER_CHARS}+ characters and advance the story meaningfully
- Include vivid descriptions, character development, and plot progression
- End chapters on compelling notes that encourage readers to continue"""


def build_chapter_prompt(
    previous_body: str,
    winning_option: str,
    earlier_bodies: Sequence[str] = (),
) -> str:
    """
    Build the user prompt for the next chapter.

    Args:
        previous_body: Body of the latest stored chapter
        winning_option: Option text that won the reader poll
        earlier_bodies: Chapters before the previous one, oldest first

    Returns:
        str: User prompt text
    """
    context = ""
    if earlier_bodies:
        recap = "\n\n".join(f"\"{body.strip()}\"" for body in earlier_bodies)
        context = f"Earlier chapters, oldest first:\n{recap}\n\n"

    return (
        context +
        f"Previous chapter:\n\"{previous_body.strip()}\"\n\n"
        f"The readers have voted. The Bald Brothers will: \"{winning_option.strip()}\"\n\n"
        "Write the next chapter of the saga, following directly from the previous "
        "chapter and carrying out the readers' decision. "
        "Respond with the chapter prose only, no title or commentary."
    )


def build_poll_options_prompt(chapter_body: str) -> str:
    """
    Build the user prompt asking for the next poll as a JSON object.

    The example object doubles as the format specification, so the model
    sees exactly the keys the parser will accept.
    """
    example = json.dumps(
        {"question": FALLBACK_POLL_QUESTION, "choices": ["Option 1", "Option 2"]},
        indent=2,
    )
    return (
        f"Based on this chapter:\n\"{chapter_body.strip()}\"\n\n"
        "Generate two different story options for the next chapter. "
        f"Each option should be a single sentence, no more than {MAX_CHOICE_LENGTH} characters. "
        "Respond with only a JSON object in this format:\n"
        f"{example}"
    )
