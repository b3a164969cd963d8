"""
Chapter generator.

Wraps a ModelProvider with a silent-fallback contract: generation failures
never stall the poll cycle. A provider exception, an empty response, a
too-short chapter or a malformed poll object all degrade to the fixed
canon fallback content.
"""

import json
import logging
import re
from typing import Any, Dict, Optional

from .canon import FALLBACK_CHAPTER_BODY, FALLBACK_POLL_CHOICES, FALLBACK_POLL_QUESTION
from .entities import PollOptions
from .model_provider import ModelProvider
from .prompt_builder import build_poll_options_prompt, build_system_prompt

logger = logging.getLogger("story_engine")

MIN_CHAPTER_LENGTH = 20
POLL_CHOICE_COUNT = 2

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def fallback_poll_options() -> PollOptions:
    """Fresh copy of the canon fallback poll."""
    return PollOptions(question=FALLBACK_POLL_QUESTION, choices=list(FALLBACK_POLL_CHOICES))


def parse_poll_options(raw: str) -> Optional[PollOptions]:
    """
    Parse a model response into PollOptions.

    Accepts a JSON object, optionally wrapped in a Markdown code fence, with
    a non-empty string "question" and "choices" holding exactly two
    non-empty strings.

    Args:
        raw: Untrusted model output

    Returns:
        PollOptions, or None if the response does not have that shape
    """
    if not isinstance(raw, str):
        return None

    text = raw.strip()
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None

    if not isinstance(data, dict):
        return None

    question = data.get("question")
    choices = data.get("choices")

    if not isinstance(question, str) or not question.strip():
        return None
    if not isinstance(choices, list) or len(choices) != POLL_CHOICE_COUNT:
        return None
    if not all(isinstance(choice, str) and choice.strip() for choice in choices):
        return None

    return PollOptions(
        question=question.strip(),
        choices=[choice.strip() for choice in choices],
    )


class ChapterGenerator:
    """
    Produces chapter prose and next-poll options.

    Neither public method raises for generation-quality problems.
    """

    def __init__(
        self,
        provider: ModelProvider,
        config: Optional[Dict[str, Any]] = None,
        system_prompt: Optional[str] = None,
    ):
        """
        Args:
            provider: ModelProvider used for every call
            config: Provider config (api_key, max_tokens, temperature, timeout)
            system_prompt: Override for the Scribe system prompt
        """
        self.provider = provider
        self.config = config or {}
        self.system_prompt = system_prompt or build_system_prompt()

    def _call(self, prompt: str) -> Optional[str]:
        """Call the provider, returning None on any failure."""
        try:
            result = self.provider.generate(self.system_prompt, prompt, self.config)
        except Exception as e:
            logger.warning(f"[Generator] Provider call failed, using fallback: {e}")
            return None
        return result.text

    def generate(self, prompt: str) -> str:
        """
        Generate chapter prose for the given prompt.

        Args:
            prompt: Full user prompt (see build_chapter_prompt)

        Returns:
            str: Generated text (stripped) if at least MIN_CHAPTER_LENGTH
                characters, otherwise FALLBACK_CHAPTER_BODY verbatim
        """
        text = self._call(prompt)
        if text is None:
            return FALLBACK_CHAPTER_BODY

        text = text.strip()
        if len(text) < MIN_CHAPTER_LENGTH:
            logger.warning(
                f"[Generator] Chapter too short ({len(text)} chars), using fallback content"
            )
            return FALLBACK_CHAPTER_BODY

        logger.info(f"[Generator] Chapter generated ({len(text)} chars)")
        return text

    def generate_poll_options(self, chapter_body: str) -> PollOptions:
        """
        Generate the next poll's question and two choices from a chapter.

        Args:
            chapter_body: Body of the chapter the poll follows

        Returns:
            PollOptions parsed from the model, or the canon fallback poll
        """
        text = self._call(build_poll_options_prompt(chapter_body))
        if text is None:
            return fallback_poll_options()

        options = parse_poll_options(text)
        if options is None:
            logger.warning(
                f"[Generator] Unusable poll options response, using fallback: {text[:200]!r}"
            )
            return fallback_poll_options()

        logger.info(f"[Generator] Poll options generated: {options.choices}")
        return options
