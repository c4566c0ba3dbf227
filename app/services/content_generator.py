"""
Section content acquisition.

Builds the writing prompt for one (topic, section) pair, sends it to the
injected ContentProvider, and measures the words actually returned.  Prompt
templates are module-level constants so they can be tuned without touching
logic code.

Public API
----------
ContentGenerator.generate_section(topic, section, style, word_count) -> SectionContent

Any provider failure is raised as ``GenerationFailed``; nothing is retried here.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Dict

from app.models.database_models import FormatStyle
from app.services.content_provider import ContentProvider, ProviderError
from app.services.errors import GenerationFailed
from app.utils.helpers import count_words

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class Topic:
    """A validated topic of a generation job."""

    name: str
    style: FormatStyle

    def to_dict(self) -> dict:
        return {"name": self.name, "style": self.style.value}

    @classmethod
    def from_dict(cls, data: dict) -> "Topic":
        return cls(name=data["name"], style=FormatStyle(data["style"]))


@dataclasses.dataclass(frozen=True)
class SectionContent:
    """Text returned for one section and its measured word count."""

    content: str
    word_count: int


# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

STYLE_INSTRUCTIONS: Dict[FormatStyle, str] = {
    FormatStyle.BULLETS: (
        "Format the content using ONLY bullet points. "
        "Each point should be clear and concise."
    ),
    FormatStyle.BULLETS_PARAGRAPH: (
        "Format the content using a combination of bullet points and paragraphs. "
        "Start with a brief paragraph introduction, then use bullet points for key "
        "details, and conclude with a paragraph summary."
    ),
    FormatStyle.PARAGRAPH: (
        "Format the content using ONLY paragraphs. Write in a flowing, essay-style "
        "format with proper paragraph structure."
    ),
}

_SECTION_PROMPT = """\
You are an expert academic content writer creating high-quality, original \
assignment content for college students.

**Assignment Details:**
- Topic: {topic}
- Section: {section}
- Target Word Count: {word_count} words
- Format Style: {style_instruction}

**Requirements:**
1. Write approximately {word_count} words (±10 words acceptable)
2. Maintain a formal, academic tone suitable for college-level assignments
3. Include relevant examples, explanations, and analysis where appropriate
4. Write original text; do not copy existing sources
5. Use proper academic language and terminology
6. Structure the content logically and coherently
7. For a REFERENCES section, use proper citation format (APA style)
8. Make the content informative, well-researched, and insightful

**Important:**
- Do NOT include any section headings or titles in your response
- Generate ONLY the content for the {section} section
- Follow the specified format style strictly
- Ensure the content is directly related to the topic: "{topic}"

Now generate the {section} content:\
"""


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class ContentGenerator:
    """Produces section text through a ContentProvider, one call per section."""

    SECTION_PROMPT = _SECTION_PROMPT
    # Output token cap: generous multiple of the word target
    TOKENS_PER_WORD: float = 2.0
    MIN_TOKENS: int = 256
    MAX_TOKENS: int = 8192

    def __init__(self, provider: ContentProvider) -> None:
        self.provider = provider

    def build_prompt(self, topic: str, section: str, style: FormatStyle, word_count: int) -> str:
        return self.SECTION_PROMPT.format(
            topic=topic,
            section=section,
            word_count=word_count,
            style_instruction=STYLE_INSTRUCTIONS[FormatStyle(style)],
        )

    def _token_budget(self, word_count: int) -> int:
        tokens = int(word_count * self.TOKENS_PER_WORD) + self.MIN_TOKENS
        return min(tokens, self.MAX_TOKENS)

    async def generate_section(
        self,
        topic: str,
        section: str,
        style: FormatStyle,
        word_count: int,
    ) -> SectionContent:
        """
        Generate the content of *section* for *topic*.

        Args:
            topic:      Topic name as supplied by the user.
            section:    Section name (uppercase placeholder token).
            style:      Layout the text should follow.
            word_count: Requested length; the returned count is measured, not copied.

        Raises:
            GenerationFailed: the provider call failed or returned nothing usable.
        """
        prompt = self.build_prompt(topic, section, style, word_count)

        logger.info(
            "Generating content: provider=%s topic=%r section=%s style=%s words=%d",
            getattr(self.provider, "name", "unknown"),
            topic,
            section,
            FormatStyle(style).value,
            word_count,
        )

        try:
            text = await self.provider.generate(prompt, max_tokens=self._token_budget(word_count))
        except ProviderError as exc:
            logger.error("Content generation failed for %s/%r: %s", section, topic, exc)
            raise GenerationFailed(str(exc), topic=topic, section=section) from exc
        except Exception as exc:
            logger.error(
                "Unexpected provider error for %s/%r: %s", section, topic, exc, exc_info=True
            )
            raise GenerationFailed(
                f"unexpected provider error: {exc}", topic=topic, section=section
            ) from exc

        content = (text or "").strip()
        if not content:
            raise GenerationFailed("provider returned no text", topic=topic, section=section)

        actual = count_words(content)
        logger.info(
            "Content generated: section=%s requested=%d actual=%d",
            section,
            word_count,
            actual,
        )
        return SectionContent(content=content, word_count=actual)
