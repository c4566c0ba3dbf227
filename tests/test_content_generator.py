"""Tests for section content acquisition."""
import pytest

from app.models.database_models import FormatStyle
from app.services.content_generator import ContentGenerator, Topic
from app.services.errors import GenerationFailed
from tests.conftest import FakeProvider


class _BrokenProvider(FakeProvider):
    async def generate(self, prompt: str, max_tokens: int = 2048) -> str:
        raise ConnectionError("connection reset")


class _EmptyProvider(FakeProvider):
    async def generate(self, prompt: str, max_tokens: int = 2048) -> str:
        return "   \n "


@pytest.mark.asyncio
async def test_word_count_is_measured_not_requested():
    generator = ContentGenerator(FakeProvider(words=37))
    result = await generator.generate_section("Solar Power", "CONTENT", FormatStyle.PARAGRAPH, 475)
    assert result.word_count == 37
    assert result.content.startswith("word0 word1")


@pytest.mark.asyncio
async def test_prompt_carries_topic_section_target_and_style():
    provider = FakeProvider()
    generator = ContentGenerator(provider)
    await generator.generate_section("Solar Power", "OBJECTIVE", FormatStyle.BULLETS, 95)

    prompt = provider.prompts[0]
    assert "Solar Power" in prompt
    assert "OBJECTIVE" in prompt
    assert "95 words" in prompt
    assert "ONLY bullet points" in prompt


@pytest.mark.asyncio
async def test_provider_error_becomes_generation_failed():
    generator = ContentGenerator(FakeProvider(fail_on=1))
    with pytest.raises(GenerationFailed) as exc_info:
        await generator.generate_section("Solar Power", "CONTENT", FormatStyle.PARAGRAPH, 100)

    err = exc_info.value
    assert err.section == "CONTENT"
    assert err.topic == "Solar Power"
    assert str(err) == "AI content generation failed for section CONTENT: quota exceeded"


@pytest.mark.asyncio
async def test_unexpected_provider_exception_is_wrapped():
    generator = ContentGenerator(_BrokenProvider())
    with pytest.raises(GenerationFailed, match="connection reset"):
        await generator.generate_section("Solar Power", "CONTENT", FormatStyle.PARAGRAPH, 100)


@pytest.mark.asyncio
async def test_blank_response_is_a_failure():
    generator = ContentGenerator(_EmptyProvider())
    with pytest.raises(GenerationFailed, match="no text"):
        await generator.generate_section("Solar Power", "SUMMARY", FormatStyle.PARAGRAPH, 50)


def test_token_budget_is_capped():
    generator = ContentGenerator(FakeProvider())
    assert generator._token_budget(100) == 456
    assert generator._token_budget(100_000) == ContentGenerator.MAX_TOKENS


def test_topic_dict_roundtrip():
    topic = Topic(name="Wind", style=FormatStyle.BULLETS_PARAGRAPH)
    assert topic.to_dict() == {"name": "Wind", "style": "bullets-paragraph"}
    assert Topic.from_dict(topic.to_dict()) == topic
