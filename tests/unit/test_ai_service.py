"""Unit tests for the AI authoring service with a scripted client."""

from types import SimpleNamespace

import anthropic
import httpx
import pytest

from tandem.ai.service import AssistService, require_pattern
from tandem.ai.word_index import WordIndex
from tandem.config import get_settings
from tandem.errors import UpstreamUnavailable, ValidationFailed

_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def _status_error(cls, status):
    return cls("upstream said no", response=httpx.Response(status, request=_REQUEST), body=None)


class ScriptedMessages:
    """Returns (or raises) the scripted outcomes in order."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def create(self, **kwargs):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(content=[SimpleNamespace(text=outcome)])


def _service(outcomes, *, retries=1, word_index=None):
    settings = get_settings().model_copy(update={"ai_max_retries": retries})
    messages = ScriptedMessages(outcomes)
    return AssistService(settings, client=SimpleNamespace(messages=messages), word_index=word_index), messages


@pytest.fixture(autouse=True)
def _no_backoff(monkeypatch):
    async def _sleep(_delay):
        return None

    monkeypatch.setattr("tandem.ai.service.asyncio.sleep", _sleep)


@pytest.mark.asyncio
class TestAssistService:
    async def test_disabled_without_client(self):
        settings = get_settings().model_copy(update={"anthropic_api_key": ""})
        service = AssistService(settings)
        assert not service.enabled
        with pytest.raises(UpstreamUnavailable):
            await service.suggest_themes(recent_themes=[])

    async def test_suggest_themes_filters_recent(self):
        service, _ = _service(['```json\n{"themes": ["Pets", "Weather", "Sports"]}\n```'])
        result = await service.suggest_themes(recent_themes=["weather"], count=5)
        assert result == {"themes": ["Pets", "Sports"]}

    async def test_retries_rate_limit(self):
        service, messages = _service(
            [_status_error(anthropic.RateLimitError, 429), '{"connections": ["Heists"]}']
        )
        result = await service.suggest_connections(difficulty="easy", recent_connections=[], existing_connections=[])
        assert result == {"connections": ["Heists"]}
        assert messages.calls == 2

    async def test_retries_malformed_output_then_gives_up(self):
        service, messages = _service(["not json", '{"hints": ["only one"]}'])
        with pytest.raises(UpstreamUnavailable):
            await service.generate_hints(theme="Kitchen", puzzles=[{"answer": "PAN"}, {"answer": "POT"}])
        assert messages.calls == 2

    async def test_auth_failure_not_retried(self):
        service, messages = _service([_status_error(anthropic.AuthenticationError, 401), '{"themes": []}'])
        with pytest.raises(UpstreamUnavailable):
            await service.suggest_themes(recent_themes=[])
        assert messages.calls == 1

    async def test_assess_difficulty_range(self):
        service, _ = _service(['{"difficulty": 9}', '{"difficulty": 4, "reasoning": "hidden word"}'])
        assert await service.assess_difficulty(clue="c", answer="a", hints=[]) == {
            "difficulty": 4,
            "reasoning": "hidden word",
        }

    async def test_suggest_words_keeps_dictionary_words_only(self):
        index = WordIndex()
        index.load_lines(["CATS;80", "COTS;40", "CUTS;60"])
        service, _ = _service(['{"words": ["cots", "CZTS", "cats"]}'], word_index=index)
        result = await service.suggest_words(pattern="C.TS", limit=3)
        assert result["words"] == [
            {"word": "COTS", "score": 40, "source": "ai"},
            {"word": "CATS", "score": 80, "source": "ai"},
            {"word": "CUTS", "score": 60, "source": "dictionary"},
        ]

    async def test_suggest_words_without_candidates_skips_model(self):
        service, messages = _service([], word_index=WordIndex())
        assert await service.suggest_words(pattern="Q..") == {"pattern": "Q..", "words": []}
        assert messages.calls == 0


class TestRequirePattern:
    def test_normalizes(self):
        assert require_pattern(" c.ts ") == "C.TS"

    def test_rejects(self):
        for bad in ("C", "CATSSS", "C?TS"):
            with pytest.raises(ValidationFailed):
                require_pattern(bad)
