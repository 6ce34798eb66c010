"""
AI-assisted authoring.

Optional: with no API key configured every operation raises
``UpstreamUnavailable`` and nothing else in the service is affected. Calls
carry a bounded timeout; transient upstream failures (429, 5xx, timeouts,
malformed output) are retried with a capped exponential backoff, auth
failures are not retried at all.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Callable

import anthropic

from tandem.ai.word_index import WordIndex, get_word_index
from tandem.config import Settings, get_settings
from tandem.errors import UpstreamUnavailable, ValidationFailed

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 8.0
_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)
_RETRYABLE = (
    anthropic.RateLimitError,
    anthropic.APITimeoutError,
    anthropic.APIConnectionError,
    anthropic.InternalServerError,
)
_NOT_RETRYABLE = (anthropic.AuthenticationError, anthropic.PermissionDeniedError)


class MalformedOutput(ValueError):
    """The model answered, but not in the requested JSON shape."""


def _parse_json(text: str) -> Any:
    try:
        return json.loads(_FENCE_RE.sub("", text.strip()))
    except json.JSONDecodeError as exc:
        raise MalformedOutput("response is not JSON") from exc


def _string_list(data: Any, key: str) -> list[str]:
    items = data.get(key) if isinstance(data, dict) else None
    if not isinstance(items, list) or not all(isinstance(i, str) for i in items):
        raise MalformedOutput(f"expected a list of strings under {key!r}")
    return [i.strip() for i in items if i.strip()]


class AssistService:
    """Authoring helpers backed by the Anthropic Messages API."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: anthropic.AsyncAnthropic | None = None,
        word_index: WordIndex | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client
        if self.client is None and self.settings.ai_enabled:
            self.client = anthropic.AsyncAnthropic(
                api_key=self.settings.anthropic_api_key,
                timeout=self.settings.ai_timeout_seconds,
                max_retries=0,
            )
        self._word_index = word_index

    @property
    def enabled(self) -> bool:
        return self.client is not None

    @property
    def word_index(self) -> WordIndex:
        if self._word_index is None:
            self._word_index = get_word_index()
        return self._word_index

    async def _complete(
        self,
        prompt: str,
        parse: Callable[[Any], Any] = lambda data: data,
        *,
        max_tokens: int = 1024,
    ) -> Any:
        """Send ``prompt`` and return ``parse`` applied to the JSON answer."""
        if self.client is None:
            raise UpstreamUnavailable()

        attempts = max(self.settings.ai_max_retries, 0) + 1
        for attempt in range(attempts):
            try:
                response = await self.client.messages.create(
                    model=self.settings.ai_model,
                    max_tokens=max_tokens,
                    messages=[{"role": "user", "content": prompt}],
                )
                return parse(_parse_json(response.content[0].text))
            except _NOT_RETRYABLE:
                logger.error("AI provider rejected our credentials")
                raise UpstreamUnavailable() from None
            except (*_RETRYABLE, MalformedOutput) as exc:
                if attempt + 1 >= attempts:
                    logger.warning("AI call failed after %d attempts: %s", attempts, type(exc).__name__)
                    raise UpstreamUnavailable() from None
                delay = min(2.0**attempt, MAX_BACKOFF_SECONDS)
                logger.info("AI call failed (%s), retrying in %.1fs", type(exc).__name__, delay)
                await asyncio.sleep(delay)
            except anthropic.APIStatusError as exc:
                logger.warning("AI provider returned status %s", exc.status_code)
                raise UpstreamUnavailable() from None
        raise UpstreamUnavailable()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def suggest_themes(self, *, recent_themes: list[str], count: int = 5) -> dict[str, Any]:
        prompt = (
            f"Suggest {count} fresh themes for an emoji-pair word puzzle. Each theme groups four "
            "everyday words that can each be clued by two emoji.\n"
            f"Avoid these recent themes: {json.dumps(recent_themes)}\n"
            'Answer only with JSON: {"themes": ["..."]}'
        )
        themes = await self._complete(prompt, lambda data: _string_list(data, "themes"))
        recent = {t.casefold() for t in recent_themes}
        return {"themes": [t for t in themes if t.casefold() not in recent][:count]}

    async def suggest_connections(
        self,
        *,
        difficulty: str,
        recent_connections: list[str],
        existing_connections: list[str],
    ) -> dict[str, Any]:
        taken = [*recent_connections, *existing_connections]
        prompt = (
            f"Suggest 5 {difficulty} connections for a movie-grouping puzzle. A connection is a "
            "property shared by exactly four well-known films.\n"
            f"Do not repeat any of: {json.dumps(taken)}\n"
            'Answer only with JSON: {"connections": ["..."]}'
        )
        connections = await self._complete(prompt, lambda data: _string_list(data, "connections"))
        seen = {c.casefold() for c in taken}
        return {"connections": [c for c in connections if c.casefold() not in seen]}

    async def suggest_words(
        self,
        *,
        pattern: str,
        constraints: list[str] | None = None,
        direction: str = "across",
        limit: int = 20,
    ) -> dict[str, Any]:
        """
        Crossword fill candidates for ``pattern``. The model's picks are kept
        only if the dictionary knows them and they fit the pattern; dictionary
        candidates pad the list up to ``limit``.
        """
        candidates = self.word_index.sorted_candidates(pattern)
        if not candidates:
            return {"pattern": pattern, "words": []}
        prompt = (
            f"Pick up to {limit} good {direction} entries for a 5x5 mini crossword that match the "
            f"pattern {pattern!r} ('.' is any letter).\n"
            f"Extra constraints: {json.dumps(constraints or [])}\n"
            f"Choose only from: {json.dumps([c['word'] for c in candidates[:200]])}\n"
            'Answer only with JSON: {"words": ["..."]}'
        )
        picked = await self._complete(prompt, lambda data: _string_list(data, "words"))
        allowed = {c["word"]: c["score"] for c in candidates}
        words: list[dict[str, Any]] = []
        for word in (w.upper() for w in picked):
            if word in allowed and all(w["word"] != word for w in words):
                words.append({"word": word, "score": allowed[word], "source": "ai"})
        for candidate in candidates:
            if len(words) >= limit:
                break
            if all(w["word"] != candidate["word"] for w in words):
                words.append({**candidate, "source": "dictionary"})
        return {"pattern": pattern, "words": words[:limit]}

    async def generate_hints(self, *, theme: str, puzzles: list[dict[str, str]]) -> dict[str, Any]:
        prompt = (
            f"Theme: {theme}\n"
            f"Write one short hint (under 60 characters) for each answer, in order: "
            f"{json.dumps([p['answer'] for p in puzzles])}\n"
            "Never include the answer itself in its hint.\n"
            'Answer only with JSON: {"hints": ["..."]}'
        )

        def parse(data: Any) -> list[str]:
            hints = _string_list(data, "hints")
            if len(hints) != len(puzzles):
                raise MalformedOutput(f"expected {len(puzzles)} hints, got {len(hints)}")
            return hints

        return {"hints": await self._complete(prompt, parse)}

    async def regenerate_emoji_pair(self, *, theme: str, answer: str, context: list[str] | None = None) -> dict[str, Any]:
        prompt = (
            f"Theme: {theme}\nAnswer: {answer}\n"
            f"Other pairs in the puzzle: {json.dumps(context or [])}\n"
            "Give exactly two emoji that together clue the answer without spelling it.\n"
            'Answer only with JSON: {"emoji": "🔥🐉"}'
        )

        def parse(data: Any) -> str:
            emoji = data.get("emoji") if isinstance(data, dict) else None
            if not isinstance(emoji, str) or not emoji.strip():
                raise MalformedOutput("missing emoji")
            return emoji.strip()

        return {"answer": answer, "emoji": await self._complete(prompt, parse, max_tokens=128)}

    async def assess_difficulty(self, *, clue: str, answer: str, hints: list[dict[str, str]]) -> dict[str, Any]:
        prompt = (
            f"Rate this cryptic clue from 1 (gentle) to 5 (fiendish).\nClue: {clue}\nAnswer: {answer}\n"
            f"Hints: {json.dumps(hints)}\n"
            'Answer only with JSON: {"difficulty": 3, "reasoning": "..."}'
        )

        def parse(data: Any) -> dict[str, Any]:
            difficulty = data.get("difficulty") if isinstance(data, dict) else None
            if not isinstance(difficulty, int) or isinstance(difficulty, bool) or not 1 <= difficulty <= 5:
                raise MalformedOutput("difficulty must be an integer 1..5")
            return {"difficulty": difficulty, "reasoning": str(data.get("reasoning", ""))}

        return await self._complete(prompt, parse, max_tokens=512)


def require_pattern(pattern: str) -> str:
    pattern = pattern.strip().upper()
    if not re.fullmatch(r"[A-Z.]{2,5}", pattern):
        raise ValidationFailed("Pattern must be 2-5 characters of A-Z or '.'")
    return pattern


def get_assist_service() -> AssistService:
    return AssistService()
