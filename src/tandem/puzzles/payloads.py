"""Per-game puzzle payloads.

Each game has an independently versioned payload record. ``parse_payload``
validates and normalizes an incoming payload for storage; ``present_payload``
shapes a stored payload for clients (legacy transform, stable ordering).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import Field, ValidationError, field_validator, model_validator

from tandem.errors import ValidationFailed
from tandem.middleware.error_handler import sanitize_validation_errors
from tandem.puzzles.mini_grid import BLOCK, ClueRef, normalize_cell, validate_grid
from tandem.schemas import ApiModel

_WORDS_RE = re.compile(r"^[A-Z]+( [A-Z]+)*$")


def _upper_words(value: str) -> str:
    """Uppercase, collapse inner whitespace, and require ASCII letters only."""
    normalized = " ".join(value.upper().split())
    if not _WORDS_RE.match(normalized):
        msg = "must contain only letters A-Z"
        raise ValueError(msg)
    return normalized


# ---------------------------------------------------------------------------
# Tandem
# ---------------------------------------------------------------------------


class TandemPair(ApiModel):
    emoji: str = Field(min_length=1, max_length=32)
    answer: str = Field(min_length=1, max_length=64)
    hint: str | None = Field(default=None, max_length=200)

    @field_validator("answer")
    @classmethod
    def _answer_words(cls, value: str) -> str:
        return _upper_words(value)


class TandemPayload(ApiModel):
    theme: str = Field(min_length=1, max_length=128)
    puzzles: list[TandemPair] = Field(min_length=4, max_length=4)
    difficulty: str | None = Field(default=None, max_length=16)


def transform_legacy_tandem(payload: dict[str, Any]) -> dict[str, Any]:
    """Rewrite ``{emojiPairs, words|correctAnswers}`` into ``puzzles[{emoji, answer}]``."""
    if "puzzles" in payload or "emojiPairs" not in payload:
        return payload
    answers = payload.get("words") or payload.get("correctAnswers") or []
    hints = payload.get("hints") or []
    pairs = []
    for i, emoji in enumerate(payload["emojiPairs"]):
        pair: dict[str, Any] = {"emoji": emoji, "answer": str(answers[i]).upper() if i < len(answers) else ""}
        if i < len(hints) and hints[i]:
            pair["hint"] = hints[i]
        pairs.append(pair)
    converted = {
        k: v for k, v in payload.items() if k not in ("emojiPairs", "words", "correctAnswers", "hints")
    }
    converted["puzzles"] = pairs
    return converted


def is_legacy_tandem(payload: dict[str, Any]) -> bool:
    return "emojiPairs" in payload and "puzzles" not in payload


# ---------------------------------------------------------------------------
# Cryptic
# ---------------------------------------------------------------------------

HintKind = Literal["fodder", "indicator", "definition", "letter"]


class CrypticHint(ApiModel):
    type: HintKind
    text: str = Field(min_length=1, max_length=500)


class CrypticPayload(ApiModel):
    clue: str = Field(min_length=1, max_length=300)
    answer: str = Field(min_length=1, max_length=64)
    length: int = Field(ge=1, le=64)
    word_pattern: list[int] | None = None
    hints: list[CrypticHint] = Field(min_length=4, max_length=4)
    explanation: str = Field(default="", max_length=2000)
    difficulty: int = Field(default=3, ge=1, le=5)
    cryptic_device: str | None = Field(default=None, max_length=64)
    theme_emoji: str | None = Field(default=None, max_length=16)

    @field_validator("answer")
    @classmethod
    def _answer_words(cls, value: str) -> str:
        return _upper_words(value)

    @model_validator(mode="after")
    def _check_lengths(self) -> CrypticPayload:
        words = self.answer.split(" ")
        letters = sum(len(w) for w in words)
        if letters != self.length:
            msg = f"answer has {letters} letters but length is {self.length}"
            raise ValueError(msg)
        derived = [len(w) for w in words]
        if self.word_pattern is None:
            self.word_pattern = derived
        elif self.word_pattern != derived:
            msg = f"word pattern {self.word_pattern} does not match answer words {derived}"
            raise ValueError(msg)
        return self


# ---------------------------------------------------------------------------
# Mini
# ---------------------------------------------------------------------------


class MiniClue(ApiModel):
    number: int = Field(ge=1, le=25)
    row: int = Field(ge=0, le=4)
    col: int = Field(ge=0, le=4)
    length: int = Field(ge=1, le=5)
    clue: str = Field(min_length=1, max_length=200)
    answer: str = Field(min_length=1, max_length=5)

    @field_validator("answer")
    @classmethod
    def _answer_letters(cls, value: str) -> str:
        value = value.strip().upper()
        if not value.isascii() or not value.isalpha():
            msg = "must contain only letters A-Z"
            raise ValueError(msg)
        return value


class MiniClues(ApiModel):
    across: list[MiniClue] = Field(min_length=1)
    down: list[MiniClue] = Field(min_length=1)


class MiniPayload(ApiModel):
    grid: list[list[str]]
    clues: MiniClues
    theme: str | None = Field(default=None, max_length=128)
    difficulty: str | None = Field(default=None, max_length=16)

    @field_validator("grid")
    @classmethod
    def _normalize_grid(cls, grid: list[list[str]]) -> list[list[str]]:
        return [[normalize_cell(cell) for cell in row] for row in grid]

    @model_validator(mode="after")
    def _check_grid(self) -> MiniPayload:
        refs = [
            ClueRef(direction, c.number, c.row, c.col, c.length, c.answer)
            for direction, clues in (("across", self.clues.across), ("down", self.clues.down))
            for c in clues
        ]
        errors = validate_grid(self.grid, refs)
        if errors:
            raise ValueError("; ".join(errors))
        return self


# ---------------------------------------------------------------------------
# Reel Connections
# ---------------------------------------------------------------------------

ReelDifficulty = Literal["easiest", "easy", "medium", "hard", "hardest"]


class ReelMovie(ApiModel):
    imdb_id: str = Field(min_length=1, max_length=16)
    title: str = Field(min_length=1, max_length=200)
    year: int | None = Field(default=None, ge=1870, le=2100)
    poster: str | None = Field(default=None, max_length=500)
    order: int = Field(ge=0, le=3)


class ReelGroup(ApiModel):
    connection: str = Field(min_length=1, max_length=200)
    difficulty: ReelDifficulty
    order: int = Field(ge=0, le=3)
    movies: list[ReelMovie] = Field(min_length=4, max_length=4)

    @model_validator(mode="after")
    def _distinct_orders(self) -> ReelGroup:
        if sorted(m.order for m in self.movies) != [0, 1, 2, 3]:
            msg = "movie order values must be 0..3, each used once"
            raise ValueError(msg)
        return self


class ReelPayload(ApiModel):
    groups: list[ReelGroup] = Field(min_length=4, max_length=4)

    @model_validator(mode="after")
    def _distinct_groups(self) -> ReelPayload:
        if sorted(g.order for g in self.groups) != [0, 1, 2, 3]:
            msg = "group order values must be 0..3, each used once"
            raise ValueError(msg)
        ids = [m.imdb_id for g in self.groups for m in g.movies]
        if len(set(ids)) != len(ids):
            msg = "a movie may appear only once per puzzle"
            raise ValueError(msg)
        return self


# ---------------------------------------------------------------------------
# Element Soup
# ---------------------------------------------------------------------------


class SoupStep(ApiModel):
    element_a: str = Field(min_length=1, max_length=64)
    element_b: str = Field(min_length=1, max_length=64)
    result: str = Field(min_length=1, max_length=64)
    emoji: str | None = Field(default=None, max_length=32)


class SoupPayload(ApiModel):
    target_element: str = Field(min_length=1, max_length=64)
    target_emoji: str = Field(min_length=1, max_length=32)
    par_moves: int = Field(ge=1, le=100)
    difficulty: str | None = Field(default=None, max_length=16)
    solution_path: list[SoupStep] | None = None


_MODELS: dict[str, type[ApiModel]] = {
    "tandem": TandemPayload,
    "cryptic": CrypticPayload,
    "mini": MiniPayload,
    "reel": ReelPayload,
    "soup": SoupPayload,
}


@dataclass(frozen=True)
class ValidatedPayload:
    payload: dict[str, Any]
    theme: str | None
    difficulty: str | None


def parse_payload(game: str, raw: dict[str, Any]) -> ValidatedPayload:
    """
    Validate and normalize a payload for storage.

    Raises:
        ValidationFailed: With sanitized field errors.
    """
    if game == "tandem":
        raw = transform_legacy_tandem(raw)
    try:
        model = _MODELS[game].model_validate(raw)
    except ValidationError as e:
        raise ValidationFailed(
            f"Invalid {game} puzzle",
            details=sanitize_validation_errors(list(e.errors())),
        ) from None
    payload = model.model_dump(by_alias=True, exclude_none=True)
    theme = payload.get("theme") or payload.get("targetElement")
    difficulty = payload.get("difficulty")
    return ValidatedPayload(
        payload=payload,
        theme=str(theme) if theme is not None else None,
        difficulty=str(difficulty) if difficulty is not None else None,
    )


def present_payload(game: str, payload: dict[str, Any]) -> dict[str, Any]:
    """Client view of a stored payload."""
    if game == "tandem":
        return transform_legacy_tandem(payload)
    if game == "reel":
        groups = sorted(payload.get("groups", []), key=lambda g: g.get("order", 0))
        return {
            **payload,
            "groups": [{**g, "movies": sorted(g.get("movies", []), key=lambda m: m.get("order", 0))} for g in groups],
        }
    if game == "mini":
        return {**payload, "blockMarker": BLOCK}
    return payload
