"""AI assist and authoring aids: /api/admin/*.

Every route here needs the admin scheme. AI routes answer 503 when no
provider key is configured; the word-frequency table works without one.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Response

from tandem.ai.schemas import (
    AssessDifficultyRequest,
    GenerateHintsRequest,
    RegenerateEmojiRequest,
    SuggestConnectionsRequest,
    SuggestThemesRequest,
    SuggestWordsRequest,
)
from tandem.ai.service import AssistService, get_assist_service, require_pattern
from tandem.ai.word_index import get_word_index
from tandem.auth.dependencies import require_admin
from tandem.auth.identity import Identity
from tandem.errors import UpstreamUnavailable, ValidationFailed
from tandem.puzzles.mini_grid import slot_pattern

router = APIRouter(prefix="/api/admin", tags=["AI Assist"])


async def get_enabled_assist(service: AssistService = Depends(get_assist_service)) -> AssistService:
    if not service.enabled:
        raise UpstreamUnavailable()
    return service


@router.post("/tandem/suggest-themes")
async def suggest_themes(
    body: SuggestThemesRequest,
    _admin: Identity = Depends(require_admin),
    ai: AssistService = Depends(get_enabled_assist),
) -> dict[str, Any]:
    return {"success": True, **await ai.suggest_themes(recent_themes=body.recent_themes, count=body.count)}


@router.post("/tandem/generate-hints")
async def generate_hints(
    body: GenerateHintsRequest,
    _admin: Identity = Depends(require_admin),
    ai: AssistService = Depends(get_enabled_assist),
) -> dict[str, Any]:
    puzzles = [p.model_dump(exclude_none=True) for p in body.puzzles]
    return {"success": True, **await ai.generate_hints(theme=body.theme, puzzles=puzzles)}


@router.post("/tandem/regenerate-emoji-pair")
async def regenerate_emoji_pair(
    body: RegenerateEmojiRequest,
    _admin: Identity = Depends(require_admin),
    ai: AssistService = Depends(get_enabled_assist),
) -> dict[str, Any]:
    result = await ai.regenerate_emoji_pair(theme=body.theme, answer=body.answer.upper(), context=body.context)
    return {"success": True, **result}


@router.post("/reel-connections/suggest-connections")
async def suggest_connections(
    body: SuggestConnectionsRequest,
    _admin: Identity = Depends(require_admin),
    ai: AssistService = Depends(get_enabled_assist),
) -> dict[str, Any]:
    result = await ai.suggest_connections(
        difficulty=body.difficulty,
        recent_connections=body.recent_connections,
        existing_connections=body.existing_connections,
    )
    return {"success": True, **result}


@router.post("/mini/suggest-words")
async def suggest_words(
    body: SuggestWordsRequest,
    _admin: Identity = Depends(require_admin),
    ai: AssistService = Depends(get_enabled_assist),
) -> dict[str, Any]:
    """Fill candidates for a crossword slot, filtered through the dictionary."""
    if body.pattern is not None:
        pattern = body.pattern
    else:
        pattern = slot_pattern(body.grid, body.row, body.col, body.direction)
        if not pattern:
            raise ValidationFailed("Selected cell is a block")
    result = await ai.suggest_words(
        pattern=require_pattern(pattern),
        constraints=body.constraints,
        direction=body.direction,
        limit=body.limit,
    )
    return {"success": True, **result}


@router.post("/cryptic/assess-difficulty")
async def assess_difficulty(
    body: AssessDifficultyRequest,
    _admin: Identity = Depends(require_admin),
    ai: AssistService = Depends(get_enabled_assist),
) -> dict[str, Any]:
    hints = [h.model_dump() for h in body.hints]
    return {"success": True, **await ai.assess_difficulty(clue=body.clue, answer=body.answer.upper(), hints=hints)}


@router.get("/mini/word-frequencies")
async def word_frequencies(
    response: Response,
    length: int | None = Query(default=None, ge=2, le=5),
    threshold: int = Query(default=0, ge=0, le=100),
    limit: int | None = Query(default=None, ge=1, le=50000),
    _admin: Identity = Depends(require_admin),
) -> dict[str, Any]:
    """Dictionary words with their frequency scores, most common first."""
    lengths = [length] if length is not None else [2, 3, 4, 5]
    entries = get_word_index().frequencies(lengths=lengths, threshold=threshold)
    data = entries[:limit] if limit else entries
    response.headers["Cache-Control"] = "private, max-age=86400"
    return {
        "success": True,
        "count": len(data),
        "totalAvailable": len(entries),
        "threshold": threshold,
        "data": data,
    }
