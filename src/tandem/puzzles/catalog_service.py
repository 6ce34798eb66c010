"""Content catalog: admin CRUD over puzzles of record.

One row per ``(game, date)``. Writes go through ``parse_payload`` so stored
payloads are always normalized and in the current shape.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.db.models import Puzzle
from tandem.errors import Conflict, NotFound, ValidationFailed
from tandem.puzzles.numbering import epoch_for, puzzle_number
from tandem.puzzles.payloads import parse_payload, present_payload, transform_legacy_tandem

logger = logging.getLogger(__name__)

MAX_LIST_LIMIT = 500
MAX_BULK_IMPORT = 365


def serialize_puzzle(puzzle: Puzzle) -> dict[str, Any]:
    """Admin/catalog view of a puzzle row."""
    return {
        "id": puzzle.id,
        "game": puzzle.game,
        "date": puzzle.puzzle_date.isoformat(),
        "puzzleNumber": puzzle_number(puzzle.puzzle_date, epoch_for(puzzle.game)),
        "theme": puzzle.theme,
        "difficulty": puzzle.difficulty,
        "creatorName": puzzle.creator_name,
        "isUserSubmitted": puzzle.is_user_submitted,
        "createdBy": puzzle.created_by,
        "createdAt": puzzle.created_at.isoformat() if puzzle.created_at else None,
        "updatedAt": puzzle.updated_at.isoformat() if puzzle.updated_at else None,
        "puzzle": present_payload(puzzle.game, puzzle.payload),
    }


async def get_by_date(db: AsyncSession, game: str, puzzle_date: date) -> Puzzle | None:
    result = await db.execute(select(Puzzle).where(Puzzle.game == game, Puzzle.puzzle_date == puzzle_date))
    return result.scalar_one_or_none()


async def get_by_id(db: AsyncSession, game: str, puzzle_id: int) -> Puzzle:
    puzzle = await db.get(Puzzle, puzzle_id)
    if puzzle is None or puzzle.game != game:
        raise NotFound("Puzzle not found")
    return puzzle


async def list_puzzles(
    db: AsyncSession,
    game: str,
    *,
    from_date: date | None = None,
    to_date: date | None = None,
    limit: int = 100,
) -> list[Puzzle]:
    """Puzzles in ``[from_date, to_date]`` ordered by date."""
    if from_date and to_date and from_date > to_date:
        raise ValidationFailed("from must not be after to")
    stmt = select(Puzzle).where(Puzzle.game == game)
    if from_date is not None:
        stmt = stmt.where(Puzzle.puzzle_date >= from_date)
    if to_date is not None:
        stmt = stmt.where(Puzzle.puzzle_date <= to_date)
    stmt = stmt.order_by(Puzzle.puzzle_date).limit(min(max(limit, 1), MAX_LIST_LIMIT))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def count_puzzles(db: AsyncSession, game: str, *, upto: date | None = None) -> int:
    stmt = select(func.count()).select_from(Puzzle).where(Puzzle.game == game)
    if upto is not None:
        stmt = stmt.where(Puzzle.puzzle_date <= upto)
    result = await db.execute(stmt)
    return int(result.scalar_one())


async def create_puzzle(
    db: AsyncSession,
    game: str,
    puzzle_date: date,
    raw_payload: dict[str, Any],
    *,
    created_by: str | None = None,
    creator_name: str | None = None,
    is_user_submitted: bool = False,
) -> Puzzle:
    """
    Validate and insert a puzzle.

    Raises:
        ValidationFailed: Payload rejected by the game's validator.
        Conflict: A puzzle already exists for ``(game, puzzle_date)``.
    """
    validated = parse_payload(game, raw_payload)
    if await get_by_date(db, game, puzzle_date) is not None:
        raise Conflict(f"A {game} puzzle already exists for {puzzle_date.isoformat()}")

    puzzle = Puzzle(
        game=game,
        puzzle_date=puzzle_date,
        puzzle_number=puzzle_number(puzzle_date, epoch_for(game)),
        theme=validated.theme,
        difficulty=validated.difficulty,
        payload=validated.payload,
        created_by=created_by,
        creator_name=creator_name,
        is_user_submitted=is_user_submitted,
    )
    db.add(puzzle)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise Conflict(f"A {game} puzzle already exists for {puzzle_date.isoformat()}") from None
    logger.info("Created %s puzzle for %s", game, puzzle_date)
    return puzzle


async def update_puzzle(
    db: AsyncSession,
    game: str,
    puzzle_id: int,
    *,
    new_date: date | None = None,
    patch: dict[str, Any] | None = None,
) -> Puzzle:
    """
    Apply a patch to a puzzle.

    Top-level payload keys in ``patch`` replace the stored ones wholesale, so
    nested collections (Reel groups, Mini clues) are replaced in a single
    write. Legacy Tandem rows are rewritten in the current shape.
    """
    puzzle = await get_by_id(db, game, puzzle_id)

    if new_date is not None and new_date != puzzle.puzzle_date:
        if await get_by_date(db, game, new_date) is not None:
            raise Conflict(f"A {game} puzzle already exists for {new_date.isoformat()}")
        puzzle.puzzle_date = new_date
        puzzle.puzzle_number = puzzle_number(new_date, epoch_for(game))

    current = dict(puzzle.payload)
    if game == "tandem":
        current = transform_legacy_tandem(current)
    if patch or current != puzzle.payload:
        validated = parse_payload(game, {**current, **(patch or {})})
        puzzle.payload = validated.payload
        puzzle.theme = validated.theme
        puzzle.difficulty = validated.difficulty

    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise Conflict("Puzzle date already taken") from None
    logger.info("Updated %s puzzle %s", game, puzzle_id)
    return puzzle


async def delete_puzzle(db: AsyncSession, game: str, puzzle_id: int) -> None:
    puzzle = await get_by_id(db, game, puzzle_id)
    await db.delete(puzzle)
    await db.flush()
    logger.info("Deleted %s puzzle %s", game, puzzle_id)


@dataclass
class BulkImportResult:
    created: list[str] = field(default_factory=list)
    skipped: list[dict[str, str]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)


async def bulk_import(
    db: AsyncSession,
    game: str,
    items: list[tuple[date, dict[str, Any]]],
    *,
    created_by: str | None = None,
) -> BulkImportResult:
    """Insert many puzzles; existing dates are skipped, invalid payloads reported."""
    if len(items) > MAX_BULK_IMPORT:
        raise ValidationFailed(f"At most {MAX_BULK_IMPORT} puzzles per import")

    outcome = BulkImportResult()
    for puzzle_date, raw in items:
        key = puzzle_date.isoformat()
        if await get_by_date(db, game, puzzle_date) is not None:
            outcome.skipped.append({"date": key, "reason": "already exists"})
            continue
        try:
            validated = parse_payload(game, raw)
        except ValidationFailed as e:
            outcome.errors.append({"date": key, "error": e.message, "details": e.details})
            continue
        db.add(
            Puzzle(
                game=game,
                puzzle_date=puzzle_date,
                puzzle_number=puzzle_number(puzzle_date, epoch_for(game)),
                theme=validated.theme,
                difficulty=validated.difficulty,
                payload=validated.payload,
                created_by=created_by,
            )
        )
        await db.flush()
        outcome.created.append(key)

    logger.info(
        "Bulk import of %s: %d created, %d skipped, %d errors",
        game,
        len(outcome.created),
        len(outcome.skipped),
        len(outcome.errors),
    )
    return outcome


async def upsert_puzzle(
    db: AsyncSession,
    game: str,
    puzzle_date: date,
    raw_payload: dict[str, Any],
    *,
    created_by: str | None = None,
) -> tuple[Puzzle, bool]:
    """Insert, or overwrite the payload of, the puzzle for ``puzzle_date``. Returns ``(puzzle, created)``."""
    validated = parse_payload(game, raw_payload)
    puzzle = await get_by_date(db, game, puzzle_date)
    created = puzzle is None
    if puzzle is None:
        puzzle = Puzzle(
            game=game,
            puzzle_date=puzzle_date,
            puzzle_number=puzzle_number(puzzle_date, epoch_for(game)),
            created_by=created_by,
        )
        db.add(puzzle)
    puzzle.payload = validated.payload
    puzzle.theme = validated.theme
    puzzle.difficulty = validated.difficulty
    await db.flush()
    return puzzle, created
