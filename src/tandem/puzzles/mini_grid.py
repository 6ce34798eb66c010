"""Mini crossword grid walking.

A grid is 5×5; each cell is a single uppercase letter or the block marker.
A clue is valid when walking ``length`` cells from ``(row, col)`` in its
direction spells the answer, and the word is bounded by a block or the grid
edge on both ends.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

GRID_SIZE = 5
BLOCK = "■"

_STEPS = {"across": (0, 1), "down": (1, 0)}


@dataclass(frozen=True)
class ClueRef:
    direction: str
    number: int
    row: int
    col: int
    length: int
    answer: str


def normalize_cell(cell: str) -> str:
    cell = cell.strip()
    if cell in (BLOCK, "#"):
        return BLOCK
    return cell.upper()


def grid_errors(grid: Sequence[Sequence[str]]) -> list[str]:
    """Shape and alphabet problems in a grid (empty when the grid is well formed)."""
    if len(grid) != GRID_SIZE or any(len(row) != GRID_SIZE for row in grid):
        return [f"Grid must be {GRID_SIZE}x{GRID_SIZE}"]
    errors = []
    for r, row in enumerate(grid):
        for c, cell in enumerate(row):
            if cell != BLOCK and not (len(cell) == 1 and "A" <= cell <= "Z"):
                errors.append(f"Cell ({r},{c}) must be a letter A-Z or {BLOCK}")
    return errors


def _is_open(grid: Sequence[Sequence[str]], r: int, c: int) -> bool:
    return 0 <= r < GRID_SIZE and 0 <= c < GRID_SIZE and grid[r][c] != BLOCK


def walk(grid: Sequence[Sequence[str]], row: int, col: int, length: int, direction: str) -> str | None:
    """Letters along a word, or None if the path leaves the grid or crosses a block."""
    dr, dc = _STEPS[direction]
    letters = []
    for i in range(length):
        r, c = row + dr * i, col + dc * i
        if not _is_open(grid, r, c):
            return None
        letters.append(grid[r][c])
    return "".join(letters)


def clue_error(grid: Sequence[Sequence[str]], clue: ClueRef) -> str | None:
    """Why a clue does not fit the grid, or None when it does."""
    label = f"{clue.number}-{clue.direction}"
    if clue.direction not in _STEPS:
        return f"{label}: unknown direction"
    if len(clue.answer) != clue.length:
        return f"{label}: answer length {len(clue.answer)} does not match length {clue.length}"
    dr, dc = _STEPS[clue.direction]
    if _is_open(grid, clue.row - dr, clue.col - dc):
        return f"{label}: word does not start at a block or edge"
    spelled = walk(grid, clue.row, clue.col, clue.length, clue.direction)
    if spelled is None:
        return f"{label}: path leaves the grid or crosses a block mid-word"
    if _is_open(grid, clue.row + dr * clue.length, clue.col + dc * clue.length):
        return f"{label}: word does not terminate at a block or edge"
    if spelled != clue.answer:
        return f"{label}: grid spells {spelled}, expected {clue.answer}"
    return None


def validate_grid(grid: Sequence[Sequence[str]], clues: Iterable[ClueRef]) -> list[str]:
    """All problems with a grid and its clues."""
    errors = grid_errors(grid)
    if errors:
        return errors
    return [err for clue in clues if (err := clue_error(grid, clue)) is not None]


def slot_pattern(grid: Sequence[Sequence[str]], row: int, col: int, direction: str) -> str:
    """
    Pattern of the word running through ``(row, col)`` in a partially filled
    grid: known letters kept, empty cells as ``.``. Empty string when the
    cell is a block.
    """
    if direction not in _STEPS:
        raise ValueError(f"unknown direction {direction!r}")
    cells = [[normalize_cell(cell) if cell else "" for cell in line] for line in grid]
    if not _is_open(cells, row, col):
        return ""
    dr, dc = _STEPS[direction]
    while _is_open(cells, row - dr, col - dc):
        row, col = row - dr, col - dc
    pattern = []
    while _is_open(cells, row, col):
        pattern.append(cells[row][col] or ".")
        row, col = row + dr, col + dc
    return "".join(pattern)
