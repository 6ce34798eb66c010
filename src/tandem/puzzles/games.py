"""The game registry.

Handlers take a game tag and dispatch on it; each game has its own payload
validator and serializer, there is no shared base class.
"""

from __future__ import annotations

from typing import Literal, get_args

from tandem.errors import NotFound

Game = Literal["tandem", "cryptic", "mini", "reel", "soup"]
GAMES: tuple[str, ...] = get_args(Game)

# URL slugs used by clients, mapped onto game tags.
_SLUGS = {
    "tandem": "tandem",
    "cryptic": "cryptic",
    "mini": "mini",
    "reel": "reel",
    "reel-connections": "reel",
    "soup": "soup",
    "daily-alchemy": "soup",
    "element-soup": "soup",
}

# Missing content: Tandem answers 200 with ``puzzle: null``, the rest 404.
NULL_WHEN_MISSING = frozenset({"tandem"})


def parse_game(slug: str) -> str:
    game = _SLUGS.get(slug.lower())
    if game is None:
        raise NotFound(f"Unknown game: {slug}")
    return game
