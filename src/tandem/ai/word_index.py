"""
Position-letter index over the crossword dictionary.

A pattern such as ``A..E.`` is answered by intersecting the sets for
``(5, 0, "A")`` and ``(5, 3, "E")``. The dictionary is a ``WORD;SCORE``
file (uppercase A-Z, score 1..100, ``#`` comments) and is loaded lazily,
once per process.
"""

from __future__ import annotations

import logging
import re
import time
from collections import defaultdict
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Iterable

from tandem.config import get_settings

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"^[A-Z]+$")
WILDCARDS = frozenset({".", " ", "_", "?"})
MIN_SCORE, MAX_SCORE = 1, 100


class WordIndex:
    def __init__(self) -> None:
        self.words_by_length: dict[int, list[str]] = defaultdict(list)
        self.scores: dict[str, int] = {}
        self._positions: dict[tuple[int, int, str], set[str]] = defaultdict(set)

    def __len__(self) -> int:
        return len(self.scores)

    def __contains__(self, word: object) -> bool:
        return isinstance(word, str) and word.upper() in self.scores

    def add(self, word: str, score: int) -> bool:
        """Index ``word``; a duplicate keeps the higher score."""
        word = word.upper()
        if not _WORD_RE.match(word) or not MIN_SCORE <= score <= MAX_SCORE:
            return False
        existing = self.scores.get(word)
        if existing is not None:
            self.scores[word] = max(existing, score)
            return True
        self.scores[word] = score
        self.words_by_length[len(word)].append(word)
        for pos, letter in enumerate(word):
            self._positions[(len(word), pos, letter)].add(word)
        return True

    def load_lines(self, lines: Iterable[str]) -> int:
        loaded = skipped = 0
        for line in lines:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            word, sep, raw_score = line.rpartition(";")
            try:
                score = int(raw_score)
            except ValueError:
                skipped += 1
                continue
            if sep and self.add(word, score):
                loaded += 1
            else:
                skipped += 1
        if skipped:
            logger.debug("Skipped %d invalid dictionary lines", skipped)
        return loaded

    def candidates(self, pattern: str) -> list[str]:
        """Words matching ``pattern``; ``.`` (or space, ``_``, ``?``) is a wildcard."""
        length = len(pattern)
        words = self.words_by_length.get(length)
        if not words:
            return []
        constraints = [(pos, ch.upper()) for pos, ch in enumerate(pattern) if ch not in WILDCARDS]
        if not constraints:
            return list(words)
        sets = sorted(
            (self._positions.get((length, pos, letter), set()) for pos, letter in constraints),
            key=len,
        )
        result = set(sets[0])
        for other in sets[1:]:
            result &= other
            if not result:
                return []
        return [w for w in words if w in result]

    def sorted_candidates(self, pattern: str, min_score: int = MIN_SCORE) -> list[dict[str, int | str]]:
        """Candidates with score >= ``min_score``, best first, then alphabetical."""
        matches = [w for w in self.candidates(pattern) if self.scores[w] >= min_score]
        matches.sort(key=lambda w: (-self.scores[w], w))
        return [{"word": w, "score": self.scores[w]} for w in matches]

    def frequencies(self, *, lengths: Iterable[int], threshold: int = 0) -> list[dict[str, int | str]]:
        entries = [
            {"word": word, "frequency": self.scores[word]}
            for length in lengths
            for word in self.words_by_length.get(length, [])
            if self.scores[word] >= threshold
        ]
        entries.sort(key=lambda e: (-int(e["frequency"]), str(e["word"])))
        return entries


def _read_dictionary(path: str) -> list[str]:
    if path:
        return Path(path).read_text(encoding="utf-8").splitlines()
    return resources.files("tandem.data").joinpath("words.dict").read_text(encoding="utf-8").splitlines()


@lru_cache
def get_word_index() -> WordIndex:
    """The process-wide index, built on first use."""
    started = time.monotonic()
    index = WordIndex()
    path = get_settings().word_list_path
    loaded = index.load_lines(_read_dictionary(path))
    logger.info(
        "Loaded %d dictionary words from %s in %.0fms",
        loaded,
        path or "bundled list",
        (time.monotonic() - started) * 1000,
    )
    return index
