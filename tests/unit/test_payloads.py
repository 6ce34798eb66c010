"""Unit tests for per-game payload validation and presentation."""

import pytest

from tandem.errors import ValidationFailed
from tandem.puzzles.payloads import is_legacy_tandem, parse_payload, present_payload, transform_legacy_tandem
from tests.conftest import reel_groups, tandem_payload


def _reel_payload():
    groups = reel_groups()
    for g_index, group in enumerate(groups):
        group["order"] = g_index
        group["difficulty"] = ["easy", "medium", "hard", "hardest"][g_index]
        for m_index, movie in enumerate(group["movies"]):
            movie["order"] = m_index
    return {"groups": groups}


def _cryptic_payload(**overrides):
    payload = {
        "clue": "Feline on the mat, at first (3)",
        "answer": "cat",
        "length": 3,
        "hints": [
            {"type": "definition", "text": "Feline"},
            {"type": "indicator", "text": "at first"},
            {"type": "fodder", "text": "Cat on the mat"},
            {"type": "letter", "text": "Starts with C"},
        ],
        "difficulty": 2,
    }
    payload.update(overrides)
    return payload


class TestTandem:
    def test_answers_uppercased(self):
        result = parse_payload("tandem", tandem_payload())
        assert [p["answer"] for p in result.payload["puzzles"]] == ["KNIFE", "PAN", "FRIDGE", "LADLE"]
        assert result.theme == "Things in a kitchen"

    def test_requires_four_pairs(self):
        payload = tandem_payload()
        payload["puzzles"] = payload["puzzles"][:3]
        with pytest.raises(ValidationFailed):
            parse_payload("tandem", payload)

    def test_rejects_non_letters(self):
        payload = tandem_payload()
        payload["puzzles"][0]["answer"] = "kn1fe"
        with pytest.raises(ValidationFailed):
            parse_payload("tandem", payload)

    def test_legacy_shape_transformed(self):
        legacy = {
            "theme": "Kitchen",
            "emojiPairs": ["🔪🥩", "🍳🔥", "🧊❄️", "🥄🍲"],
            "words": ["knife", "pan", "fridge", "ladle"],
            "hints": ["sharp", "", "cold", "scoop"],
        }
        assert is_legacy_tandem(legacy)
        converted = transform_legacy_tandem(legacy)
        assert "emojiPairs" not in converted
        assert converted["puzzles"][0] == {"emoji": "🔪🥩", "answer": "KNIFE", "hint": "sharp"}
        assert "hint" not in converted["puzzles"][1]

        stored = parse_payload("tandem", legacy).payload
        assert not is_legacy_tandem(stored)
        assert len(stored["puzzles"]) == 4

    def test_correct_answers_alias(self):
        legacy = {"theme": "X", "emojiPairs": ["a", "b"], "correctAnswers": ["one", "two"]}
        assert [p["answer"] for p in transform_legacy_tandem(legacy)["puzzles"]] == ["ONE", "TWO"]

    def test_present_transforms_legacy(self):
        legacy = {"theme": "X", "emojiPairs": ["a"], "words": ["one"]}
        assert present_payload("tandem", legacy)["puzzles"] == [{"emoji": "a", "answer": "ONE"}]


class TestCryptic:
    def test_valid(self):
        payload = parse_payload("cryptic", _cryptic_payload()).payload
        assert payload["answer"] == "CAT"
        assert payload["wordPattern"] == [3]

    def test_length_must_match_letters(self):
        with pytest.raises(ValidationFailed):
            parse_payload("cryptic", _cryptic_payload(length=4))

    def test_multi_word_length_counts_letters(self):
        payload = parse_payload("cryptic", _cryptic_payload(answer="hot dog", length=6)).payload
        assert payload["wordPattern"] == [3, 3]

    def test_exactly_four_hints(self):
        with pytest.raises(ValidationFailed):
            parse_payload("cryptic", _cryptic_payload(hints=_cryptic_payload()["hints"][:3]))

    def test_unknown_hint_type(self):
        hints = _cryptic_payload()["hints"]
        hints[0] = {"type": "anagram", "text": "no"}
        with pytest.raises(ValidationFailed):
            parse_payload("cryptic", _cryptic_payload(hints=hints))


class TestMini:
    def _payload(self, first_row):
        return {
            "grid": [first_row, ["A", "#", "#", "#", "#"], ["R", "#", "#", "#", "#"], ["#"] * 5, ["#"] * 5],
            "clues": {
                "across": [{"number": 1, "row": 0, "col": 0, "length": 4, "clue": "Pets", "answer": "cats"}],
                "down": [{"number": 1, "row": 0, "col": 0, "length": 3, "clue": "Auto", "answer": "car"}],
            },
        }

    def test_valid_grid_normalizes_blocks(self):
        payload = parse_payload("mini", self._payload(["C", "A", "T", "S", "#"])).payload
        assert payload["grid"][0][4] == "■"
        assert present_payload("mini", payload)["blockMarker"] == "■"

    def test_block_mid_word_rejected(self):
        with pytest.raises(ValidationFailed):
            parse_payload("mini", self._payload(["C", "A", "T", "#", "S"]))


class TestReel:
    def test_valid(self):
        result = parse_payload("reel", _reel_payload())
        assert len(result.payload["groups"]) == 4

    def test_duplicate_order_rejected(self):
        payload = _reel_payload()
        payload["groups"][1]["order"] = 0
        with pytest.raises(ValidationFailed):
            parse_payload("reel", payload)

    def test_duplicate_movie_rejected(self):
        payload = _reel_payload()
        payload["groups"][1]["movies"][0]["imdbId"] = payload["groups"][0]["movies"][0]["imdbId"]
        with pytest.raises(ValidationFailed):
            parse_payload("reel", payload)

    def test_present_sorts_by_order(self):
        payload = _reel_payload()
        payload["groups"].reverse()
        payload["groups"][0]["movies"].reverse()
        presented = present_payload("reel", payload)
        assert [g["order"] for g in presented["groups"]] == [0, 1, 2, 3]
        assert [m["order"] for m in presented["groups"][3]["movies"]] == [0, 1, 2, 3]


class TestSoup:
    def test_target_is_theme(self):
        result = parse_payload("soup", {"targetElement": "Steam", "targetEmoji": "♨️", "parMoves": 3})
        assert result.theme == "Steam"

    def test_par_moves_positive(self):
        with pytest.raises(ValidationFailed):
            parse_payload("soup", {"targetElement": "Steam", "targetEmoji": "♨️", "parMoves": 0})
