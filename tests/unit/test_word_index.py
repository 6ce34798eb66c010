"""Unit tests for the crossword word index."""

from tandem.ai.word_index import WordIndex, get_word_index


def _index():
    index = WordIndex()
    index.load_lines(
        [
            "# comment",
            "CATS;80",
            "COTS;40",
            "CARS;60",
            "cart;70",
            "DOG;90",
            "bad line",
            "C4T;50",
            "ZERO;0",
        ]
    )
    return index


class TestWordIndex:
    def test_load_skips_invalid(self):
        index = _index()
        assert len(index) == 5
        assert "cart" in index
        assert "C4T" not in index
        assert "ZERO" not in index

    def test_duplicate_keeps_max_score(self):
        index = _index()
        index.add("COTS", 20)
        index.add("COTS", 75)
        assert index.scores["COTS"] == 75
        assert index.words_by_length[4].count("COTS") == 1

    def test_candidates(self):
        index = _index()
        assert index.candidates("C.TS") == ["CATS", "COTS"]
        assert index.candidates("CA_?") == ["CATS", "CARS", "CART"]
        assert index.candidates("....") == ["CATS", "COTS", "CARS", "CART"]
        assert index.candidates("X...") == []
        assert index.candidates("......") == []

    def test_sorted_candidates(self):
        index = _index()
        assert index.sorted_candidates("CA..") == [
            {"word": "CATS", "score": 80},
            {"word": "CART", "score": 70},
            {"word": "CARS", "score": 60},
        ]
        assert [c["word"] for c in index.sorted_candidates("C...", min_score=65)] == ["CATS", "CART"]

    def test_frequencies(self):
        entries = _index().frequencies(lengths=[3, 4], threshold=60)
        assert entries[0] == {"word": "DOG", "frequency": 90}
        assert [e["word"] for e in entries] == ["DOG", "CATS", "CART", "CARS"]


def test_bundled_dictionary_loads():
    index = get_word_index()
    assert len(index) > 50
    assert index.candidates("C.T")
