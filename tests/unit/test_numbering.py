"""Unit tests for puzzle numbering and the ET calendar."""

from datetime import date, datetime, timezone

from tandem.puzzles.numbering import (
    date_for_number,
    display_date,
    epoch_for,
    et_today,
    puzzle_number,
    utc_today,
)

TANDEM_EPOCH = date(2025, 8, 15)


class TestPuzzleNumber:
    def test_epoch_is_number_one(self):
        assert puzzle_number(TANDEM_EPOCH, TANDEM_EPOCH) == 1

    def test_day_after_epoch(self):
        assert puzzle_number(date(2025, 8, 16), TANDEM_EPOCH) == 2

    def test_inverse_of_date_for_number(self):
        for n in (1, 2, 31, 365, 1000):
            assert puzzle_number(date_for_number(n, TANDEM_EPOCH), TANDEM_EPOCH) == n

    def test_before_epoch_is_not_positive(self):
        assert puzzle_number(date(2025, 8, 14), TANDEM_EPOCH) == 0


class TestEpochs:
    def test_game_epochs(self):
        assert epoch_for("tandem") == date(2025, 8, 15)
        assert epoch_for("cryptic") == date(2025, 11, 10)
        assert epoch_for("mini") == date(2025, 11, 21)
        assert epoch_for("reel") == date(2025, 11, 27)
        assert epoch_for("soup") == date(2025, 12, 15)


class TestCalendar:
    def test_et_lags_utc_after_midnight(self):
        # 03:00 UTC is still the previous evening in New York
        now = datetime(2025, 9, 2, 3, 0, tzinfo=timezone.utc)
        assert utc_today(now) == date(2025, 9, 2)
        assert et_today(now) == date(2025, 9, 1)

    def test_same_day_mid_afternoon(self):
        now = datetime(2025, 9, 2, 18, 0, tzinfo=timezone.utc)
        assert et_today(now) == utc_today(now) == date(2025, 9, 2)

    def test_display_date(self):
        assert display_date(date(2025, 8, 16)) == "Aug 16, 2025"
        assert display_date(date(2025, 12, 5)) == "Dec 5, 2025"
