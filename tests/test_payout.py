"""Tests for scoring bet lines against published results."""

from types import SimpleNamespace

import pytest

from draws import BetType
from payout import NO_WIN, DrawOutcome, PayoutEngine, is_double, score


def outcome(first, *rest, others=()):
    prizes = (first, *rest) + (None,) * (4 - len(rest))
    return DrawOutcome(prizes, tuple(others))


class TestSuper:
    def test_first_prize(self):
        entry = SimpleNamespace(bet_type="SUPER", number="5000", count=2)
        result = PayoutEngine().score(entry, outcome("5000"))
        assert result.win_amount == 10000
        assert result.win_type == "SUPER 1"

    def test_third_prize(self):
        result = score(BetType.SUPER, "333", 3, outcome("111", "222", "333"))
        assert result.win_amount == 750
        assert result.win_type == "SUPER 3"

    def test_other_prize(self):
        result = score(BetType.SUPER, "999", 2, outcome("111", others=["999"]))
        assert result.win_amount == 40
        assert result.win_type == "SUPER other"

    def test_no_match(self):
        assert score(BetType.SUPER, "404", 1, outcome("111")) == NO_WIN


class TestBox:
    def test_permutation_of_normal_number(self):
        result = score(BetType.BOX, "123", 1, outcome("321"))
        assert result.win_type == "BOX permutation"
        assert result.win_amount == 800

    def test_perfect_normal(self):
        assert score(BetType.BOX, "321", 2, outcome("321")).win_amount == 6000

    def test_double_first_prize(self):
        assert score(BetType.BOX, "112", 1, outcome("121")).win_type == "BOX double permutation"
        assert score(BetType.BOX, "121", 1, outcome("121")).win_amount == 3800

    def test_different_digits(self):
        assert score(BetType.BOX, "124", 1, outcome("321")) == NO_WIN


class TestPartialTypes:
    @pytest.mark.parametrize("bet_type,number,amount", [
        (BetType.AB, "12", 700),
        (BetType.BC, "23", 700),
        (BetType.AC, "13", 700),
        (BetType.A, "1", 100),
        (BetType.B, "2", 100),
        (BetType.C, "3", 100),
    ])
    def test_slices_of_first_prize(self, bet_type, number, amount):
        result = score(bet_type, number, 1, outcome("123"))
        assert result.win_amount == amount
        assert result.win_type == bet_type.value

    def test_miss_has_empty_win_type(self):
        result = score(BetType.AB, "99", 1, outcome("123"))
        assert result.win_amount == 0
        assert result.win_type == ""


def test_missing_result_scores_nothing():
    assert score(BetType.SUPER, "123", 1, None) == NO_WIN
    assert score(BetType.SUPER, "123", 1, DrawOutcome()) == NO_WIN


def test_outcome_from_stored_result():
    row = SimpleNamespace(prizes=["123", "456"], others=["789", ""])
    parsed = DrawOutcome.from_result(row)
    assert parsed.prizes == ("123", "456", None, None, None)
    assert parsed.others == ("789",)
    assert parsed.position_of("456") == 2


def test_is_double():
    assert is_double("112")
    assert not is_double("123")
    assert not is_double("777")
