"""Tests for editing and counting admitted entries."""

from datetime import date

import pytest

import entries
from errors import NotFound, ValidationError, WindowBlocked
from models import db, BetEntry, GlobalQuota

from conftest import at

TODAY = date(2025, 1, 10)


@pytest.fixture
def bill(configured, submit):
    submit([
        {"type": "SUPER", "number": "123", "count": 4},
        {"type": "A", "number": "1", "count": 2},
        {"type": "AB", "number": "12", "count": 3},
    ])
    return BetEntry.query.order_by(BetEntry.id).all()


class TestChanges:
    def test_invalidate(self, bill):
        entries.invalidate(bill[0].id)
        assert db.session.get(BetEntry, bill[0].id).is_valid is False

    def test_update_count_before_block(self, bill):
        entry = entries.update_count(bill[0].id, 7, "sub", at(12, 0))
        assert entry.count == 7
        # ledgers are not touched by edits
        assert GlobalQuota.query.filter_by(number="123").one().remaining == 46

    def test_update_count_after_block(self, bill):
        with pytest.raises(WindowBlocked):
            entries.update_count(bill[0].id, 7, "sub", at(12, 55))

    @pytest.mark.parametrize("count", [0, -1, "many"])
    def test_update_count_validates(self, bill, count):
        with pytest.raises(ValidationError):
            entries.update_count(bill[0].id, count, "sub", at(12, 0))

    def test_delete_entry(self, bill):
        entries.delete_entry(bill[1].id, "sub", at(12, 0))
        assert BetEntry.query.count() == 2

    def test_delete_entry_after_block(self, bill):
        with pytest.raises(WindowBlocked):
            entries.delete_entry(bill[1].id, "sub", at(16, 0))
        assert BetEntry.query.count() == 3

    def test_missing_entry(self, bill):
        with pytest.raises(NotFound):
            entries.invalidate(9999)


class TestDeleteBill:
    def test_removes_every_line(self, bill):
        assert entries.delete_bill("00001") == 3
        assert BetEntry.query.count() == 0

    def test_unknown_bill(self, bill):
        with pytest.raises(NotFound):
            entries.delete_bill("00042")

    def test_bad_bill_number(self, bill):
        with pytest.raises(ValidationError):
            entries.delete_bill("12a")


class TestCounts:
    def test_count_by_number(self, bill):
        counts = entries.count_by_number(["SUPER-123", "A-1", "D-1-AB-12", "BOX-999"], TODAY, "dear1")
        assert counts == {"SUPER-123": 4, "A-1": 2, "AB-12": 3, "BOX-999": 0}

    def test_invalid_entries_are_not_counted(self, bill):
        entries.invalidate(bill[0].id)
        assert entries.count_by_number(["SUPER-123"], TODAY, "DEAR 1 PM") == {"SUPER-123": 0}

    def test_bad_key(self, bill):
        with pytest.raises(ValidationError):
            entries.count_by_number(["SUPER"], TODAY, "DEAR 1 PM")

    def test_count_report_busiest_first(self, bill):
        rows = entries.count_report(day=TODAY, draw_label="DEAR 1 PM")
        assert [(r["number"], r["ticketName"], r["count"]) for r in rows] == [
            ("123", "SUPER", 4), ("12", "AB", 3), ("1", "A", 2)]

    def test_count_report_filters(self, bill):
        rows = entries.count_report(number="123", agent="agent1")
        assert len(rows) == 1
        assert entries.count_report(agent="nobody") == []
