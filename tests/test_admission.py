"""Tests for bill admission.

Covers:
- settlement dates around the block window
- blocked dates and missing configuration
- all-or-nothing quota rejection, global and per agent
- operator overrides
- bill numbering
"""

from datetime import date

import pytest

import admin
from errors import (ConfigurationMissing, DateBlocked, OverrideExceeded, QuotaExceeded,
                    ValidationError, WindowBlocked)
from models import BetEntry, BillSequence, GlobalQuota, UserQuota

from conftest import seed_limits, seed_windows

TODAY = date(2025, 1, 10)
TOMORROW = date(2025, 1, 11)


def super_line(number="123", count=10, **extra):
    return {"type": "SUPER", "number": number, "count": count, **extra}


class TestHappyPath:
    def test_admits_and_persists(self, configured, submit):
        result = submit([super_line(), {"type": "A", "number": "5", "count": 2}])
        assert result.bill_no == 1
        assert result.settlement_date == TODAY
        assert result.line_count == 2
        assert result.to_dict() == {"billNo": "00001", "date": "2025-01-10", "lines": 2, "exceeded": []}

        rows = BetEntry.query.order_by(BetEntry.id).all()
        assert [(r.bet_type, r.number, r.count) for r in rows] == [("SUPER", "123", 10), ("A", "5", 2)]
        assert all(r.bill_no == 1 and r.effective_date == TODAY for r in rows)
        assert all(r.draw_label == "DEAR 1 PM" and r.created_by == "agent1" for r in rows)

    def test_default_rates(self, configured, submit):
        submit([super_line(count=3), {"type": "A", "number": "5", "count": 2},
                super_line("456", 1, rate=7.5)])
        rates = [float(r.rate) for r in BetEntry.query.order_by(BetEntry.id)]
        assert rates == [30.0, 24.0, 7.5]

    def test_set_is_expanded_before_quota(self, configured, submit):
        result = submit([{"type": "BOX", "number": "112", "count": 1, "isSet": True}])
        assert result.line_count == 3
        assert {r.number for r in BetEntry.query} == {"112", "121", "211"}

    def test_ledgers_are_decremented(self, configured, submit):
        submit([super_line(count=10)])
        assert GlobalQuota.query.one().remaining == 40
        assert UserQuota.query.filter_by(agent="agent1").one().remaining == 40

    def test_draw_alias_is_canonicalized(self, configured, submit):
        submit([super_line()], draw="dear1pm")
        assert BetEntry.query.one().draw_label == "DEAR 1 PM"


class TestBillNumbers:
    def test_strictly_increasing(self, configured, submit):
        bills = [submit([super_line(str(n), 1)]).bill_no for n in range(100, 105)]
        assert bills == [1, 2, 3, 4, 5]

    def test_custom_start(self, configured, submit):
        assert submit([super_line()], bill_start=1000).bill_no == 1000
        assert submit([super_line("124")], bill_start=1000).bill_no == 1001

    def test_rejection_does_not_consume_a_number(self, configured, submit):
        submit([super_line(count=50)])
        with pytest.raises(QuotaExceeded):
            submit([super_line(count=1)])
        assert submit([super_line("124")]).bill_no == 2


class TestWindows:
    def test_inside_window_rejected(self, configured, submit, clock):
        clock.set(13, 0)
        with pytest.raises(WindowBlocked):
            submit([super_line()])
        assert BetEntry.query.count() == 0

    def test_minute_after_unblock_settles_tomorrow(self, configured, submit, clock):
        clock.set(13, 6)
        result = submit([super_line()])
        assert result.settlement_date == TOMORROW
        assert BetEntry.query.one().effective_date == TOMORROW

    def test_role_without_window(self, app, submit):
        seed_windows(roles=("master",))
        seed_limits()
        with pytest.raises(ConfigurationMissing):
            submit([super_line()], role="sub")

    def test_unknown_draw(self, configured, submit):
        with pytest.raises(ValidationError):
            submit([super_line()], draw="MIDNIGHT")


class TestBlockedDates:
    def test_blocked_settlement_date(self, configured, submit):
        admin.add_blocked_date("DEAR 1 PM", "2025-01-10")
        with pytest.raises(DateBlocked):
            submit([super_line()])
        assert BetEntry.query.count() == 0
        assert BillSequence.query.count() == 0
        assert GlobalQuota.query.count() == 0

    def test_block_follows_rolled_date(self, configured, submit, clock):
        admin.add_blocked_date("DEAR1", "2025-01-11")
        assert submit([super_line()]).settlement_date == TODAY
        clock.set(13, 10)
        with pytest.raises(DateBlocked):
            submit([super_line("124")])

    def test_other_ticket_unaffected(self, configured, submit):
        admin.add_blocked_date("LSK3", "2025-01-10")
        assert submit([super_line()]).settlement_date == TODAY


class TestQuota:
    def test_missing_ticket_limits(self, app, submit):
        seed_windows()
        with pytest.raises(ConfigurationMissing):
            submit([super_line()])

    def test_global_cap_rejects_whole_bill(self, configured, submit):
        submit([super_line(count=40)])
        with pytest.raises(QuotaExceeded) as excinfo:
            submit([super_line("999", 1), super_line(count=20)], agent="agent2")
        assert excinfo.value.message == "Daily limit reached for:"
        assert excinfo.value.lines == ["SUPER-123 → attempted 20, remaining 10"]
        # nothing from the rejected bill was kept
        assert BetEntry.query.count() == 1
        assert GlobalQuota.query.filter_by(number="123").one().remaining == 10
        assert GlobalQuota.query.filter_by(number="999").count() == 0

    def test_lines_in_one_bill_share_the_pool(self, configured, submit):
        with pytest.raises(QuotaExceeded):
            submit([super_line(count=30), super_line(count=30)])
        assert BetEntry.query.count() == 0

    def test_exact_cap_is_accepted(self, configured, submit):
        submit([super_line(count=25), super_line(count=25)])
        assert GlobalQuota.query.one().remaining == 0

    def test_global_cap_spans_draws(self, configured, submit):
        submit([super_line(count=40)], draw="DEAR 1 PM")
        with pytest.raises(QuotaExceeded):
            submit([super_line(count=20)], draw="DEAR 6 PM")

    def test_dates_are_independent(self, configured, submit, clock):
        submit([super_line(count=50)])
        clock.set(13, 10)
        assert submit([super_line(count=50)]).settlement_date == TOMORROW


class TestOverrides:
    @pytest.fixture
    def override(self, configured):
        admin.add_overrides([{"field": "SUPER", "number": "123", "count": 5}],
                            "group3", "DEAR 1 PM", "agent1")

    def test_single_line_above_override(self, override, submit):
        with pytest.raises(OverrideExceeded) as excinfo:
            submit([super_line(count=6)])
        assert excinfo.value.lines == ["SUPER-123 → attempted 6, allowed 5"]

    def test_override_becomes_daily_ceiling(self, override, submit):
        submit([super_line(count=5)])
        with pytest.raises(QuotaExceeded) as excinfo:
            submit([super_line(count=1)])
        assert excinfo.value.message == "User daily limit reached for:"

    def test_other_agents_keep_group_cap(self, override, submit):
        assert submit([super_line(count=20)], agent="agent2").bill_no == 1

    def test_override_is_per_draw(self, override, submit):
        assert submit([super_line(count=20)], draw="DEAR 6 PM").bill_no == 1

    def test_first_draw_fixes_the_agent_pool(self, override, submit):
        submit([super_line(count=10)], draw="DEAR 6 PM")
        assert UserQuota.query.filter_by(agent="agent1").one().remaining == 40
        # the override still caps each line, but not the already opened pool
        for _ in range(3):
            submit([super_line(count=5)], draw="DEAR 1 PM")
        assert UserQuota.query.filter_by(agent="agent1").one().remaining == 25
        with pytest.raises(OverrideExceeded):
            submit([super_line(count=6)], draw="DEAR 1 PM")
