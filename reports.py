"""Net-pay, winning and sales reports over an agent subtree.

Entries are matched to results by settlement date and draw, scored by
:mod:`payout`, priced with :mod:`rates`, and summed per bill and per agent.
Finished reports are cached by their full parameter tuple for a few minutes;
writes never invalidate them.
"""
import logging
from collections import deque

from cache import TTLCache
from draws import draw_key, result_label
from errors import ValidationError
from models import Agent, BetEntry, DrawResult
from payout import DrawOutcome, PayoutEngine
from rates import CASCADE, DEFAULT_RATE, MODES, PER_AGENT, RateResolver, rate_for

logger = logging.getLogger(__name__)

ALL = "ALL"


def descendants_of(agent, edges):
    """Every agent below ``agent``, breadth first.

    ``edges`` is an iterable of (username, parent) pairs. A visited set keeps
    misconfigured cycles from looping.
    """
    children = {}
    for username, parent in edges:
        children.setdefault(parent, []).append(username)

    found = []
    visited = {agent}
    queue = deque([agent])
    while queue:
        current = queue.popleft()
        for child in children.get(current, ()):
            if child in visited:
                continue
            visited.add(child)
            found.append(child)
            queue.append(child)
    return found


def normalize_draws(draws):
    """None for 'every draw', else a sorted tuple of canonical draw keys."""
    if draws is None:
        return None
    if isinstance(draws, str):
        draws = [draws]
    keys = {draw_key(d) for d in draws if d and str(d).strip().upper() != ALL}
    return tuple(sorted(keys)) or None


class ReportAggregator:
    def __init__(self, cache=None, payout=None, rates=None, default_rate=DEFAULT_RATE):
        self.cache = cache if cache is not None else TTLCache()
        self.payout = payout or PayoutEngine()
        self.rates = rates or RateResolver()
        self.default_rate = default_rate

    # -- hierarchy ------------------------------------------------------

    def descendants(self, agent):
        edges = Agent.query.with_entities(Agent.username, Agent.created_by).all()
        return descendants_of(agent, edges)

    def scope(self, agent):
        if agent:
            return [agent, *self.descendants(agent)]
        return [username for (username,) in Agent.query.with_entities(Agent.username).all()]

    def schemes(self, agents):
        rows = (Agent.query.with_entities(Agent.username, Agent.scheme)
                .filter(Agent.username.in_(agents)).all())
        return {username: scheme or "Scheme 1" for username, scheme in rows}

    # -- fetching -------------------------------------------------------

    def _entries(self, agents, start, end, draws):
        query = BetEntry.query.filter(
            BetEntry.created_by.in_(agents),
            BetEntry.effective_date >= start,
            BetEntry.effective_date <= end,
            BetEntry.is_valid.is_(True),
        )
        if draws:
            query = query.filter(BetEntry.draw_label.in_(draws))
        return query.order_by(BetEntry.bill_no, BetEntry.id).all()

    def _outcomes(self, start, end, draws):
        query = DrawResult.query.filter(DrawResult.date >= start, DrawResult.date <= end)
        if draws:
            query = query.filter(DrawResult.draw_label.in_([result_label(d) for d in draws]))
        return {(r.date, r.draw_label): DrawOutcome.from_result(r) for r in query.all()}

    def _outcome_for(self, outcomes, entry):
        return outcomes.get((entry.effective_date, result_label(entry.draw_label)))

    # -- caching --------------------------------------------------------

    def _cached(self, key, build):
        hit = self.cache.get(key)
        if hit is not None:
            logger.debug("⚡ report cache hit %s", key)
            return hit
        logger.debug("report cache miss %s", key)
        report = build()
        self.cache.set(key, report)
        return report

    def report(self, kind, **params):
        builders = {
            "net-pay": self.net_pay,
            "winning": self.winning_report,
            "sales": self.sales_report,
        }
        if kind not in builders:
            raise ValidationError(f"Unknown report: {kind!r}")
        return builders[kind](**params)

    # -- reports --------------------------------------------------------

    @staticmethod
    def _check_range(start, end):
        if start is None or end is None:
            raise ValidationError("fromDate and toDate are required")
        if start > end:
            raise ValidationError("fromDate must not be after toDate")

    def net_pay(self, from_date, to_date, draws=None, agent=None, mode=PER_AGENT, reference_agent=None):
        self._check_range(from_date, to_date)
        if mode not in MODES:
            raise ValidationError(f"Unknown rate mode: {mode!r}")
        draws = normalize_draws(draws)
        reference_agent = reference_agent or (agent if mode == CASCADE else None)
        key = ("net-pay", from_date, to_date, draws, agent, mode, reference_agent)
        return self._cached(key, lambda: self._build_net_pay(
            from_date, to_date, draws, agent, mode, reference_agent))

    def _build_net_pay(self, from_date, to_date, draws, agent, mode, reference_agent):
        agents = self.scope(agent)
        entries = self._entries(agents, from_date, to_date, draws)
        outcomes = self._outcomes(from_date, to_date, draws)
        rates = self.rates.resolve_draws(agents, {e.draw_label for e in entries}, mode, reference_agent)
        schemes = self.schemes(agents)

        rows = []
        by_agent = {}
        for entry in entries:
            result = self.payout.score(entry, self._outcome_for(outcomes, entry))
            rate_map = rates.get(draw_key(entry.draw_label), {}).get(entry.created_by, {})
            rate = rate_for(rate_map, entry.bet_type, self.default_rate)
            amount = rate * entry.count
            rows.append({
                **entry.to_dict(),
                "winAmount": result.win_amount,
                "winType": result.win_type,
                "scheme": schemes.get(entry.created_by, "Scheme 1"),
                "appliedRate": rate,
                "calculatedAmount": amount,
            })
            totals = by_agent.setdefault(entry.created_by, {
                "agent": entry.created_by, "count": 0, "amount": 0, "winAmount": 0})
            totals["count"] += entry.count
            totals["amount"] += amount
            totals["winAmount"] += result.win_amount

        for totals in by_agent.values():
            totals["netPay"] = totals["amount"] - totals["winAmount"]

        amount = sum(t["amount"] for t in by_agent.values())
        win_amount = sum(t["winAmount"] for t in by_agent.values())
        return {
            "fromDate": from_date.isoformat(),
            "toDate": to_date.isoformat(),
            "draws": list(draws) if draws else ALL,
            "agent": agent or "All Agents",
            "mode": mode,
            "entries": rows,
            "byAgent": sorted(by_agent.values(), key=lambda t: t["agent"]),
            "totals": {
                "count": sum(t["count"] for t in by_agent.values()),
                "amount": amount,
                "winAmount": win_amount,
                "netPay": amount - win_amount,
            },
            "usersList": agents,
            "userRates": rates,
        }

    def winning_report(self, from_date, to_date, draw=None, agent=None):
        self._check_range(from_date, to_date)
        draws = normalize_draws(draw)
        key = ("winning", from_date, to_date, draws, agent, None, None)
        return self._cached(key, lambda: self._build_winning(from_date, to_date, draws, agent))

    def _build_winning(self, from_date, to_date, draws, agent):
        agents = self.scope(agent)
        entries = self._entries(agents, from_date, to_date, draws)
        outcomes = self._outcomes(from_date, to_date, draws)
        schemes = self.schemes(agents)

        bills = {}
        for entry in entries:
            result = self.payout.score(entry, self._outcome_for(outcomes, entry))
            if result.win_amount <= 0:
                continue
            bill = bills.setdefault(entry.bill_no, {
                "billNo": f"{entry.bill_no:05d}",
                "createdBy": entry.created_by,
                "scheme": schemes.get(entry.created_by, "N/A"),
                "drawName": entry.draw_label,
                "date": entry.effective_date.isoformat(),
                "winnings": [],
                "total": 0,
            })
            bill["winnings"].append({
                "number": entry.number,
                "type": entry.bet_type,
                "winType": result.win_type,
                "count": entry.count,
                "winAmount": result.win_amount,
                "name": entry.name or "-",
            })
            bill["total"] += result.win_amount

        report = {
            "fromDate": from_date.isoformat(),
            "toDate": to_date.isoformat(),
            "time": list(draws) if draws else ALL,
            "agent": agent or ALL,
            "bills": list(bills.values()),
            "grandTotal": sum(b["total"] for b in bills.values()),
        }
        if not bills:
            report["message"] = "No winning entries found" if entries else "No entries found"
        return report

    def sales_report(self, from_date, to_date, agent=None, draw=None, reference_agent=None):
        self._check_range(from_date, to_date)
        draws = normalize_draws(draw)
        mode = CASCADE if reference_agent else PER_AGENT
        key = ("sales", from_date, to_date, draws, agent, mode, reference_agent)
        return self._cached(key, lambda: self._build_sales(
            from_date, to_date, draws, agent, mode, reference_agent))

    def _build_sales(self, from_date, to_date, draws, agent, mode, reference_agent):
        agents = self.scope(agent)
        entries = self._entries(agents, from_date, to_date, draws)
        rates = self.rates.resolve_draws(agents, {e.draw_label for e in entries}, mode, reference_agent)

        per_agent = {}
        for entry in entries:
            rate_map = rates.get(draw_key(entry.draw_label), {}).get(entry.created_by, {})
            amount = rate_for(rate_map, entry.bet_type, self.default_rate) * entry.count
            totals = per_agent.setdefault(entry.created_by, {"agent": entry.created_by, "count": 0, "amount": 0})
            totals["count"] += entry.count
            totals["amount"] += amount

        label = ", ".join(draws) if draws else "all"
        return {
            "count": sum(t["count"] for t in per_agent.values()),
            "amount": sum(t["amount"] for t in per_agent.values()),
            "date": f"{from_date.isoformat()} to {to_date.isoformat()} ({label})",
            "fromDate": from_date.isoformat(),
            "toDate": to_date.isoformat(),
            "createdBy": agent,
            "byAgent": sorted(per_agent.values(), key=lambda t: t["amount"], reverse=True),
        }
