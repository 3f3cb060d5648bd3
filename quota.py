"""Daily quota ledgers.

Two tiers are tracked: a global one keyed by (date, bet type, number) and a
per-agent one keyed by (date, agent, bet type, number). Records are created on
first use, seeded from the ceiling, and only ever move down, floored at 0.

Validation (``check_*``) reads the stored value; ``consume`` re-checks and
decrements in one conditional UPDATE per key, so two submissions that both
passed validation can never jointly oversell a number.
"""
import logging
from collections import Counter
from dataclasses import dataclass

from sqlalchemy import case, update

from db import insert_ignore
from draws import canonical_draw
from errors import QuotaExceeded
from expander import BetLine
from models import db, GlobalQuota, UserQuota, UserQuotaOverride

logger = logging.getLogger(__name__)

DEFAULT_CAP = 9999


@dataclass(frozen=True)
class LineCheck:
    line: BetLine
    ceiling: int
    remaining: int
    accepted: int

    @property
    def exceeded(self):
        return self.accepted < self.line.count

    def describe(self):
        return f"{self.line.label} → attempted {self.line.count}, remaining {max(0, self.remaining)}"


def clamp(lines, ceiling_for, stored):
    """Accept each line up to what is left for its key.

    ``stored`` maps key → remaining for keys that already have a record; other
    keys start at their ceiling. Lines sharing a key draw from the same pool in
    input order.
    """
    left = {}
    checks = []
    for line in lines:
        ceiling = ceiling_for(line)
        if line.key not in left:
            value = stored.get(line.key)
            left[line.key] = ceiling if value is None else value
        remaining = left[line.key]
        if remaining <= 0:
            accepted = 0
        elif line.count <= remaining:
            accepted = line.count
        else:
            accepted = remaining
        left[line.key] = remaining - accepted
        checks.append(LineCheck(line, ceiling, remaining, accepted))
    return checks


def combine_tiers(*tiers):
    """Per line, the check that accepted least across all tiers."""
    return [min(checks, key=lambda c: c.accepted) for checks in zip(*tiers)]


def totals_by_key(lines):
    totals = Counter()
    for line in lines:
        totals[line.key] += line.count
    return totals


class QuotaLedger:
    def __init__(self, caps=None, default_cap=DEFAULT_CAP):
        self.caps = caps or {}
        self.default_cap = default_cap
        self._overrides = {}

    # -- ceilings -------------------------------------------------------

    def group_cap(self, bet_type):
        return int(self.caps.get(bet_type.value, self.default_cap))

    def override(self, bet_type, number, draw_label, agent):
        draw = canonical_draw(draw_label)
        label = draw.value if draw else draw_label
        memo_key = (bet_type, number, label, agent)
        if memo_key not in self._overrides:
            self._overrides[memo_key] = (
                UserQuotaOverride.query
                .filter_by(bet_type=bet_type.value, number=number,
                           draw_label=label, agent=agent, is_active=True)
                .order_by(UserQuotaOverride.id.desc())
                .first()
            )
        return self._overrides[memo_key]

    def agent_ceiling(self, bet_type, number, draw_label, agent):
        found = self.override(bet_type, number, draw_label, agent)
        return found.count if found is not None else self.group_cap(bet_type)

    # -- stored values --------------------------------------------------

    def _stored(self, model, keys, **filters):
        numbers = {number for _, number in keys}
        if not numbers:
            return {}
        rows = (model.query
                .filter_by(**filters)
                .filter(model.number.in_(numbers))
                .all())
        wanted = {(bet_type.value, number): (bet_type, number) for bet_type, number in keys}
        stored = {}
        for row in rows:
            key = wanted.get((row.bet_type, row.number))
            if key is not None:
                stored[key] = row.remaining
        return stored

    def stored_global(self, day, keys):
        return self._stored(GlobalQuota, keys, date=day)

    def stored_for_agent(self, day, agent, keys):
        return self._stored(UserQuota, keys, date=day, agent=agent)

    # -- validation -----------------------------------------------------

    def check_global(self, day, lines):
        stored = self.stored_global(day, {line.key for line in lines})
        return clamp(lines, lambda line: self.group_cap(line.bet_type), stored)

    def check_overrides(self, lines, draw_label, agent):
        """Lines asking for more than an operator's hard cap; returns (line, cap) pairs."""
        violations = []
        for line in lines:
            found = self.override(line.bet_type, line.number, draw_label, agent)
            if found is not None and line.count > found.count:
                violations.append((line, found.count))
        return violations

    def check_agent(self, day, lines, draw_label, agent):
        stored = self.stored_for_agent(day, agent, {line.key for line in lines})
        return clamp(
            lines,
            lambda line: self.agent_ceiling(line.bet_type, line.number, draw_label, agent),
            stored,
        )

    # -- commit ---------------------------------------------------------

    def _consume_key(self, model, filters, ceiling, used):
        conditions = [getattr(model, column) == value for column, value in filters.items()]
        left = model.remaining - used
        stmt = (update(model)
                .where(*conditions, model.remaining >= used)
                .values(remaining=case((left < 0, 0), else_=left))
                .execution_options(synchronize_session=False))
        if db.session.execute(stmt).rowcount == 1:
            return True
        if ceiling >= used:
            seeded = insert_ignore(model,
                                   {**filters, "remaining": ceiling - used},
                                   index_elements=list(filters))
            if seeded:
                return True
            # another writer created the record first
            return db.session.execute(stmt).rowcount == 1
        return False

    def consume(self, day, lines, draw_label, agent):
        """Decrement both tiers for an accepted batch; raises QuotaExceeded if a key ran dry meanwhile."""
        short = []
        for (bet_type, number), used in totals_by_key(lines).items():
            ok = self._consume_key(
                GlobalQuota,
                {"date": day, "bet_type": bet_type.value, "number": number},
                self.group_cap(bet_type),
                used,
            )
            if not ok:
                short.append(f"{bet_type.value}-{number} → attempted {used}")
                continue
            ok = self._consume_key(
                UserQuota,
                {"date": day, "agent": agent, "bet_type": bet_type.value, "number": number},
                self.agent_ceiling(bet_type, number, draw_label, agent),
                used,
            )
            if not ok:
                short.append(f"{bet_type.value}-{number} → attempted {used} (agent {agent})")
        if short:
            logger.warning("quota consumed concurrently for %s on %s: %s", agent, day, short)
            raise QuotaExceeded("Daily limit reached for:", short)
