import logging
from dataclasses import dataclass
from datetime import date, datetime, time as dtime, timedelta
from typing import Optional

from draws import canonical_draw, squash
from errors import ConfigurationMissing, WindowBlocked
from models import DrawWindow
from utils import parse_hhmm

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowDecision:
    block_time: dtime
    unblock_time: dtime
    blocked: bool
    settlement_date: Optional[date]


def evaluate_window(block_time, unblock_time, now):
    """Decide whether ``now`` is inside [block, unblock) and which day it settles on.

    Outside the window a submission settles today while ``now < block`` and
    tomorrow once ``now >= unblock``.
    """
    clock = now.time().replace(tzinfo=None)
    today = now.date()
    blocked = block_time <= clock < unblock_time
    if blocked:
        settlement = None
    elif clock < block_time:
        settlement = today
    elif clock >= unblock_time:
        settlement = today + timedelta(days=1)
    else:
        settlement = today
    return WindowDecision(block_time, unblock_time, blocked, settlement)


class DrawWindowResolver:
    def lookup(self, draw_label, role):
        """Window record for (draw, role), trying the raw, canonical and squashed labels."""
        candidates = [draw_label]
        draw = canonical_draw(draw_label)
        if draw is not None:
            candidates.append(draw.value)
        candidates.append(squash(draw_label))

        for label in dict.fromkeys(candidates):
            record = (DrawWindow.query
                      .filter_by(draw_label=label, role=role)
                      .order_by(DrawWindow.id.desc())
                      .first())
            if record:
                return record
        raise ConfigurationMissing(f"No block time configuration found for draw: {draw_label}")

    def resolve(self, draw_label, role, now):
        record = self.lookup(draw_label, role)
        return evaluate_window(parse_hhmm(record.block_time), parse_hhmm(record.unblock_time), now)

    def settlement_date(self, draw_label, role, now):
        """Settlement date for a submission made at ``now``; raises WindowBlocked inside the window."""
        decision = self.resolve(draw_label, role, now)
        if decision.blocked:
            logger.warning("⛔ %s blocked for %s at %s", draw_label, role, now.strftime("%H:%M"))
            raise WindowBlocked("Entry time is blocked for this draw")
        return decision.settlement_date

    def is_locked(self, draw_label, role, effective_date, now):
        """True once the block time on ``effective_date`` has passed; entries can no longer change."""
        record = self.lookup(draw_label, role)
        block = datetime.combine(effective_date, parse_hhmm(record.block_time))
        # ``now`` is already in the lottery zone; compare wall-clock times
        return now.replace(tzinfo=None) >= block
