import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from db import format_bill_no, next_bill_no
from draws import require_draw, ticket_code
from errors import (ConfigurationMissing, DateBlocked, LotteryError, OverrideExceeded,
                    PersistenceError, QuotaExceeded, ValidationError)
from expander import RawLine, expand
from models import db, BetEntry, BlockedDate, TicketLimit
from quota import DEFAULT_CAP, QuotaLedger, combine_tiers
from windows import DrawWindowResolver

logger = logging.getLogger(__name__)


@dataclass
class SubmitRequest:
    agent: str
    role: str
    draw_label: str
    lines: List[RawLine]
    time_code: Optional[str] = None

    @classmethod
    def from_dict(cls, data):
        entries = data.get("entries")
        if not entries:
            raise ValidationError("No entries provided")
        agent = data.get("loggedInUser") or data.get("agent")
        role = data.get("loggedInUserType") or data.get("role")
        draw_label = data.get("timeLabel") or data.get("drawLabel")
        missing = [name for name, value in
                   (("agent", agent), ("role", role), ("drawLabel", draw_label)) if not value]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        toggle_count = data.get("toggleCount")
        return cls(
            agent=agent,
            role=role,
            draw_label=draw_label,
            lines=[RawLine.from_dict(e, toggle_count) for e in entries],
            time_code=data.get("timeCode"),
        )


@dataclass
class SubmitResult:
    bill_no: int
    settlement_date: date
    line_count: int
    exceeded: list = field(default_factory=list)

    def to_dict(self):
        return {
            "billNo": format_bill_no(self.bill_no),
            "date": self.settlement_date.isoformat(),
            "lines": self.line_count,
            "exceeded": [c.describe() for c in self.exceeded],
        }


def default_rate(line):
    if line.rate is not None:
        return round(line.rate, 2)
    return (12 if len(line.number) == 1 else 10) * line.count


class AdmissionPipeline:
    """Admit a bill: window → blocked date → limits → expansion → quota → persist.

    Every rejection happens before anything is written, and the write itself
    (entries, bill number and both ledgers) commits as one transaction, so a
    failed submission leaves no trace.
    """

    def __init__(self, clock, default_cap=DEFAULT_CAP, bill_start=1, windows=None):
        self.clock = clock
        self.default_cap = default_cap
        self.bill_start = bill_start
        self.windows = windows or DrawWindowResolver()

    def submit(self, request):
        now = self.clock()
        draw = require_draw(request.draw_label)
        try:
            settlement = self.windows.settlement_date(draw.value, request.role, now)
            self._check_blocked_date(draw, settlement)
            limits = TicketLimit.query.order_by(TicketLimit.id.desc()).first()
            if limits is None:
                raise ConfigurationMissing(
                    "No ticket limits configuration found. Please set up ticket limits first.")

            lines = expand(request.lines)
            if not lines:
                raise ValidationError("No entries provided")
            ledger = QuotaLedger(limits.caps(self.default_cap), self.default_cap)
            exceeded = self._validate(ledger, settlement, lines, draw.value, request.agent)

            bill_no = next_bill_no(self.bill_start)
            db.session.add_all([
                BetEntry(
                    number=line.number,
                    bet_type=line.bet_type.value,
                    count=line.count,
                    draw_label=draw.value,
                    time_code=request.time_code,
                    bill_no=bill_no,
                    created_by=request.agent,
                    name=line.name,
                    rate=default_rate(line),
                    effective_date=settlement,
                )
                for line in lines
            ])
            ledger.consume(settlement, lines, draw.value, request.agent)
            db.session.commit()
        except LotteryError as exc:
            db.session.rollback()
            logger.warning("❌ submission by %s for %s rejected: %s", request.agent, draw.value, exc.message)
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("submission by %s for %s failed", request.agent, draw.value)
            raise PersistenceError("Internal server error") from exc

        logger.info("✅ bill %s: %d lines for %s on %s (%s)",
                    format_bill_no(bill_no), len(lines), request.agent, settlement, draw.value)
        return SubmitResult(bill_no, settlement, len(lines), exceeded)

    def _check_blocked_date(self, draw, settlement):
        code = ticket_code(draw)
        if BlockedDate.query.filter_by(ticket=code, date=settlement).first():
            raise DateBlocked(f"Entries are blocked for {settlement.isoformat()} for this ticket.")

    def _validate(self, ledger, day, lines, draw_label, agent):
        # any line that does not fit in full rejects the whole bill
        global_checks = ledger.check_global(day, lines)
        over = [c for c in global_checks if c.exceeded]
        if over:
            raise QuotaExceeded("Daily limit reached for:", [c.describe() for c in over])

        violations = ledger.check_overrides(lines, draw_label, agent)
        if violations:
            raise OverrideExceeded(
                "User limit exceeded:",
                [f"{line.label} → attempted {line.count}, allowed {cap}" for line, cap in violations],
            )

        agent_checks = ledger.check_agent(day, lines, draw_label, agent)
        over = [c for c in agent_checks if c.exceeded]
        if over:
            raise QuotaExceeded("User daily limit reached for:", [c.describe() for c in over])

        return [c for c in combine_tiers(global_checks, agent_checks) if c.exceeded]
