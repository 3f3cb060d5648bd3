"""Operator configuration: windows, blocked dates, limits, overrides, rates, results, agents."""
import logging

from draws import (Draw, GROUPS, TICKET_CODES, canonical_draw, draw_key, group_of,
                   number_width, parse_bet_type, require_draw, result_label, ticket_code)
from errors import NotFound, ValidationError
from models import (db, Agent, BlockedDate, DrawResult, DrawWindow, RateTable,
                    TicketLimit, UserQuotaOverride)
from utils import parse_date, parse_hhmm

logger = logging.getLogger(__name__)

OVERRIDE_MAX = 999


# -- block windows ------------------------------------------------------

def set_block_times(blocks):
    if not isinstance(blocks, list):
        raise ValidationError("blocks must be an array")
    saved = []
    for block in blocks:
        draw_label = block.get("drawLabel")
        role = block.get("type")
        if not draw_label or not role or not block.get("blockTime") or not block.get("unblockTime"):
            raise ValidationError("drawLabel, type, blockTime, and unblockTime are all required.")
        parse_hhmm(block["blockTime"])
        parse_hhmm(block["unblockTime"])

        label = draw_key(draw_label)
        record = DrawWindow.query.filter_by(draw_label=label, role=role).first()
        if record is None:
            record = DrawWindow(draw_label=label, role=role)
            db.session.add(record)
        record.block_time = block["blockTime"]
        record.unblock_time = block["unblockTime"]
        saved.append(record)
    db.session.commit()
    logger.info("saved %d block times", len(saved))
    return saved


def list_block_times(draw_label=None, role=None):
    query = DrawWindow.query
    if draw_label:
        query = query.filter_by(draw_label=draw_key(draw_label))
    if role:
        query = query.filter_by(role=role)
    return query.order_by(DrawWindow.draw_label, DrawWindow.role).all()


# -- blocked dates ------------------------------------------------------

def add_blocked_date(ticket, day):
    """Close ``day`` for one ticket, or for every ticket when ``ticket`` is ALL; returns new rows."""
    if not ticket or not day:
        raise ValidationError("Ticket and Date are required")
    day = parse_date(day)
    if str(ticket).strip().upper() == "ALL":
        tickets = list(TICKET_CODES.values())
    else:
        tickets = [ticket_code(ticket)]

    existing = {row.ticket for row in
                BlockedDate.query.filter(BlockedDate.date == day, BlockedDate.ticket.in_(tickets))}
    created = [BlockedDate(ticket=t, date=day) for t in tickets if t not in existing]
    db.session.add_all(created)
    db.session.commit()
    return created


def list_blocked_dates():
    return BlockedDate.query.order_by(BlockedDate.date.desc(), BlockedDate.ticket).all()


def delete_blocked_date(blocked_id):
    row = db.session.get(BlockedDate, blocked_id)
    if row is None:
        raise NotFound("Not found")
    db.session.delete(row)
    db.session.commit()


# -- ticket limits ------------------------------------------------------

def save_ticket_limit(group1, group2, group3, created_by):
    if not group1 or not group2 or not group3 or not created_by:
        raise ValidationError("Missing data")
    for group, values in (("group1", group1), ("group2", group2), ("group3", group3)):
        allowed = {t.value for t in GROUPS[group]}
        unknown = set(values) - allowed
        if unknown:
            raise ValidationError(f"{group} only takes {sorted(allowed)}, got {sorted(unknown)}")

    # single global record
    record = TicketLimit.query.order_by(TicketLimit.id.desc()).first()
    if record is None:
        record = TicketLimit()
        db.session.add(record)
    record.group1, record.group2, record.group3 = dict(group1), dict(group2), dict(group3)
    record.created_by = created_by
    db.session.commit()
    return record


def latest_ticket_limit():
    record = TicketLimit.query.order_by(TicketLimit.id.desc()).first()
    if record is None:
        raise NotFound("No limits found")
    return record


# -- per-agent overrides ------------------------------------------------

def add_overrides(block_data, group, draw_time, agent):
    if not isinstance(block_data, list) or not block_data:
        raise ValidationError("Block data is required and must be an array")
    if not group or not draw_time or not agent:
        raise ValidationError("Selected group, draw time, and created by are required")
    if group not in GROUPS:
        raise ValidationError(f"Unknown group: {group!r}")

    draws = list(Draw) if str(draw_time).strip().upper() == "ALL" else [require_draw(draw_time)]
    pending = []
    for item in block_data:
        bet_type = parse_bet_type(item.get("field"))
        if group_of(bet_type) != group:
            raise ValidationError(f"{bet_type.value} does not belong to {group}")
        number = str(item.get("number") or "").strip()
        if not number.isdigit() or len(number) != number_width(bet_type):
            raise ValidationError(f"{bet_type.value} needs a {number_width(bet_type)}-digit number")
        try:
            count = int(item.get("count"))
        except (TypeError, ValueError):
            raise ValidationError("count must be a number")
        if not 1 <= count <= OVERRIDE_MAX:
            raise ValidationError(f"count must be between 1 and {OVERRIDE_MAX}")
        for draw in draws:
            pending.append(UserQuotaOverride(
                bet_type=bet_type.value, number=number, count=count,
                group=group, draw_label=draw.value, agent=agent, is_active=True))

    duplicates = []
    for row in pending:
        clash = UserQuotaOverride.query.filter_by(
            bet_type=row.bet_type, number=row.number, draw_label=row.draw_label,
            agent=agent, is_active=True).first()
        if clash:
            duplicates.append(f"{clash.bet_type}: {clash.number} ({clash.draw_label})")
    if duplicates:
        raise ValidationError("Some numbers are already blocked:", duplicates)

    db.session.add_all(pending)
    db.session.commit()
    logger.info("added %d overrides for %s", len(pending), agent)
    return pending


def list_overrides(agent=None, draw_label=None, active_only=True):
    query = UserQuotaOverride.query
    if agent:
        query = query.filter_by(agent=agent)
    if draw_label:
        query = query.filter_by(draw_label=draw_key(draw_label))
    if active_only:
        query = query.filter_by(is_active=True)
    return query.order_by(UserQuotaOverride.id.desc()).all()


def _get_override(override_id):
    row = db.session.get(UserQuotaOverride, override_id)
    if row is None:
        raise NotFound("Blocked number not found")
    return row


def update_override(override_id, count=None, number=None, is_active=None):
    row = _get_override(override_id)
    if count is not None:
        try:
            count = int(count)
        except (TypeError, ValueError):
            raise ValidationError("count must be a number")
        if not 1 <= count <= OVERRIDE_MAX:
            raise ValidationError(f"count must be between 1 and {OVERRIDE_MAX}")
        row.count = count
    if number is not None:
        if not str(number).isdigit() or len(str(number)) != number_width(parse_bet_type(row.bet_type)):
            raise ValidationError(f"Bad number for {row.bet_type}: {number!r}")
        row.number = str(number)
    if is_active is not None:
        row.is_active = bool(is_active)
    db.session.commit()
    return row


def deactivate_override(override_id):
    return update_override(override_id, is_active=False)


def bulk_delete_overrides(ids):
    if not isinstance(ids, list) or not ids:
        raise ValidationError("ids must be a non-empty array")
    deleted = (UserQuotaOverride.query
               .filter(UserQuotaOverride.id.in_(ids))
               .delete(synchronize_session=False))
    db.session.commit()
    return deleted


# -- rate tables --------------------------------------------------------

def save_rates(agent, draw_label, rates):
    if not agent or not draw_label or not isinstance(rates, list):
        raise ValidationError("Missing user, draw, or rates")
    mapping = {}
    for item in rates:
        label = item.get("label") if isinstance(item, dict) else None
        rate = item.get("rate") if isinstance(item, dict) else None
        if not label or isinstance(rate, bool) or not isinstance(rate, (int, float)):
            raise ValidationError("Each rate must have a label and numeric rate")
        mapping[parse_bet_type(label).value] = rate

    key = draw_key(draw_label)
    row = RateTable.query.filter_by(agent=agent, draw_label=key).first()
    if row is None:
        row = RateTable(agent=agent, draw_label=key)
        db.session.add(row)
    row.rates = mapping
    db.session.commit()
    return row


def get_rates(agent, draw_label):
    if not agent or not draw_label:
        raise ValidationError("User and draw are required")
    return RateTable.query.filter_by(agent=agent, draw_label=draw_key(draw_label)).first()


# -- results ------------------------------------------------------------

def save_result(day, draw_label, prizes, others=None):
    day = parse_date(day)
    if canonical_draw(draw_label) is None:
        raise ValidationError(f"Unknown draw: {draw_label!r}")
    if not isinstance(prizes, list) or not prizes or len(prizes) > 5:
        raise ValidationError("prizes must list 1 to 5 numbers")
    label = result_label(draw_label)
    row = DrawResult.query.filter_by(date=day, draw_label=label).first()
    if row is None:
        row = DrawResult(date=day, draw_label=label)
        db.session.add(row)
    row.prizes = [str(p) if p else None for p in prizes]
    row.others = [str(o) for o in (others or []) if o]
    db.session.commit()
    logger.info("result saved for %s %s", day, label)
    return row


def get_result(day, draw_label):
    if not day or not draw_label:
        raise ValidationError("Missing date or time parameter")
    row = DrawResult.query.filter_by(date=parse_date(day), draw_label=result_label(draw_label)).first()
    if row is None:
        raise NotFound("Result not found")
    return row


# -- agents -------------------------------------------------------------

def add_agent(username, created_by=None, scheme=None):
    if not username:
        raise ValidationError("username is required")
    if Agent.query.filter_by(username=username).first():
        raise ValidationError(f"Agent {username} already exists")
    agent = Agent(username=username, created_by=created_by, scheme=scheme or "Scheme 1")
    db.session.add(agent)
    db.session.commit()
    return agent


def list_agents(created_by=None):
    query = Agent.query
    if created_by:
        query = query.filter_by(created_by=created_by)
    return query.order_by(Agent.username).all()
