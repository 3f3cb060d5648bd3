"""Changes and lookups on admitted entries.

Count updates and invalidations neither return nor consume ledger quota.
"""
import logging

from sqlalchemy import func

from draws import canonical_draw, draw_key, extract_bet_type
from errors import NotFound, ValidationError, WindowBlocked
from models import db, BetEntry
from windows import DrawWindowResolver

logger = logging.getLogger(__name__)


def get_entry(entry_id):
    entry = db.session.get(BetEntry, entry_id)
    if entry is None:
        raise NotFound("Entry not found")
    return entry


def invalidate(entry_id):
    entry = get_entry(entry_id)
    entry.is_valid = False
    db.session.commit()
    logger.info("entry %s marked invalid", entry_id)
    return entry


def _ensure_open(entry, role, now, action):
    if DrawWindowResolver().is_locked(entry.draw_label, role, entry.effective_date, now):
        raise WindowBlocked(f"Cannot {action}, Entry time is blocked for this draw")


def update_count(entry_id, count, role, now):
    try:
        count = int(count)
    except (TypeError, ValueError):
        raise ValidationError("Invalid count")
    if count <= 0:
        raise ValidationError("Invalid count")
    entry = get_entry(entry_id)
    _ensure_open(entry, role, now, "update count")
    entry.count = count
    db.session.commit()
    return entry


def delete_entry(entry_id, role, now):
    entry = get_entry(entry_id)
    _ensure_open(entry, role, now, "delete entry")
    db.session.delete(entry)
    db.session.commit()
    logger.info("entry %s deleted", entry_id)


def delete_bill(bill_no):
    if not str(bill_no).isdigit():
        raise ValidationError(f"Bad bill number: {bill_no!r}")
    deleted = BetEntry.query.filter_by(bill_no=int(bill_no)).delete()
    if not deleted:
        db.session.rollback()
        raise NotFound("No entries found with this bill number")
    db.session.commit()
    logger.info("bill %s deleted (%d entries)", bill_no, deleted)
    return deleted


def _split_key(key):
    """``"SUPER-123"`` or ``"LSK3-AB-12"`` → (BetType, number)."""
    parts = str(key).split("-")
    if len(parts) < 2 or not parts[-1].isdigit():
        raise ValidationError(f"Bad key: {key!r}")
    return extract_bet_type("-".join(parts[:-1])), parts[-1]


def count_by_number(keys, day, draw_label):
    """Admitted totals for each ``TYPE-NUMBER`` key on one date and draw; unseen keys are 0."""
    if not isinstance(keys, (list, tuple)) or not day or not draw_label:
        raise ValidationError("Missing required fields")
    wanted = {}
    for key in keys:
        bet_type, number = _split_key(key)
        wanted[(bet_type.value, number)] = f"{bet_type.value}-{number}"
    counts = {label: 0 for label in wanted.values()}
    if not wanted:
        return counts

    rows = (db.session.query(BetEntry.bet_type, BetEntry.number, func.sum(BetEntry.count))
            .filter(BetEntry.effective_date == day,
                    BetEntry.draw_label == draw_key(draw_label),
                    BetEntry.is_valid.is_(True),
                    BetEntry.number.in_({number for _, number in wanted}))
            .group_by(BetEntry.bet_type, BetEntry.number)
            .all())
    for bet_type, number, total in rows:
        label = wanted.get((bet_type, number))
        if label is not None:
            counts[label] = int(total or 0)
    return counts


def count_report(day=None, draw_label=None, agent=None, group=False, number=None):
    """Total count per number (or per number and ticket), busiest first."""
    query = BetEntry.query.filter(BetEntry.is_valid.is_(True))
    if day:
        query = query.filter(BetEntry.effective_date == day)
    if agent:
        query = query.filter(BetEntry.created_by == agent)
    if draw_label and str(draw_label).upper() != "ALL":
        draw = canonical_draw(draw_label)
        query = query.filter(BetEntry.draw_label == (draw.value if draw else draw_label))
    if number:
        query = query.filter(BetEntry.number == number)

    totals = {}
    for entry in query.all():
        key = entry.number if group else f"{entry.number}_{entry.bet_type}"
        row = totals.setdefault(key, {
            "number": entry.number,
            "ticketName": None if group else entry.bet_type,
            "count": 0,
            "total": 0.0,
        })
        row["count"] += entry.count
        row["total"] += float(entry.rate or 0)
    return sorted(totals.values(), key=lambda r: r["count"], reverse=True)
