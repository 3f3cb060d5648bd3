"""Draw and bet-type catalogue.

Every draw label that crosses the system boundary is resolved here, once, to a
canonical :class:`Draw`. Storage conventions differ per table:

* entries, windows, overrides and rate tables use the canonical label
  (``"KERALA 3 PM"``),
* results use the label with the space before the meridiem removed
  (``"KERALA 3PM"``),
* blocked dates use the short ticket code (``"LSK3"``).
"""
import re
from enum import Enum

from errors import ValidationError


class Draw(str, Enum):
    DEAR_1 = "DEAR 1 PM"
    KERALA_3 = "KERALA 3 PM"
    DEAR_6 = "DEAR 6 PM"
    DEAR_8 = "DEAR 8 PM"


class BetType(str, Enum):
    SUPER = "SUPER"
    BOX = "BOX"
    A = "A"
    B = "B"
    C = "C"
    AB = "AB"
    BC = "BC"
    AC = "AC"


TICKET_CODES = {
    Draw.DEAR_1: "DEAR1",
    Draw.KERALA_3: "LSK3",
    Draw.DEAR_6: "DEAR6",
    Draw.DEAR_8: "DEAR8",
}

GROUPS = {
    "group1": (BetType.A, BetType.B, BetType.C),
    "group2": (BetType.AB, BetType.BC, BetType.AC),
    "group3": (BetType.SUPER, BetType.BOX),
}

DRAW_WIDTH = 3

# keys are upper-cased with whitespace and a trailing AM/PM removed
_ALIASES = {
    "DEAR1": Draw.DEAR_1,
    "D-1": Draw.DEAR_1,
    "KERALA3": Draw.KERALA_3,
    "LSK3": Draw.KERALA_3,
    "LSK": Draw.KERALA_3,
    "DEAR6": Draw.DEAR_6,
    "D-6": Draw.DEAR_6,
    "DEAR8": Draw.DEAR_8,
    "D-8": Draw.DEAR_8,
}

_MERIDIEM = re.compile(r"(AM|PM)$")
_SPACE_BEFORE_MERIDIEM = re.compile(r"\s+(AM|PM)$", re.IGNORECASE)


def squash(label):
    """Upper-case, whitespace-free form of a label."""
    return re.sub(r"\s+", "", str(label or "")).upper()


def canonical_draw(label):
    """Resolve any known spelling of a draw, or None."""
    if isinstance(label, Draw):
        return label
    key = _MERIDIEM.sub("", squash(label))
    return _ALIASES.get(key)


def require_draw(label):
    draw = canonical_draw(label)
    if draw is None:
        raise ValidationError(f"Unknown draw: {label!r}")
    return draw


def draw_key(label):
    """Lookup key: canonical label when known, squashed form otherwise."""
    draw = canonical_draw(label)
    return draw.value if draw else squash(label)


def result_label(label):
    """Label under which results are stored, e.g. ``"DEAR 1PM"``."""
    draw = canonical_draw(label)
    text = draw.value if draw else str(label or "").strip().upper()
    return _SPACE_BEFORE_MERIDIEM.sub(r"\1", text)


def ticket_code(label):
    draw = canonical_draw(label)
    return TICKET_CODES[draw] if draw else squash(label)


def group_of(bet_type):
    for group, members in GROUPS.items():
        if bet_type in members:
            return group
    raise ValidationError(f"Unknown bet type: {bet_type!r}")


def number_width(bet_type):
    if bet_type in GROUPS["group1"]:
        return 1
    if bet_type in GROUPS["group2"]:
        return 2
    return DRAW_WIDTH


def extract_bet_type(type_str):
    """Bet type from a plain or composite type string (``LSK3SUPER``, ``D-1-AB``)."""
    if isinstance(type_str, BetType):
        return type_str
    raw = str(type_str or "").strip()
    upper = raw.upper()
    if upper in BetType.__members__:
        return BetType[upper]
    for name in ("SUPER", "BOX", "AB", "BC", "AC"):
        if name in upper:
            return BetType[name]
    for name in ("A", "B", "C"):
        if f"-{name}" in upper or upper.endswith(name):
            return BetType[name]
    raise ValidationError(f"Unknown bet type: {type_str!r}")


def parse_bet_type(value):
    """Strict form used for stored records: the value must already be a bet type."""
    if isinstance(value, BetType):
        return value
    try:
        return BetType(str(value).upper())
    except ValueError:
        raise ValidationError(f"Unknown bet type: {value!r}")
