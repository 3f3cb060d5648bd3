from dataclasses import dataclass
from itertools import permutations
from typing import Optional

from draws import BetType, extract_bet_type, number_width
from errors import ValidationError


@dataclass(frozen=True)
class RawLine:
    """One line as submitted: a single number, or a range, optionally a 'set'."""
    bet_type: BetType
    count: int
    number: Optional[str] = None
    range_start: Optional[int] = None
    range_end: Optional[int] = None
    is_set: bool = False
    toggle_count: Optional[int] = None
    name: Optional[str] = None
    rate: Optional[float] = None

    @classmethod
    def from_dict(cls, data, toggle_count=None):
        if not isinstance(data, dict):
            raise ValidationError("Each entry must be an object")
        if not data.get("type"):
            raise ValidationError("Entry type is required")
        bet_type = extract_bet_type(data["type"])

        raw_count = data.get("count")
        try:
            count = 1 if raw_count in (None, "") else int(raw_count)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid count: {raw_count!r}")
        if count <= 0:
            raise ValidationError(f"Count must be positive, got {count}")

        range_start = data.get("rangeStart")
        range_end = data.get("rangeEnd")
        has_range = range_start is not None and range_end is not None
        number = data.get("number")
        has_number = number is not None and number != ""
        if not has_range and not has_number:
            raise ValidationError("Entry needs a number or a range")
        try:
            range_start = int(range_start) if has_range else None
            range_end = int(range_end) if has_range else None
        except (TypeError, ValueError):
            raise ValidationError("Range bounds must be integers")

        toggle_count = data.get("toggleCount", toggle_count)
        try:
            toggle_count = None if toggle_count in (None, "") else int(toggle_count)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid toggleCount: {toggle_count!r}")

        rate = data.get("rate")
        return cls(
            bet_type=bet_type,
            count=count,
            number=str(number) if has_number and not has_range else None,
            range_start=range_start,
            range_end=range_end,
            is_set=bool(data.get("isSet")),
            toggle_count=toggle_count,
            name=data.get("name"),
            rate=float(rate) if rate not in (None, "") else None,
        )


@dataclass(frozen=True)
class BetLine:
    bet_type: BetType
    number: str
    count: int
    name: Optional[str] = None
    rate: Optional[float] = None

    @property
    def key(self):
        return (self.bet_type, self.number)

    @property
    def label(self):
        return f"{self.bet_type.value}-{self.number}"


def range_width(toggle_count):
    if toggle_count == 1:
        return 1
    if toggle_count == 2:
        return 2
    return 3


def digit_permutations(number):
    """Distinct digit permutations of ``number``, sorted."""
    if len(number) <= 1:
        return [number]
    return sorted({"".join(p) for p in permutations(number)})


def _check_number(bet_type, number):
    width = number_width(bet_type)
    if not number.isdigit() or len(number) != width:
        raise ValidationError(f"{bet_type.value} needs a {width}-digit number, got {number!r}")


def expand_line(raw):
    if raw.range_start is not None:
        if raw.range_start > raw.range_end:
            raise ValidationError(f"Range start {raw.range_start} is after end {raw.range_end}")
        width = range_width(raw.toggle_count)
        numbers = [str(i).zfill(width) for i in range(raw.range_start, raw.range_end + 1)]
    else:
        numbers = [raw.number]

    if raw.is_set:
        numbers = [p for n in numbers for p in digit_permutations(n)]

    lines = []
    for number in numbers:
        _check_number(raw.bet_type, number)
        lines.append(BetLine(raw.bet_type, number, raw.count, raw.name, raw.rate))
    return lines


def expand(raw_lines):
    """Flatten raw lines into concrete per-number bet lines, preserving input order."""
    lines = []
    for raw in raw_lines:
        lines.extend(expand_line(raw))
    return lines
