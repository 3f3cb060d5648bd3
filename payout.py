from dataclasses import dataclass, field
from typing import Optional, Tuple

from draws import BetType, parse_bet_type

SUPER_PRIZES = {1: 5000, 2: 500, 3: 250, 4: 100, 5: 50}
SUPER_OTHER = 20
BOX_PAYOUTS = {
    "normal": {"perfect": 3000, "permutation": 800},
    "double": {"perfect": 3800, "permutation": 1600},
}
PAIR_PAYOUT = 700       # AB, BC, AC
SINGLE_PAYOUT = 100     # A, B, C

# digits of the first prize each partial bet type looks at
_SLICES = {
    BetType.AB: (0, 1),
    BetType.BC: (1, 2),
    BetType.AC: (0, 2),
    BetType.A: (0,),
    BetType.B: (1,),
    BetType.C: (2,),
}


@dataclass(frozen=True)
class DrawOutcome:
    """Published result of one draw on one date."""
    prizes: Tuple[Optional[str], ...] = (None, None, None, None, None)
    others: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_result(cls, result):
        prizes = list(result.prizes or [])[:5]
        prizes += [None] * (5 - len(prizes))
        return cls(tuple(p or None for p in prizes), tuple(o for o in (result.others or []) if o))

    @property
    def first(self):
        return self.prizes[0]

    def position_of(self, number):
        for pos, prize in enumerate(self.prizes, start=1):
            if prize is not None and prize == number:
                return pos
        return None


@dataclass(frozen=True)
class Score:
    win_amount: int = 0
    win_type: str = ""


NO_WIN = Score()


def is_double(number):
    return len(set(number)) == 2


def _score_super(number, count, outcome):
    pos = outcome.position_of(number)
    if pos is not None:
        return Score(SUPER_PRIZES[pos] * count, f"SUPER {pos}")
    if number in outcome.others:
        return Score(SUPER_OTHER * count, "SUPER other")
    return NO_WIN


def _score_box(number, count, first):
    kind = "double" if is_double(first) else "normal"
    prefix = "BOX double" if kind == "double" else "BOX"
    if number == first:
        return Score(BOX_PAYOUTS[kind]["perfect"] * count, f"{prefix} perfect")
    if sorted(number) == sorted(first):
        return Score(BOX_PAYOUTS[kind]["permutation"] * count, f"{prefix} permutation")
    return NO_WIN


def score(bet_type, number, count, outcome):
    """Win amount and label for one bet line against a published outcome."""
    if outcome is None or not outcome.first:
        return NO_WIN
    if bet_type == BetType.SUPER:
        return _score_super(number, count, outcome)
    first = outcome.first
    if bet_type == BetType.BOX:
        return _score_box(number, count, first)

    positions = _SLICES[bet_type]
    if len(first) <= max(positions):
        return NO_WIN
    if number == "".join(first[i] for i in positions):
        unit = PAIR_PAYOUT if len(positions) == 2 else SINGLE_PAYOUT
        return Score(unit * count, bet_type.value)
    return NO_WIN


class PayoutEngine:
    def score(self, entry, outcome):
        return score(parse_bet_type(entry.bet_type), entry.number, entry.count or 0, outcome)
