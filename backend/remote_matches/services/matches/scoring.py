"""Dart values, per-variant win/bust rules and checkout hints.

Nothing here touches the database. The lifecycle service hands in the score
it already holds plus the submitted darts and gets back a VisitOutcome; the
client never supplies a score delta.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from remote_matches.errors import InvalidMatchSettings, InvalidVisit


BULL = 25
MAX_DARTS_PER_VISIT = 3


@dataclass(frozen=True)
class Dart:
    base_value: int  # 0 for a miss, 1-20 or 25
    multiplier: int = 1

    @property
    def is_miss(self) -> bool:
        return self.base_value == 0

    @property
    def total(self) -> int:
        return 0 if self.is_miss else self.base_value * self.multiplier

    @property
    def is_double(self) -> bool:
        return not self.is_miss and self.multiplier == 2

    @property
    def label(self) -> str:
        if self.is_miss:
            return 'Miss'
        if self.base_value == BULL:
            return 'Bull' if self.multiplier == 2 else '25'
        prefix = {1: '', 2: 'D', 3: 'T'}[self.multiplier]
        return f'{prefix}{self.base_value}'

    @classmethod
    def from_payload(cls, raw) -> 'Dart':
        """Build a dart from ``{"base_value": 20, "multiplier": 3}`` or ``{"miss": true}``."""
        if not isinstance(raw, dict):
            raise InvalidVisit('each dart must be an object')
        if raw.get('miss'):
            return cls(0, 0)
        base = raw.get('base_value')
        multiplier = raw.get('multiplier', 1)
        for value in (base, multiplier):
            if not isinstance(value, int) or isinstance(value, bool):
                raise InvalidVisit('base_value and multiplier must be integers')
        if base == 0:
            return cls(0, 0)
        if not (1 <= base <= 20 or base == BULL):
            raise InvalidVisit(f'invalid base_value {base}')
        if multiplier not in (1, 2, 3) or (base == BULL and multiplier == 3):
            raise InvalidVisit(f'invalid multiplier {multiplier} for {base}')
        return cls(base, multiplier)

    def to_dict(self):
        return {
            'base_value': self.base_value,
            'multiplier': self.multiplier,
            'total': self.total,
            'label': self.label,
        }


def parse_darts(payload) -> List[Dart]:
    if payload is None:
        payload = []
    if not isinstance(payload, list):
        raise InvalidVisit('darts must be a list')
    if len(payload) > MAX_DARTS_PER_VISIT:
        raise InvalidVisit(f'a visit has at most {MAX_DARTS_PER_VISIT} darts')
    return [Dart.from_payload(raw) for raw in payload]


class ScoringRules:
    """Win and bust conditions for one game variant."""

    starting_score = 0

    def is_bust(self, pre_score: int, dart_total: int, final_dart_is_double: bool) -> bool:
        raise NotImplementedError

    def is_win(self, pre_score: int, dart_total: int, final_dart_is_double: bool) -> bool:
        raise NotImplementedError


class CountdownRules(ScoringRules):
    """x01 rules with a double-out finish. Bull (50) counts as a double."""

    def __init__(self, starting_score: int):
        self.starting_score = starting_score

    def is_win(self, pre_score, dart_total, final_dart_is_double):
        return pre_score - dart_total == 0 and final_dart_is_double

    def is_bust(self, pre_score, dart_total, final_dart_is_double):
        remaining = pre_score - dart_total
        if remaining < 0 or remaining == 1:
            return True
        return remaining == 0 and not final_dart_is_double


RULES: Dict[str, ScoringRules] = {
    '301': CountdownRules(301),
    '501': CountdownRules(501),
}


def get_rules(game_variant) -> ScoringRules:
    try:
        return RULES[str(game_variant)]
    except KeyError:
        raise InvalidMatchSettings(f'unsupported game variant {game_variant!r}') from None


@dataclass(frozen=True)
class VisitOutcome:
    darts: Tuple[Dart, ...]
    total: int
    score_before: int
    score_after: int
    is_bust: bool
    is_checkout: bool


def score_visit(rules: ScoringRules, score_before: int, darts: Sequence[Dart]) -> VisitOutcome:
    """Fold darts into a score one at a time.

    The first dart that checks out ends the visit; any dart after it is
    rejected. The first dart that busts leaves the score unchanged, though the
    whole attempt is still reported.
    """
    darts = tuple(darts)
    attempted = sum(d.total for d in darts)
    running = 0
    for idx, dart in enumerate(darts):
        running += dart.total
        if rules.is_win(score_before, running, dart.is_double):
            if idx != len(darts) - 1:
                raise InvalidVisit('no darts may follow a checkout')
            return VisitOutcome(darts, attempted, score_before, 0, False, True)
        if rules.is_bust(score_before, running, dart.is_double):
            return VisitOutcome(darts, attempted, score_before, score_before, True, False)
    return VisitOutcome(darts, attempted, score_before, score_before - running, False, False)


# ---- Checkout hints ----

def _single_dart_labels() -> Dict[int, str]:
    labels: Dict[int, str] = {}
    for n in range(1, 21):
        labels.setdefault(n, str(n))
    labels.setdefault(BULL, '25')
    for n in range(20, 0, -1):
        labels.setdefault(n * 3, f'T{n}')
    for n in range(20, 0, -1):
        labels.setdefault(n * 2, f'D{n}')
    labels.setdefault(2 * BULL, 'Bull')
    return labels


_SETUP_LABELS = _single_dart_labels()
# Preferred finishing doubles, most favoured first
_FINISHES: List[Tuple[int, str]] = [
    (v * 2, f'D{v}') for v in (20, 16, 18, 12, 10, 8, 19, 17, 15, 14, 13, 11, 9, 7, 6, 5, 4, 3, 2, 1)
] + [(2 * BULL, 'Bull')]
_FINISH_LABELS = dict(_FINISHES)


def suggest_checkout(score: Optional[int], darts: int = MAX_DARTS_PER_VISIT) -> Optional[List[str]]:
    """Return the fewest-dart double-out route for ``score``, or None.

    Only scores 2-170 can be finished in one visit; a handful inside that
    range (159, 162, 163, 165, 166, 168, 169) have no finish at all.
    """
    if score is None or score < 2 or score > 170:
        return None
    for used in range(1, darts + 1):
        if used == 1:
            if score in _FINISH_LABELS:
                return [_FINISH_LABELS[score]]
            continue
        for double, label in _FINISHES:
            remaining = score - double
            if used == 2 and remaining in _SETUP_LABELS:
                return [_SETUP_LABELS[remaining], label]
            if used == 3:
                for value in sorted(_SETUP_LABELS, reverse=True):
                    second = remaining - value
                    if second in _SETUP_LABELS:
                        return [_SETUP_LABELS[value], _SETUP_LABELS[second], label]
    return None
