import pytest

from remote_matches.errors import InvalidMatchSettings, InvalidVisit
from remote_matches.services.matches.scoring import (
    Dart,
    get_rules,
    parse_darts,
    score_visit,
    suggest_checkout,
)


def darts(*pairs):
    return [Dart(base, mult) for base, mult in pairs]


def test_dart_labels_and_totals():
    assert Dart(20, 3).label == 'T20'
    assert Dart(20, 3).total == 60
    assert Dart(16, 2).label == 'D16'
    assert Dart(25, 2).label == 'Bull'
    assert Dart(25, 2).is_double
    assert Dart(25, 1).label == '25'
    assert Dart(0, 0).label == 'Miss'
    assert Dart(0, 0).total == 0


def test_parse_darts_accepts_misses_and_rejects_bad_input():
    parsed = parse_darts([{'base_value': 20, 'multiplier': 3}, {'miss': True}])
    assert [d.total for d in parsed] == [60, 0]
    assert parsed[1].is_miss

    with pytest.raises(InvalidVisit):
        parse_darts([{'base_value': 20, 'multiplier': 3}] * 4)
    with pytest.raises(InvalidVisit):
        parse_darts([{'base_value': 21, 'multiplier': 1}])
    with pytest.raises(InvalidVisit):
        parse_darts([{'base_value': 25, 'multiplier': 3}])
    with pytest.raises(InvalidVisit):
        parse_darts('T20')


def test_unknown_variant_is_rejected():
    with pytest.raises(InvalidMatchSettings):
        get_rules('cricket')


def test_plain_visit_subtracts():
    outcome = score_visit(get_rules('501'), 501, darts((20, 3), (20, 3), (20, 3)))
    assert outcome.total == 180
    assert outcome.score_after == 321
    assert not outcome.is_bust
    assert not outcome.is_checkout


def test_overshoot_is_bust_and_keeps_score():
    outcome = score_visit(get_rules('301'), 40, darts((20, 3)))
    assert outcome.is_bust
    assert outcome.score_after == 40
    assert outcome.total == 60


def test_leaving_one_is_bust():
    outcome = score_visit(get_rules('301'), 41, darts((20, 2)))
    assert outcome.is_bust
    assert outcome.score_after == 41


def test_zero_without_double_is_bust():
    outcome = score_visit(get_rules('301'), 40, darts((20, 1), (20, 1)))
    assert outcome.is_bust
    assert outcome.score_after == 40


def test_double_out_checks_out():
    outcome = score_visit(get_rules('301'), 40, darts((20, 2)))
    assert outcome.is_checkout
    assert outcome.score_after == 0


def test_bull_counts_as_double_finish():
    outcome = score_visit(get_rules('501'), 50, darts((25, 2)))
    assert outcome.is_checkout


def test_bust_on_first_dart_ends_visit():
    outcome = score_visit(get_rules('301'), 32, darts((20, 3), (16, 2)))
    assert outcome.is_bust
    assert outcome.score_after == 32


def test_darts_after_checkout_are_rejected():
    with pytest.raises(InvalidVisit):
        score_visit(get_rules('301'), 40, darts((20, 2), (1, 1)))


@pytest.mark.parametrize('score,route', [
    (170, ['T20', 'T20', 'Bull']),
    (100, ['T20', 'D20']),
    (50, ['Bull']),
    (40, ['D20']),
    (2, ['D1']),
])
def test_checkout_hints(score, route):
    assert suggest_checkout(score) == route


@pytest.mark.parametrize('score', [None, 1, 159, 171, 501])
def test_no_checkout_hint(score):
    assert suggest_checkout(score) is None
