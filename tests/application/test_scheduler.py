from datetime import datetime, timedelta, timezone

import pytest

from cadence.application.scheduler import (
    as_utc,
    compute_next,
    days_until_review,
    initial_state,
    is_due,
    preview,
    round_half_up,
    to_quality_rating,
)
from cadence.domain.errors import InvalidInput
from cadence.domain.models import QualityRating, SchedulingState, SimpleQuality

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

STATES = [
    SchedulingState(),
    SchedulingState(ease_factor=1.3, interval=1, repetitions=1),
    SchedulingState(ease_factor=1.7, interval=6, repetitions=2),
    SchedulingState(ease_factor=2.5, interval=15, repetitions=3),
    SchedulingState(ease_factor=3.1, interval=120, repetitions=9),
]


# --- Ease factor formula ---


@pytest.mark.parametrize(
    "rating, expected_ef",
    [
        (5, 2.6),
        (4, 2.5),
        (3, 2.36),
        (2, 2.18),
        (1, 1.96),
    ],
)
def test_ease_factor_per_rating_from_default(rating, expected_ef):
    result = compute_next(rating, SchedulingState(), now=T0)
    assert result.ease_factor == pytest.approx(expected_ef)


@pytest.mark.parametrize(
    "rating, expected_ef",
    [
        (5, 1.4),
        (4, 1.3),
        (3, 1.3),  # 1.16 clamped
        (1, 1.3),  # 0.76 clamped
    ],
)
def test_ease_factor_clamped_at_floor(rating, expected_ef):
    state = SchedulingState(ease_factor=1.3, interval=6, repetitions=2)
    result = compute_next(rating, state, now=T0)
    assert result.ease_factor == pytest.approx(expected_ef)
    assert result.ease_factor >= 1.3


@pytest.mark.parametrize("state", STATES)
def test_monotonicity(state):
    perfect = compute_next(5, state, now=T0)
    forgot = compute_next(1, state, now=T0)

    assert perfect.ease_factor >= state.ease_factor
    assert forgot.ease_factor <= state.ease_factor
    assert perfect.ease_factor >= 1.3
    assert forgot.ease_factor >= 1.3


# --- Intervals ---


@pytest.mark.parametrize("state", STATES)
@pytest.mark.parametrize("rating", [1, 2])
def test_lapse_resets_repetitions_and_interval(state, rating):
    result = compute_next(rating, state, now=T0)
    assert result.repetitions == 0
    assert result.interval == 1
    assert result.next_review_at == T0 + timedelta(days=1)


def test_first_two_successes():
    first = compute_next(4, SchedulingState(ease_factor=2.5, interval=0, repetitions=0), now=T0)
    assert (first.repetitions, first.interval) == (1, 1)

    second = compute_next(4, first, now=T0)
    assert (second.repetitions, second.interval) == (2, 6)


def test_third_success_multiplies_interval():
    state = SchedulingState(ease_factor=2.5, interval=6, repetitions=2)

    result = compute_next(4, state, now=T0)

    assert result.repetitions == 3
    assert result.interval == 15
    assert result.ease_factor == pytest.approx(2.5)
    assert result.next_review_at == T0 + timedelta(days=15)


def test_lapse_scenario_from_established_item():
    state = SchedulingState(ease_factor=2.5, interval=6, repetitions=2)

    result = compute_next(1, state, now=T0)

    assert result.repetitions == 0
    assert result.interval == 1
    assert result.ease_factor == pytest.approx(2.5 + (0.1 - 4 * (0.08 + 4 * 0.02)))
    assert result.ease_factor >= 1.3


def test_interval_uses_ease_factor_before_update():
    # rating 3 lowers EF to 2.36, but the interval grows by the prior 2.5
    state = SchedulingState(ease_factor=2.5, interval=6, repetitions=2)
    result = compute_next(3, state, now=T0)
    assert result.interval == 15


def test_interval_rounds_half_away_from_zero():
    # 2 * 2.25 == 4.5 exactly; banker's rounding would give 4
    state = SchedulingState(ease_factor=2.25, interval=2, repetitions=2)
    assert compute_next(5, state, now=T0).interval == 5


@pytest.mark.parametrize(
    "value, expected",
    [(0.5, 1), (1.5, 2), (2.5, 3), (2.4999, 2), (14.0, 14), (-2.5, -3)],
)
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


def test_determinism():
    state = SchedulingState(ease_factor=2.1, interval=9, repetitions=4)
    assert compute_next(3, state, now=T0) == compute_next(3, state, now=T0)


def test_accepts_progress_record(make_progress):
    record = make_progress("hola", T0, ease_factor=2.5, interval=6, repetitions=2)
    assert compute_next(QualityRating.EASY, record, now=T0).interval == 15


# --- Rating contracts ---


@pytest.mark.parametrize(
    "value, expected",
    [
        ("forgot", QualityRating.FORGOT),
        ("remembered", QualityRating.GOOD),
        ("easy", QualityRating.PERFECT),
        (" Easy ", QualityRating.PERFECT),
        (SimpleQuality.REMEMBERED, QualityRating.GOOD),
        (QualityRating.HARD, QualityRating.HARD),
        (4, QualityRating.EASY),
    ],
)
def test_to_quality_rating(value, expected):
    assert to_quality_rating(value) is expected


def test_simple_and_numeric_contracts_schedule_identically():
    state = SchedulingState(ease_factor=2.5, interval=6, repetitions=2)
    assert compute_next("remembered", state, now=T0) == compute_next(3, state, now=T0)
    assert compute_next("easy", state, now=T0) == compute_next(5, state, now=T0)


@pytest.mark.parametrize("rating", [0, 6, -1, True, 3.0, "great", None])
def test_invalid_rating(rating):
    with pytest.raises(InvalidInput):
        compute_next(rating, SchedulingState(), now=T0)


@pytest.mark.parametrize(
    "state",
    [
        SchedulingState(ease_factor=1.29),
        SchedulingState(ease_factor=float("nan")),
        SchedulingState(interval=-1),
        SchedulingState(repetitions=-1),
        SchedulingState(interval=1.5),
        SchedulingState(repetitions=True),
    ],
)
def test_invalid_state_is_not_repaired(state):
    with pytest.raises(InvalidInput):
        compute_next(3, state, now=T0)


def test_invalid_input_is_a_value_error():
    with pytest.raises(ValueError):
        compute_next(9, SchedulingState(), now=T0)


# --- Helpers ---


def test_initial_state_is_due_immediately():
    state = initial_state(T0)
    assert (state.ease_factor, state.interval, state.repetitions) == (2.5, 0, 0)
    assert is_due(state.next_review_at, T0)


def test_preview_covers_every_rating():
    state = SchedulingState(ease_factor=2.5, interval=6, repetitions=2)
    results = preview(state, T0)

    assert set(results) == set(QualityRating)
    assert results[QualityRating.EASY].interval == 15
    assert results[QualityRating.FORGOT].interval == 1
    for quality, result in results.items():
        assert result == compute_next(quality, state, now=T0)


def test_is_due_and_days_until_review():
    assert is_due(T0, T0)
    assert not is_due(T0 + timedelta(seconds=1), T0)
    assert days_until_review(T0 + timedelta(hours=36), T0) == 2
    assert days_until_review(T0 - timedelta(hours=36), T0) == -1
    assert days_until_review(T0, T0) == 0


def test_naive_times_are_read_as_utc():
    naive = datetime(2024, 3, 1, 9, 0)

    assert as_utc(naive) == T0
    assert as_utc(naive).tzinfo is not None
    assert is_due(T0, naive)
    assert days_until_review(naive + timedelta(days=2), T0) == 2
    assert compute_next(4, SchedulingState(), now=naive).next_review_at == T0 + timedelta(days=1)


def test_as_utc_converts_other_zones():
    plus_two = timezone(timedelta(hours=2))
    converted = as_utc(datetime(2024, 3, 1, 11, 0, tzinfo=plus_two))
    assert converted == T0
    assert converted.utcoffset() == timedelta(0)
