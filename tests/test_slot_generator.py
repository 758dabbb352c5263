from datetime import date, time

import pytest

from sellio.domain.slots.generator import (
    SlotGenerationError,
    build_batch,
    build_recurring,
    dashboard_weekday,
    recurring_dates,
    single_slot,
    tile_window,
)

# A Sunday
TODAY = date(2031, 3, 9)


def test_dashboard_weekday_counts_from_sunday():
    assert dashboard_weekday(date(2031, 3, 9)) == 0  # Sunday
    assert dashboard_weekday(date(2031, 3, 10)) == 1  # Monday
    assert dashboard_weekday(date(2031, 3, 15)) == 6  # Saturday


def test_recurring_mon_wed_fri_two_weeks_gives_eighteen_slots():
    specs = build_recurring([1, 3, 5], 2, time(9, 0), time(12, 0), 60, today=TODAY)

    assert len(specs) == 18
    assert {s.slot_date.weekday() for s in specs} == {0, 2, 4}
    assert {(s.start_time, s.end_time) for s in specs} == {
        (time(9, 0), time(10, 0)),
        (time(10, 0), time(11, 0)),
        (time(11, 0), time(12, 0)),
    }
    row = specs[0].as_row(product_id=7, creator_id=3)
    assert row["max_bookings"] == 1
    assert row["current_bookings"] == 0


def test_recurring_excludes_today():
    # TODAY is a Sunday; selecting Sunday only yields the next two Sundays
    dates = recurring_dates([0], 2, today=TODAY)
    assert dates == [date(2031, 3, 16), date(2031, 3, 23)]


def test_last_tile_overshooting_by_one_minute_is_dropped():
    tiles = tile_window(time(9, 0), time(10, 59), 60)
    assert tiles == [(time(9, 0), time(10, 0))]


def test_tile_ending_exactly_on_window_end_is_kept():
    tiles = tile_window(time(9, 0), time(11, 0), 60)
    assert tiles[-1] == (time(10, 0), time(11, 0))


def test_tiles_do_not_overlap():
    tiles = tile_window(time(8, 0), time(17, 0), 45)
    for (_, prev_end), (next_start, _) in zip(tiles, tiles[1:]):
        assert prev_end == next_start


def test_single_slot_end_comes_from_duration():
    spec = single_slot(date(2031, 3, 10), time(16, 0), 60)
    assert spec.end_time == time(17, 0)


def test_single_slot_explicit_end_overrides_duration():
    spec = single_slot(date(2031, 3, 10), time(16, 0), 60, end=time(16, 30))
    assert spec.end_time == time(16, 30)


@pytest.mark.parametrize(
    "start,end",
    [(time(10, 0), time(10, 0)), (time(11, 0), time(10, 0))],
)
def test_window_must_end_after_start(start, end):
    with pytest.raises(SlotGenerationError):
        build_batch(date(2031, 3, 10), start, end, 30)


def test_window_shorter_than_one_slot_is_rejected():
    with pytest.raises(SlotGenerationError):
        build_batch(date(2031, 3, 10), time(9, 0), time(9, 30), 60)


def test_single_slot_may_not_cross_midnight():
    with pytest.raises(SlotGenerationError):
        single_slot(date(2031, 3, 10), time(23, 30), 60)


@pytest.mark.parametrize(
    "weekdays,weeks",
    [([], 2), ([1], 0), ([1], 13), ([7], 1), ([-1], 1)],
)
def test_invalid_recurrence_is_rejected(weekdays, weeks):
    with pytest.raises(SlotGenerationError):
        recurring_dates(weekdays, weeks, today=TODAY)


def test_zero_duration_is_rejected():
    with pytest.raises(SlotGenerationError):
        tile_window(time(9, 0), time(12, 0), 0)
