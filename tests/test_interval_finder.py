import pytest

from logreview.config import SpeedBand
from logreview.data_loader import TelemetryTable
from logreview.interval_finder import IntervalFinder

from conftest import PULL_HEADERS, pull_rows

ZERO_SIXTY = SpeedBand.from_label('0-60')
ZERO_SEVENTY = SpeedBand.from_label('0-70')


def _columns(accelerator=100.0):
    table = TelemetryTable.from_rows(PULL_HEADERS, pull_rows(accelerator))
    return table.values('Vehicle Speed (SAE)'), table.values('Offset'), table.values('Accelerator Position D (SAE)')


def test_zero_to_sixty_on_linear_pull():
    speed, time, accel = _columns()
    finder = IntervalFinder()
    best = finder.best_interval(speed, time, ZERO_SIXTY, accel)
    # Launch at 2.8 mph (t=0.7), 60.2 mph at t=4.8
    assert best.duration == pytest.approx(4.1)
    to_seventy = finder.best_interval(speed, time, ZERO_SEVENTY, accel)
    assert best.duration <= to_seventy.duration


def test_no_interval_without_wot():
    speed, time, accel = _columns(accelerator=50.0)
    assert IntervalFinder().best_interval(speed, time, ZERO_SIXTY, accel) is None


def test_ungated_when_no_accelerator():
    speed, time, _ = _columns(accelerator=50.0)
    assert IntervalFinder().best_interval(speed, time, ZERO_SIXTY) is not None


def test_rolling_band_needs_start_inside_band():
    speed = [30, 45, 60, 80, 100]
    time = [0, 1, 2, 3, 4]
    best = IntervalFinder().best_interval(speed, time, SpeedBand.from_label('40-100'))
    assert (best.start_time, best.end_time, best.duration) == (1, 4, 3)


def test_from_stop_band_requires_a_stop():
    speed = [20, 30, 50, 70]
    time = [0, 1, 2, 3]
    assert IntervalFinder().best_interval(speed, time, ZERO_SIXTY) is None


def test_best_of_several_pulls():
    speed = [0, 5, 65, 0, 5, 30, 61]
    time = [0, 1, 3, 10, 11, 12, 15]
    finder = IntervalFinder()
    runs = finder.find_intervals(speed, time, ZERO_SIXTY)
    assert [r.duration for r in runs] == [2, 4]
    assert finder.best_interval(speed, time, ZERO_SIXTY).start_time == 1


def test_absent_samples_are_skipped():
    speed = [0, None, 5, 61]
    time = [0, 1, 2, None]
    assert IntervalFinder().best_interval(speed, time, ZERO_SIXTY) is None


def test_trace_is_time_from_launch():
    speed, time, accel = _columns()
    best = IntervalFinder().best_interval(speed, time, ZERO_SIXTY, accel)
    trace = best.trace(speed, time)
    assert trace[0] == {'x': 0.0, 'y': 2.8}
    assert trace[-1]['y'] >= 60
    assert trace[-1]['x'] == pytest.approx(4.1)


def test_mismatched_lengths_raise():
    with pytest.raises(ValueError):
        IntervalFinder().find_intervals([0, 1], [0], ZERO_SIXTY)


def test_bad_band_label():
    with pytest.raises(ValueError):
        SpeedBand.from_label('60-40')
    with pytest.raises(ValueError):
        SpeedBand.from_label('fast')


def test_wot_reached_past_band_end_is_not_a_launch():
    speed = [0, 0, 10, 30, 50, 70, 72, 75]
    time = [0, 1, 2, 3, 4, 5, 6, 7]
    accel = [0, 0, 30, 30, 30, 30, 100, 100]
    finder = IntervalFinder()
    assert finder.find_intervals(speed, time, ZERO_SIXTY, accel) == []
    assert finder.best_interval(speed, time, ZERO_SIXTY, accel) is None


def test_part_throttle_roll_on_is_not_a_launch():
    speed = [0, 0, 10, 20, 40, 50, 60]
    time = [0, 1, 2, 3, 4, 5, 6]
    accel = [0, 0, 30, 30, 100, 100, 100]
    assert IntervalFinder().best_interval(speed, time, ZERO_SIXTY, accel) is None


def test_first_moving_sample_past_band_end_is_ignored():
    assert IntervalFinder().find_intervals([0, 70, 75], [0, 1, 2], ZERO_SIXTY) == []


def test_lifting_cancels_pending_start():
    speed = [40, 60, 80, 70, 50, 45, 65, 85, 100]
    time = [0, 1, 2, 10, 20, 30, 31, 32, 33]
    accel = [100, 100, 100, 0, 0, 100, 100, 100, 100]
    runs = IntervalFinder().find_intervals(speed, time, SpeedBand.from_label('40-100'), accel)
    assert [(r.start_time, r.duration) for r in runs] == [(30, 3)]


def test_dropping_below_band_start_cancels_pending_start():
    speed = [45, 60, 30, 50, 100]
    time = [0, 1, 2, 3, 4]
    best = IntervalFinder().best_interval(speed, time, SpeedBand.from_label('40-100'))
    assert (best.start_time, best.duration) == (3, 1)


def test_stopping_again_rearms_launch():
    speed = [0, 5, 0.5, 5, 60]
    time = [0, 1, 2, 3, 4]
    runs = IntervalFinder().find_intervals(speed, time, ZERO_SIXTY)
    assert [(r.start_time, r.duration) for r in runs] == [(3, 1)]
