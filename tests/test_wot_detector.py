import numpy as np

from logreview.channels import Channels
from logreview.data_loader import TelemetryTable
from logreview.wot_detector import WotDetector, WotWindow, contiguous_runs


def _table(accelerator, throttle=None):
    headers = [Channels.TIME, Channels.ACCELERATOR]
    columns = [[i * 0.1 for i in range(len(accelerator))], accelerator]
    if throttle is not None:
        headers.append(Channels.THROTTLE)
        columns.append(throttle)
    return TelemetryTable.from_rows(headers, list(zip(*columns)))


def test_threshold_is_strict():
    table = _table([80, 86, 86.01, 90], [100, 100, 100, 100])
    assert WotDetector().wot_mask(table).tolist() == [False, False, True, True]


def test_throttle_blade_must_also_be_open():
    table = _table([100, 100, 100], [100, 50, None])
    assert WotDetector().wot_mask(table).tolist() == [True, False, False]


def test_missing_throttle_column_uses_pedal_only():
    assert WotDetector().wot_mask(_table([100, 10, 99])).tolist() == [True, False, True]


def test_missing_pedal_column_means_no_wot():
    table = TelemetryTable.from_rows([Channels.TIME, Channels.THROTTLE], [[0.0, 100.0]])
    assert WotDetector().find_windows(table) == []


def test_windows_are_maximal_and_ordered():
    table = _table([80, 87, 90, 50, 99, 99, 99], [100] * 7)
    windows = WotDetector().find_windows(table)
    assert [(w.start_idx, w.end_idx) for w in windows] == [(1, 2), (4, 6)]
    assert windows[1].start_time == 0.4
    assert windows[1].length == 3

    mask = WotDetector().wot_mask(table)
    for w in windows:
        assert mask[w.start_idx:w.end_idx + 1].all()
        assert w.start_idx == 0 or not mask[w.start_idx - 1]
        assert w.end_idx == len(mask) - 1 or not mask[w.end_idx + 1]


def test_absent_pedal_breaks_a_window():
    windows = WotDetector().find_windows(_table([100, None, 100]))
    assert [(w.start_idx, w.end_idx) for w in windows] == [(0, 0), (2, 2)]


def test_window_mask_round_trip():
    table = _table([0, 100, 100, 0, 100])
    windows = WotDetector().find_windows(table)
    assert WotDetector.window_mask(table, windows).tolist() == WotDetector().wot_mask(table).tolist()


def test_contiguous_runs():
    runs = contiguous_runs(np.array([True, True, False, True]))
    assert [(r.start, r.stop) for r in runs] == [(0, 2), (3, 4)]
    assert contiguous_runs(np.zeros(3, dtype=bool)) == []


def test_custom_threshold():
    table = _table([70, 75, 80])
    windows = WotDetector(threshold=72).find_windows(table)
    assert windows == [WotWindow(1, 2, 0.1, 0.2)]
