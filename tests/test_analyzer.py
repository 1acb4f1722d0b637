import os

import pytest

from logreview.advisory import ADVISORY_FALLBACK
from logreview.analyzer import SPLIT_MARKER, LogReviewer
from logreview.channels import Channels
from logreview.data_loader import LogLayout
from logreview.dyno import AbsoluteDynoCurve, RelativeDynoCurve
from logreview.errors import DownstreamUnavailable, ParseError
from logreview.storage import FileRunStore

from conftest import PULL_HEADERS, make_fixed_csv, pull_rows


class StubAdvisor:

    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    def generate(self, observations, meta=None):
        self.calls.append((observations, meta))
        if self.error:
            raise self.error
        return self.text


def test_end_to_end_review(pull_csv):
    result = LogReviewer().review(pull_csv)
    assert "No knock detected." in result.summary_text
    assert "Best 0–60 mph: 4.10s" in result.summary_text
    assert "Peak timing under WOT: 24.0° @ 4250 RPM" in result.summary_text
    assert isinstance(result.dyno, RelativeDynoCurve)
    assert result.ai_eligible
    assert result.advisory == ADVISORY_FALLBACK
    assert not result.advisory_available
    assert len(result.windows) == 1


def test_weight_gives_absolute_dyno(pull_csv):
    result = LogReviewer().review(pull_csv, weight_lb=4400)
    assert isinstance(result.dyno, AbsoluteDynoCurve)
    assert result.dyno.peak_hp.value > 0


def test_advisory_text_is_combined(pull_csv):
    advisor = StubAdvisor("Summary\nHealthy pull.")
    result = LogReviewer(advisory_client=advisor).review(pull_csv, meta={'power': 'N/A'})
    assert result.advisory_available
    assert result.combined_text() == f"{result.summary_text}{SPLIT_MARKER}Summary\nHealthy pull."
    observations, meta = advisor.calls[0]
    assert observations.startswith(result.summary_text)
    assert meta == {'power': 'N/A'}


def test_advisory_failure_falls_back(pull_csv):
    advisor = StubAdvisor(error=DownstreamUnavailable("timeout"))
    result = LogReviewer(advisory_client=advisor).review(pull_csv)
    assert result.advisory == ADVISORY_FALLBACK
    assert "No knock detected." in result.summary_text
    assert result.combined_text().endswith(f"{SPLIT_MARKER}{ADVISORY_FALLBACK}")


def test_advisory_skipped_when_columns_missing():
    from conftest import make_dynamic_csv
    advisor = StubAdvisor("never")
    csv_text = make_dynamic_csv([Channels.TIME, Channels.SPEED], [[0, 0], [0.1, 1]])
    result = LogReviewer(advisory_client=advisor).review(csv_text)
    assert not result.ai_eligible
    assert advisor.calls == []


def test_to_dict_shape(pull_csv):
    data = LogReviewer().review(pull_csv).to_dict()
    assert set(data) >= {'summaryText', 'metrics', 'graphs', 'dyno', 'advisory', 'advisoryAvailable', 'aiEligible'}
    assert len(data['graphs']['time']) == len(data['graphs']['speed']) == 56
    assert data['metrics']['zero_to_sixty'] == 4.1


def test_parse_error_propagates():
    with pytest.raises(ParseError):
        LogReviewer().review("not a log")


def test_upload_is_deleted_after_review(tmp_path, pull_csv):
    path = tmp_path / 'upload.csv'
    path.write_text(pull_csv, encoding='utf-8')
    LogReviewer().review_upload(str(path))
    assert not path.exists()


def test_upload_is_deleted_after_parse_error(tmp_path):
    path = tmp_path / 'upload.csv'
    path.write_text("garbage", encoding='utf-8')
    with pytest.raises(ParseError):
        LogReviewer().review_upload(str(path))
    assert not path.exists()


def test_fixed_layout_review(pull_csv_fixed):
    result = LogReviewer(layout=LogLayout.FIXED_OFFSET).review(pull_csv_fixed)
    assert result.metrics.best_intervals['0-60'] == 4.1


def test_overlay_series(tmp_path):
    first = tmp_path / 'a.csv'
    second = tmp_path / 'b.csv'
    first.write_text(make_fixed_csv(PULL_HEADERS, pull_rows(), quote_headers=True), encoding='utf-8')
    second.write_text(make_fixed_csv(['Time (s)', 'Vehicle Speed'], [[0, 1], [1, None], [2, 3]]), encoding='utf-8')

    series = LogReviewer().overlay([str(first), str(second)], labels=['Run 1', 'Run 2'])
    assert [s['label'] for s in series] == ['Run 1', 'Run 2']
    assert len(series[0]['points']) == 56
    assert series[1]['points'] == [{'t': 0.0, 'v': 1.0}, {'t': 2.0, 'v': 3.0}]


def test_overlay_reads_dynamic_exports(tmp_path, pull_csv):
    path = tmp_path / 'a.csv'
    path.write_text(pull_csv, encoding='utf-8')
    series = LogReviewer().overlay([str(path)], layout=LogLayout.DYNAMIC)
    assert len(series[0]['points']) == 56


def test_overlay_missing_columns(tmp_path):
    path = tmp_path / 'c.csv'
    path.write_text(make_fixed_csv(['Engine RPM', 'MAP'], [[1, 2]]), encoding='utf-8')
    with pytest.raises(ParseError, match='First headers'):
        LogReviewer().overlay([str(path)])


def test_overlay_uploads_are_deleted(tmp_path):
    path = tmp_path / 'c.csv'
    path.write_text(make_fixed_csv(['Engine RPM', 'MAP'], [[1, 2]]), encoding='utf-8')
    with pytest.raises(ParseError):
        LogReviewer().overlay_uploads([str(path)])
    assert not os.path.exists(path)


def test_run_detail(pull_csv_fixed):
    detail = LogReviewer().run_detail(pull_csv_fixed, '0-60')
    assert detail['interval'] == '0-60'
    assert detail['timeSeconds'] == pytest.approx(4.1)
    assert detail['trace'][0] == {'x': 0.0, 'y': 2.8}


def test_run_detail_unknown_interval_falls_back(pull_csv_fixed):
    detail = LogReviewer().run_detail(pull_csv_fixed, 'bogus')
    assert detail == {'interval': '60-130', 'timeSeconds': None, 'trace': []}


def test_save_run(tmp_path, pull_csv_fixed):
    store = FileRunStore(str(tmp_path))
    result = LogReviewer().save_run(store, pull_csv_fixed, {'name': 'Sam'}, interval='0-60', time_seconds=4.1)
    assert result['leaderboard'] is True
    assert store.load(result['runId'])['user_alias'] == 'Sam'


def test_text_report(pull_csv):
    reviewer = LogReviewer()
    report = reviewer.generate_report(reviewer.review(pull_csv))
    assert "Datalog Review" in report
    assert "Peak Power:" in report
    assert ADVISORY_FALLBACK in report
