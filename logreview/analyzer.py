"""
Main LogReviewer class that orchestrates all modules
"""

import logging
import os
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence

import numpy as np

from .advisory import ADVISORY_FALLBACK, AdvisoryClient, build_observations
from .channels import Channels, resolve_column
from .checklist import render_checklist
from .config import ReviewConfig, SpeedBand
from .data_loader import LogLayout, TelemetryTable, parse_log
from .dyno import DynoFailure, DynoResult, DynoSynthesizer
from .errors import DownstreamUnavailable, ParseError
from .interval_finder import IntervalFinder
from .metric_extractor import MetricExtractor, MetricsReport
from .storage import RunStore, build_run_payload
from .wot_detector import WotDetector, WotWindow

logger = logging.getLogger(__name__)

SPLIT_MARKER = '===SPLIT==='
DEFAULT_DETAIL_INTERVAL = '60-130'

# Columns the advisory sample is built from
AI_REQUIRED_COLUMNS = (Channels.KNOCK_RETARD, Channels.RPM, Channels.AIRMASS)


@dataclass
class ReviewResult:
    """Everything produced for one uploaded log"""
    summary_text: str
    metrics: MetricsReport
    dyno: Optional[DynoResult]
    advisory: str = ADVISORY_FALLBACK
    advisory_available: bool = False
    graphs: Dict[str, List[float]] = field(default_factory=dict)
    ai_eligible: bool = False
    windows: List[WotWindow] = field(default_factory=list)

    def combined_text(self) -> str:
        return f"{self.summary_text}{SPLIT_MARKER}{self.advisory}"

    def to_dict(self) -> Dict:
        return {
            'summaryText': self.summary_text,
            'metrics': self.metrics.to_dict(),
            'graphs': self.graphs,
            'dyno': None if self.dyno is None else self.dyno.to_dict(),
            'advisory': self.advisory,
            'advisoryAvailable': self.advisory_available,
            'aiEligible': self.ai_eligible,
            'wotWindows': [
                {'startIdx': w.start_idx, 'endIdx': w.end_idx, 'startTime': w.start_time, 'endTime': w.end_time}
                for w in self.windows
            ],
        }


@contextmanager
def uploaded_file(path: str) -> Iterator[str]:
    """Yield an uploaded temp file and delete it however the block exits"""
    try:
        yield path
    finally:
        try:
            os.remove(path)
        except OSError as e:
            logger.warning("Could not remove temp upload %s: %s", path, e)


def _read_text(path: str) -> str:
    try:
        with open(path, 'r', encoding='utf-8', errors='replace') as f:
            return f.read()
    except OSError as e:
        raise ParseError(f"Error reading CSV file {path}: {e}")


class LogReviewer:
    """Runs the parse, metrics, checklist, dyno and advisory pipeline for a log"""

    def __init__(self, config: Optional[ReviewConfig] = None,
                 advisory_client: Optional[AdvisoryClient] = None,
                 layout: LogLayout = LogLayout.DYNAMIC):
        self.config = config or ReviewConfig()
        self.advisory_client = advisory_client
        self.layout = layout

        # Initialize sub-modules
        self.wot_detector = WotDetector(self.config.wot_threshold)
        self.metric_extractor = MetricExtractor(self.config)
        self.dyno_synthesizer = DynoSynthesizer(self.config)
        self.interval_finder = IntervalFinder(self.config.wot_threshold, self.config.stop_speed)

    def analyze(self, table: TelemetryTable, weight_lb: Optional[float] = None,
                include_dyno: bool = True) -> ReviewResult:
        """Local analysis only; no advisory call"""
        windows = self.wot_detector.find_windows(table)
        report = self.metric_extractor.extract(table, windows)
        summary = render_checklist(report, self.config)
        dyno = self.dyno_synthesizer.from_table(table, weight_lb) if include_dyno else None

        return ReviewResult(
            summary_text=summary,
            metrics=report,
            dyno=dyno,
            graphs=self._graphs(table),
            ai_eligible=all(table.has_column(c) for c in AI_REQUIRED_COLUMNS),
            windows=windows,
        )

    def review(self, content: str, weight_lb: Optional[float] = None,
               meta: Optional[Dict[str, str]] = None, layout: Optional[LogLayout] = None,
               include_dyno: bool = True) -> ReviewResult:
        """
        Full review of raw CSV text

        Args:
            content: Whole CSV export
            weight_lb: Vehicle weight for an absolute dyno curve
            meta: Vehicle metadata handed to the advisory generator
            layout: Overrides the reviewer's default layout

        Returns:
            ReviewResult; advisory text falls back when the generator is down

        Raises:
            ParseError: the log could not be parsed
        """
        table = parse_log(content, layout or self.layout)
        result = self.analyze(table, weight_lb, include_dyno)

        if self.advisory_client is None:
            logger.info("No advisory generator configured; skipping advisory")
        elif not result.ai_eligible:
            logger.info("Log lacks knock/RPM/airmass columns; skipping advisory")
        else:
            payload = build_observations(result.summary_text, table, self.config.ai_sample_stride)
            try:
                result.advisory = self.advisory_client.generate(payload['observations'], meta)
                result.advisory_available = True
            except DownstreamUnavailable as e:
                logger.warning("Advisory unavailable: %s", e)

        return result

    def review_upload(self, path: str, **kwargs) -> ReviewResult:
        """Review an uploaded temp file, removing it afterwards"""
        with uploaded_file(path):
            return self.review(_read_text(path), **kwargs)

    def overlay(self, paths: Sequence[str], labels: Optional[Sequence[str]] = None,
                layout: LogLayout = LogLayout.FIXED_OFFSET) -> List[Dict]:
        """
        Speed vs time series for side by side comparison of logs

        Each file is read with ``layout`` (fixed by default) and quote-aware
        splitting.         Speed and time columns are found by exact name first, then loosely.

        Raises:
            ParseError: a file is unreadable or lacks speed/time columns
        """
        series = []
        for i, path in enumerate(paths):
            label = labels[i] if labels and i < len(labels) else os.path.basename(path) or f"Run {i + 1}"
            table = parse_log(_read_text(path), layout, quoted=True)

            speed_col = resolve_column(table.headers, Channels.SPEED, Channels.SPEED_PATTERN)
            time_col = resolve_column(table.headers, Channels.TIME, Channels.TIME_PATTERN)
            if speed_col is None or time_col is None:
                raise ParseError(
                    f'Required columns not found. Need "{Channels.SPEED}" and "{Channels.TIME}". '
                    f"First headers: {', '.join(table.headers[:10])}"
                )

            time, speed = table.numeric(time_col), table.numeric(speed_col)
            keep = ~(np.isnan(time) | np.isnan(speed))
            points = [{'t': float(t), 'v': float(v)} for t, v in zip(time[keep], speed[keep])]
            series.append({'label': label, 'points': points})
            logger.info("Overlay series %s: %d points", label, len(points))
        return series

    def overlay_uploads(self, paths: Sequence[str], labels: Optional[Sequence[str]] = None,
                        layout: LogLayout = LogLayout.FIXED_OFFSET) -> List[Dict]:
        """:meth:`overlay` for temp uploads, which are removed afterwards"""
        with ExitStack() as stack:
            for path in paths:
                stack.enter_context(uploaded_file(path))
            return self.overlay(paths, labels, layout)

    def run_detail(self, content: str, interval: str = DEFAULT_DETAIL_INTERVAL,
                   layout: LogLayout = LogLayout.FIXED_OFFSET) -> Dict:
        """
        Best pull for a stored run with its speed trace

        Stored logs use the fixed layout by default and are timed without a
        WOT gate.
        Unknown interval labels fall back to 60-130.
        """
        try:
            band = SpeedBand.from_label(interval)
        except ValueError:
            logger.debug("Unknown interval %r; using %s", interval, DEFAULT_DETAIL_INTERVAL)
            band = SpeedBand.from_label(DEFAULT_DETAIL_INTERVAL)

        table = parse_log(content, layout)
        if not (table.has_column(Channels.SPEED) and table.has_column(Channels.TIME)):
            raise ParseError(f"Required columns missing ({Channels.SPEED}, {Channels.TIME}).")

        speed, time = table.numeric(Channels.SPEED), table.numeric(Channels.TIME)
        best = self.interval_finder.best_interval(speed, time, band)
        if best is None:
            return {'interval': band.label, 'timeSeconds': None, 'trace': []}
        return {
            'interval': band.label,
            'timeSeconds': round(best.duration, 3),
            'trace': best.trace(speed, time),
        }

    def save_run(self, store: RunStore, content: str, vehicle_info: Optional[Dict] = None,
                 interval: Optional[str] = None, time_seconds: Optional[float] = None,
                 consented: bool = False, log_path: Optional[str] = None) -> Dict:
        """
        Store a run for the leaderboard

        Raises:
            ParseError: the log could not be parsed
            StorageError: the insert failed after retries
        """
        table = parse_log(content, LogLayout.FIXED_OFFSET)
        payload = build_run_payload(table, vehicle_info, interval, time_seconds, consented, log_path,
                                    self.config.ai_sample_stride)
        return store.save(payload)

    @staticmethod
    def _graphs(table: TelemetryTable) -> Dict[str, List[float]]:
        if not (table.has_column(Channels.TIME) and table.has_column(Channels.SPEED)):
            return {'time': [], 'speed': []}
        time, speed = table.numeric(Channels.TIME), table.numeric(Channels.SPEED)
        keep = ~(np.isnan(time) | np.isnan(speed))
        return {'time': time[keep].tolist(), 'speed': speed[keep].tolist()}

    def generate_report(self, result: ReviewResult) -> str:
        """Plain text report of a review"""
        report = ["Datalog Review", "=" * 40, "", result.summary_text, ""]

        dyno = result.dyno
        if isinstance(dyno, DynoFailure):
            report.append(f"Dyno: {dyno.error}")
        elif dyno is not None and dyno.peak_hp is not None:
            start, end = dyno.sweep
            report.extend([
                f"Dyno ({'relative score' if dyno.is_relative else 'estimated'}), sweep rows {start}-{end}:",
                f"  Peak Power:  {dyno.peak_hp.value:.1f} {dyno.units} @ {dyno.peak_hp.rpm:.0f} RPM",
            ])
            if dyno.peak_torque is not None:
                unit = dyno.units if dyno.is_relative else 'lb-ft'
                report.append(f"  Peak Torque: {dyno.peak_torque.value:.1f} {unit} @ {dyno.peak_torque.rpm:.0f} RPM")

        report.extend(["", "AI Review:", result.advisory])
        return "\n".join(report)
