"""
Log Review - HP Tuners Datalog Analysis Tool

A modular tool for reviewing engine datalogs: a diagnostic checklist,
acceleration interval times, an estimated dyno curve and an optional
AI-written summary.
"""

from .analyzer import LogReviewer, ReviewResult
from .constants import AnalysisConstants
from .config import AdvisorySettings, ReviewConfig, SpeedBand
from .data_loader import DataLoader, LogLayout, TelemetryTable, parse_log
from .wot_detector import WotDetector, WotWindow
from .metric_extractor import MetricExtractor, MetricsReport
from .interval_finder import IntervalFinder, IntervalResult
from .dyno import DynoSynthesizer, AbsoluteDynoCurve, RelativeDynoCurve, DynoFailure
from .advisory import AdvisoryClient, build_observations
from .storage import FileRunStore, RunStore
from .plotting import Plotter
from .errors import (
    LogReviewError, ParseError, MetricUnavailable, SweepUnavailable,
    DownstreamUnavailable, StorageError,
)

__version__ = "1.0.0"
__author__ = "Log Review Team"

# Main exports for easy importing
__all__ = [
    'LogReviewer',
    'ReviewResult',
    'AnalysisConstants',
    'AdvisorySettings',
    'ReviewConfig',
    'SpeedBand',
    'DataLoader',
    'LogLayout',
    'TelemetryTable',
    'parse_log',
    'WotDetector',
    'WotWindow',
    'MetricExtractor',
    'MetricsReport',
    'IntervalFinder',
    'IntervalResult',
    'DynoSynthesizer',
    'AbsoluteDynoCurve',
    'RelativeDynoCurve',
    'DynoFailure',
    'AdvisoryClient',
    'build_observations',
    'FileRunStore',
    'RunStore',
    'Plotter',
    'LogReviewError',
    'ParseError',
    'MetricUnavailable',
    'SweepUnavailable',
    'DownstreamUnavailable',
    'StorageError',
]
