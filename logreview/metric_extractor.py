"""
Diagnostic metric extraction from a parsed datalog
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from .channels import Channels, cylinder_label, misfire_columns
from .config import ReviewConfig
from .constants import AnalysisConstants
from .data_loader import TelemetryTable
from .errors import MetricUnavailable
from .interval_finder import IntervalFinder
from .wot_detector import WotDetector, WotWindow

logger = logging.getLogger(__name__)

BOOST_OK = 'ok'
BOOST_NO_WOT = 'no_wot'
BOOST_NO_MAP = 'no_map'


def round2(value: float) -> float:
    """Round half up to 2 decimals"""
    return math.floor(value * 100 + 0.5) / 100


def compute_boost(map_kpa: float, baro_kpa: float = AnalysisConstants.SEA_LEVEL_BARO_KPA) -> float:
    """Gauge boost in psi; vacuum clamps to 0"""
    return max(0.0, round2((map_kpa - baro_kpa) * AnalysisConstants.KPA_TO_PSI))


def count_misfire_events(values: Sequence[Optional[float]],
                         glitch_delta: float = AnalysisConstants.DEFAULT_MISFIRE_GLITCH_DELTA) -> float:
    """
    Rebuild discrete misfire events from a cumulative counter

    Sums every positive step between consecutive present readings; steps of
    ``glitch_delta`` or more are counter glitches and are ignored, as are
    resets (negative steps).
    """
    present = [v for v in values if v is not None and not math.isnan(v)]
    count = 0.0
    for prev, cur in zip(present, present[1:]):
        delta = cur - prev
        if 0 < delta < glitch_delta:
            count += delta
    return count


@dataclass
class MetricsReport:
    """Flat set of computed checklist values; None means not computable"""
    peak_knock: Optional[float] = None
    wot_row_count: int = 0
    peak_timing: Optional[float] = None
    peak_timing_rpm: Optional[float] = None
    map_wot_min: Optional[float] = None
    map_wot_max: Optional[float] = None
    boost_status: str = BOOST_NO_WOT
    boost_peak: Optional[float] = None
    boost_peak_rpm: Optional[float] = None
    boost_avg: Optional[float] = None
    boost_at_max_rpm: Optional[float] = None
    max_rpm: Optional[float] = None
    knock_sensor_peaks: Dict[str, float] = field(default_factory=dict)
    knock_sensor_high: Dict[str, bool] = field(default_factory=dict)
    fuel_trim_variance: Optional[float] = None
    fuel_trim_variance_high: Optional[bool] = None
    avg_correction_bank1: Optional[float] = None
    avg_correction_bank2: Optional[float] = None
    oil_pressure_min: Optional[float] = None
    oil_pressure_low: Optional[bool] = None
    coolant_max: Optional[float] = None
    coolant_high: Optional[bool] = None
    misfires: Dict[str, float] = field(default_factory=dict)
    best_intervals: Dict[str, Optional[float]] = field(default_factory=dict)
    unavailable: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        data = asdict(self)
        intervals = data.pop('best_intervals')
        data['zero_to_sixty'] = intervals.get('0-60')
        data['forty_to_hundred'] = intervals.get('40-100')
        data['sixty_to_one_thirty'] = intervals.get('60-130')
        data['intervals'] = intervals
        return data


def _require(table: TelemetryTable, metric: str, *columns: str) -> None:
    for column in columns:
        if not table.has_column(column) or table.present(column).empty:
            raise MetricUnavailable(metric, column)


def _first_max(values: np.ndarray) -> int:
    """Index of the first maximum, NaN ranked below everything"""
    return int(np.argmax(np.where(np.isnan(values), -np.inf, values)))


def _optional(value) -> Optional[float]:
    if value is None or np.isnan(value):
        return None
    return float(value)


class MetricExtractor:
    """Computes each checklist metric independently of the others"""

    def __init__(self, config: Optional[ReviewConfig] = None):
        self.config = config or ReviewConfig()
        self.interval_finder = IntervalFinder(self.config.wot_threshold, self.config.stop_speed)

    def extract(self, table: TelemetryTable, windows: Optional[List[WotWindow]] = None) -> MetricsReport:
        """
        Build the metrics report

        Args:
            table: Parsed datalog
            windows: WOT windows; detected here when not supplied

        Returns:
            MetricsReport with unavailable metrics listed in ``unavailable``
        """
        if windows is None:
            windows = WotDetector(self.config.wot_threshold).find_windows(table)
        wot_mask = WotDetector.window_mask(table, windows)

        report = MetricsReport(wot_row_count=int(wot_mask.sum()))
        steps = [
            ('knock', lambda: self._knock(table, report)),
            ('peak_timing', lambda: self._peak_timing(table, wot_mask, report)),
            ('boost', lambda: self._boost(table, wot_mask, report)),
            ('knock_sensors', lambda: self._knock_sensors(table, report)),
            ('fuel_trim_variance', lambda: self._fuel_trim_variance(table, report)),
            ('fuel_correction_bank1', lambda: self._fuel_correction(table, report, 1)),
            ('fuel_correction_bank2', lambda: self._fuel_correction(table, report, 2)),
            ('oil_pressure', lambda: self._oil_pressure(table, report)),
            ('coolant', lambda: self._coolant(table, report)),
            ('misfires', lambda: self._misfires(table, report)),
            ('intervals', lambda: self._intervals(table, report)),
        ]
        for name, step in steps:
            try:
                step()
            except MetricUnavailable as e:
                report.unavailable[e.metric] = e.column
                logger.debug("Metric %s unavailable: %s", name, e)

        logger.info("Extracted metrics (%d WOT rows, %d unavailable)", report.wot_row_count, len(report.unavailable))
        return report

    def _knock(self, table: TelemetryTable, report: MetricsReport) -> None:
        _require(table, 'knock', Channels.KNOCK_RETARD)
        report.peak_knock = float(table.present(Channels.KNOCK_RETARD).abs().max())

    def _peak_timing(self, table: TelemetryTable, wot_mask: np.ndarray, report: MetricsReport) -> None:
        wot_idx = np.flatnonzero(wot_mask)
        if wot_idx.size == 0:
            return

        if table.has_column(Channels.TIMING):
            timing = table.numeric(Channels.TIMING)[wot_idx]
        else:
            timing = np.full(wot_idx.size, np.nan)
        peak_row = wot_idx[_first_max(timing)]

        report.peak_timing = _optional(table.numeric(Channels.TIMING)[peak_row]) if table.has_column(Channels.TIMING) else None
        report.peak_timing_rpm = _optional(table.numeric(Channels.RPM)[peak_row]) if table.has_column(Channels.RPM) else None

        if table.has_column(Channels.MAP):
            map_wot = table.numeric(Channels.MAP)[wot_idx]
            map_wot = map_wot[~np.isnan(map_wot)]
            if map_wot.size:
                report.map_wot_min = float(map_wot.min())
                report.map_wot_max = float(map_wot.max())

    def _baro(self, table: TelemetryTable) -> np.ndarray:
        """Per-row barometric reference from the first logged candidate"""
        baro = np.full(len(table), np.nan)
        for name in Channels.BARO_CANDIDATES:
            if table.has_column(name):
                fill = np.isnan(baro)
                baro[fill] = table.numeric(name)[fill]
        baro[np.isnan(baro)] = AnalysisConstants.SEA_LEVEL_BARO_KPA
        return baro

    def _boost(self, table: TelemetryTable, wot_mask: np.ndarray, report: MetricsReport) -> None:
        if not wot_mask.any():
            report.boost_status = BOOST_NO_WOT
            return

        map_kpa = table.numeric(Channels.MAP) if table.has_column(Channels.MAP) else np.full(len(table), np.nan)
        rows = np.flatnonzero(wot_mask & ~np.isnan(map_kpa))
        if rows.size == 0:
            report.boost_status = BOOST_NO_MAP
            return

        baro = self._baro(table)
        boost = np.array([compute_boost(map_kpa[i], baro[i]) for i in rows])
        rpm = table.numeric(Channels.RPM)[rows] if table.has_column(Channels.RPM) else np.full(rows.size, np.nan)

        peak = _first_max(boost)
        report.boost_status = BOOST_OK
        report.boost_peak = float(boost[peak])
        report.boost_peak_rpm = _optional(rpm[peak])
        report.boost_avg = round2(float(boost.mean()))

        if not np.isnan(rpm).all():
            top = _first_max(rpm)
            report.max_rpm = float(rpm[top])
            report.boost_at_max_rpm = float(boost[top])

    def _knock_sensors(self, table: TelemetryTable, report: MetricsReport) -> None:
        missing = []
        for sensor in Channels.KNOCK_SENSORS:
            try:
                _require(table, 'knock_sensors', sensor)
            except MetricUnavailable:
                missing.append(sensor)
                continue
            peak = float(table.present(sensor).max())
            report.knock_sensor_peaks[sensor] = peak
            report.knock_sensor_high[sensor] = peak > self.config.knock_sensor_volts
        if missing:
            raise MetricUnavailable('knock_sensors', ', '.join(missing))

    def _fuel_trim_variance(self, table: TelemetryTable, report: MetricsReport) -> None:
        _require(table, 'fuel_trim_variance', Channels.LTFT_BANK_1, Channels.LTFT_BANK_2)
        diffs = (table.column(Channels.LTFT_BANK_1) - table.column(Channels.LTFT_BANK_2)).abs().dropna()
        if diffs.empty:
            raise MetricUnavailable('fuel_trim_variance', Channels.LTFT_BANK_2)
        report.fuel_trim_variance = float(diffs.max())
        report.fuel_trim_variance_high = bool((diffs > self.config.fuel_trim_variance).any())

    def _fuel_correction(self, table: TelemetryTable, report: MetricsReport, bank: int) -> None:
        stft, ltft = {
            1: (Channels.STFT_BANK_1, Channels.LTFT_BANK_1),
            2: (Channels.STFT_BANK_2, Channels.LTFT_BANK_2),
        }[bank]
        metric = f'fuel_correction_bank{bank}'
        _require(table, metric, stft, ltft)

        short, long_ = table.column(stft), table.column(ltft)
        logged = short.notna() | long_.notna()
        combined = short.fillna(0) + long_.fillna(0)
        setattr(report, f'avg_correction_bank{bank}', float(combined[logged].mean()))

    def _oil_pressure(self, table: TelemetryTable, report: MetricsReport) -> None:
        _require(table, 'oil_pressure', Channels.OIL_PRESSURE, Channels.RPM)
        running = table.column(Channels.RPM) > self.config.oil_min_rpm
        oil = table.column(Channels.OIL_PRESSURE)[running.fillna(False).astype(bool)].dropna()
        report.oil_pressure_min = float(oil.min()) if not oil.empty else None
        report.oil_pressure_low = bool((oil < self.config.oil_pressure_floor).any())

    def _coolant(self, table: TelemetryTable, report: MetricsReport) -> None:
        _require(table, 'coolant', Channels.COOLANT_TEMP)
        coolant = table.present(Channels.COOLANT_TEMP)
        report.coolant_max = float(coolant.max())
        report.coolant_high = bool((coolant > self.config.coolant_ceiling).any())

    def _misfires(self, table: TelemetryTable, report: MetricsReport) -> None:
        for column in misfire_columns(table.headers):
            count = count_misfire_events(table.values(column), self.config.misfire_glitch_delta)
            if count > 0:
                report.misfires[cylinder_label(column)] = count

    def _intervals(self, table: TelemetryTable, report: MetricsReport) -> None:
        _require(table, 'intervals', Channels.SPEED, Channels.TIME)
        for band in self.config.speed_bands:
            best = self.interval_finder.from_table(table, band)
            report.best_intervals[band.label] = round2(best.duration) if best is not None else None
