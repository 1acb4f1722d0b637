"""
Acceleration interval timing (0-60, 40-100, 60-130 ...)
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from .channels import Channels
from .config import SpeedBand
from .constants import AnalysisConstants
from .data_loader import TelemetryTable

logger = logging.getLogger(__name__)


def _as_array(values: Optional[Sequence[Optional[float]]]) -> Optional[np.ndarray]:
    if values is None:
        return None
    return np.array([np.nan if v is None else v for v in values], dtype=float)


@dataclass(frozen=True)
class IntervalResult:
    """One completed pull through a speed band"""
    band: SpeedBand
    start_time: float
    end_time: float
    duration: float

    def trace(self, speed: Sequence[Optional[float]], time: Sequence[Optional[float]]) -> List[Dict[str, float]]:
        """Speed vs time-from-launch points covering this pull"""
        points = []
        for s, t in zip(_as_array(speed), _as_array(time)):
            if np.isnan(s) or np.isnan(t):
                continue
            if self.start_time <= t <= self.end_time:
                points.append({'x': round(float(t - self.start_time), 3), 'y': float(s)})
        return points

    def to_dict(self) -> Dict:
        return {
            'interval': self.band.label,
            'startTime': self.start_time,
            'endTime': self.end_time,
            'duration': round(self.duration, 3),
        }


class IntervalFinder:
    """
    Finds WOT-gated transitions through speed bands

    A start is armed at the first sample with the pedal at or above the WOT
    threshold and speed inside [start, end); it completes at the next sample
    at or above ``end``. Bands starting at 0 instead require the car to have
    stopped (below ``stop_speed``) and arm on the sample it rolls past
    ``stop_speed``, which must itself be at WOT and below ``end``; otherwise
    the stop is spent and a new one is needed.

    A pending start is dropped when the pedal falls below the threshold, when
    speed falls back below ``start`` or when the car stops again mid-run.
    Every completed pull is kept so several runs in one log can be compared.
    """

    def __init__(self, wot_threshold: float = AnalysisConstants.DEFAULT_WOT_THRESHOLD,
                 stop_speed: float = AnalysisConstants.DEFAULT_STOP_SPEED_MPH):
        self.wot_threshold = wot_threshold
        self.stop_speed = stop_speed

    def _gate(self, accelerator: Optional[np.ndarray], i: int) -> bool:
        if accelerator is None:
            return True
        return bool(accelerator[i] >= self.wot_threshold)

    def find_intervals(self, speed: Sequence[Optional[float]], time: Sequence[Optional[float]],
                       band: SpeedBand,
                       accelerator: Optional[Sequence[Optional[float]]] = None) -> List[IntervalResult]:
        """
        All completed pulls through ``band``

        Args:
            speed: Vehicle speed in mph
            time: Sample timestamps in seconds
            band: Speed band to time
            accelerator: Pedal position; None disables the WOT gate

        Returns:
            Completed intervals in log order
        """
        speed_arr = _as_array(speed)
        time_arr = _as_array(time)
        accel_arr = _as_array(accelerator)
        if len(speed_arr) != len(time_arr) or (accel_arr is not None and len(accel_arr) != len(speed_arr)):
            raise ValueError("speed, time and accelerator must be the same length")

        results = []
        start_time = None
        found_stop = False

        for i in range(len(speed_arr)):
            s, t = speed_arr[i], time_arr[i]
            if np.isnan(s) or np.isnan(t):
                continue

            wot = self._gate(accel_arr, i)
            if start_time is not None and s < band.end_mph:
                if not wot:
                    start_time = None
                    found_stop = False
                elif band.from_stop and s < self.stop_speed:
                    start_time = None
                elif not band.from_stop and s < band.start_mph:
                    start_time = None

            if band.from_stop:
                if s < self.stop_speed:
                    found_stop = True
                elif found_stop and start_time is None and s > self.stop_speed:
                    if wot and s < band.end_mph:
                        start_time = t
                    else:
                        found_stop = False
            elif start_time is None and band.start_mph <= s < band.end_mph and wot:
                start_time = t

            if start_time is not None and s >= band.end_mph:
                results.append(IntervalResult(band, float(start_time), float(t), float(t - start_time)))
                start_time = None
                found_stop = False

        logger.debug("%s: %d completed pulls", band.label, len(results))
        return results

    def best_interval(self, speed, time, band: SpeedBand, accelerator=None) -> Optional[IntervalResult]:
        """Fastest pull through ``band``; the earliest one wins a tie"""
        results = self.find_intervals(speed, time, band, accelerator)
        if not results:
            return None
        return min(results, key=lambda r: r.duration)

    def from_table(self, table: TelemetryTable, band: SpeedBand, gated: bool = True) -> Optional[IntervalResult]:
        """
        Best pull read straight from a table

        The WOT gate uses the pedal channel when ``gated`` and the channel is
        logged; otherwise timing is ungated.
        """
        if not (table.has_column(Channels.SPEED) and table.has_column(Channels.TIME)):
            return None
        accelerator = None
        if gated and table.has_column(Channels.ACCELERATOR):
            accelerator = table.numeric(Channels.ACCELERATOR)
        return self.best_interval(table.numeric(Channels.SPEED), table.numeric(Channels.TIME), band, accelerator)
