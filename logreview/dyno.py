"""
Dyno-style power and torque curve synthesis from a single WOT sweep
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .channels import Channels, wot_gate_column
from .config import ReviewConfig
from .constants import AnalysisConstants
from .data_loader import TelemetryTable
from .errors import SweepUnavailable
from .wot_detector import contiguous_runs

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DynoPoint:
    rpm: float
    hp: float
    torque: Optional[float]


@dataclass(frozen=True)
class DynoPeak:
    rpm: float
    value: float


@dataclass
class DynoCurve:
    """Binned, smoothed power/torque curve for one sweep"""
    points: List[DynoPoint]
    peak_hp: Optional[DynoPeak]
    peak_torque: Optional[DynoPeak]
    sweep: Tuple[int, int] = (0, 0)

    units = 'hp'
    is_relative = False

    def to_dict(self) -> Dict:
        return {
            'units': self.units,
            'relative': self.is_relative,
            'sweep': {'start_idx': self.sweep[0], 'end_idx': self.sweep[1]},
            'points': [{'rpm': p.rpm, 'hp': p.hp, 'torque': p.torque} for p in self.points],
            'peakHp': None if self.peak_hp is None else {'rpm': self.peak_hp.rpm, 'value': self.peak_hp.value},
            'peakTorque': None if self.peak_torque is None else {'rpm': self.peak_torque.rpm, 'value': self.peak_torque.value},
        }


@dataclass
class AbsoluteDynoCurve(DynoCurve):
    """Horsepower and lb-ft from a known vehicle weight"""
    weight_lb: float = 0.0

    units = 'hp'


@dataclass
class RelativeDynoCurve(DynoCurve):
    """Unitless curve scaled so peak power is 100; weight unknown"""

    units = 'relative'
    is_relative = True


@dataclass
class DynoFailure:
    """Synthesis could not produce a curve; reported, never raised"""
    error: str
    stage: str = field(default=SweepUnavailable.stage)

    def to_dict(self) -> Dict:
        return {'error': self.error}


DynoResult = Union[AbsoluteDynoCurve, RelativeDynoCurve, DynoFailure]


def _as_array(values: Sequence[Optional[float]]) -> np.ndarray:
    return np.array([np.nan if v is None else v for v in values], dtype=float)


def moving_average(values: np.ndarray, window: int = AnalysisConstants.DEFAULT_SMOOTHING_WINDOW) -> np.ndarray:
    """Centered moving average; windows shrink at the ends instead of wrapping"""
    return pd.Series(values, dtype=float).rolling(window=window, center=True, min_periods=1).mean().to_numpy()


def centered_acceleration(velocity: np.ndarray, time: np.ndarray) -> np.ndarray:
    """
    Finite-difference acceleration

    (v[i+1] - v[i-1]) / (t[i+1] - t[i-1]) inside, one-sided at the ends.
    Zero time steps give zero acceleration.
    """
    n = len(velocity)
    accel = np.zeros(n)
    if n < 2:
        return accel

    dv = velocity[2:] - velocity[:-2]
    dt = time[2:] - time[:-2]
    accel[1:-1] = np.divide(dv, dt, out=np.zeros_like(dv), where=dt != 0)

    dt_first = time[1] - time[0]
    dt_last = time[-1] - time[-2]
    accel[0] = (velocity[1] - velocity[0]) / dt_first if dt_first != 0 else 0.0
    accel[-1] = (velocity[-1] - velocity[-2]) / dt_last if dt_last != 0 else 0.0
    return accel


def torque_from_hp(hp: float, rpm: float) -> Optional[float]:
    """lb-ft from horsepower; undefined at 0 RPM"""
    if rpm == 0:
        return None
    return hp * AnalysisConstants.HP_TORQUE_CROSSOVER_RPM / rpm


class DynoSynthesizer:
    """Builds a power/torque curve from speed, time and RPM"""

    def __init__(self, config: Optional[ReviewConfig] = None):
        self.config = config or ReviewConfig()

    def select_sweep(self, time: np.ndarray, speed: np.ndarray, rpm: np.ndarray,
                     throttle: Optional[np.ndarray] = None) -> Tuple[int, int]:
        """
        Longest run of strictly rising RPM at WOT

        Samples need time, speed and RPM present, and the pedal/throttle (when
        given) at or above the WOT threshold. Runs shorter than the minimum
        sweep length are dropped; the first of equally long runs wins.

        Returns:
            (start_idx, end_idx) inclusive
        """
        valid = ~(np.isnan(time) | np.isnan(speed) | np.isnan(rpm))
        if throttle is not None:
            valid &= throttle >= self.config.wot_threshold

        # link[k]: sample k continues the sweep from sample k-1
        link = np.zeros(len(rpm), dtype=bool)
        link[1:] = valid[1:] & valid[:-1] & (rpm[1:] > rpm[:-1])

        best = None
        for run in contiguous_runs(link):
            start, end = run.start - 1, run.stop - 1
            length = end - start + 1
            if length < self.config.min_sweep_samples:
                continue
            if best is None or length > best[1] - best[0] + 1:
                best = (start, end)

        if best is None:
            raise SweepUnavailable("No clean RPM sweep found.")
        logger.info("Selected sweep rows %d-%d (%.0f-%.0f RPM)", best[0], best[1], rpm[best[0]], rpm[best[1]])
        return best

    def _power(self, velocity: np.ndarray, accel: np.ndarray, weight_lb: Optional[float]) -> np.ndarray:
        if weight_lb is not None:
            mass_slugs = weight_lb / AnalysisConstants.GRAVITY_FTS2
            power = np.clip(mass_slugs * accel * velocity, 0, None)
            return power / AnalysisConstants.FT_LBF_PER_SEC_PER_HP

        power = accel * velocity
        peak = power.max()
        if peak <= 0:
            raise SweepUnavailable("Sweep shows no positive acceleration.")
        return power / peak * AnalysisConstants.RELATIVE_PEAK_SCORE

    def _bin(self, rpm: np.ndarray, hp: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        width = self.config.rpm_bin_width
        bins = np.floor(rpm / width + 0.5) * width
        binned = pd.DataFrame({'rpm': bins, 'hp': hp}).groupby('rpm', sort=True)['hp'].mean()
        return binned.index.to_numpy(dtype=float), moving_average(binned.to_numpy(dtype=float), self.config.smoothing_window)

    def _synthesize(self, time, speed, rpm, throttle, weight_lb) -> DynoCurve:
        if weight_lb is not None and not weight_lb > 0:
            raise SweepUnavailable("Vehicle weight must be a positive number of lb.")
        if rpm is None:
            raise SweepUnavailable("RPM required.")
        if time is None or speed is None:
            raise SweepUnavailable("Insufficient data: time and speed required.")

        time, speed, rpm = _as_array(time), _as_array(speed), _as_array(rpm)
        throttle = _as_array(throttle) if throttle is not None else None
        if len(time) < 3 or not (len(time) == len(speed) == len(rpm)):
            raise SweepUnavailable("Insufficient data.")

        start, end = self.select_sweep(time, speed, rpm, throttle)
        window = slice(start, end + 1)

        velocity = speed[window] * AnalysisConstants.MPH_TO_FTS
        accel = centered_acceleration(velocity, time[window])
        smoothing = self.config.smoothing_window
        hp = self._power(moving_average(velocity, smoothing), moving_average(accel, smoothing), weight_lb)

        bin_rpm, bin_hp = self._bin(rpm[window], hp)
        points = [DynoPoint(float(r), float(h), torque_from_hp(float(h), float(r))) for r, h in zip(bin_rpm, bin_hp)]

        hp_idx = int(np.argmax(bin_hp))
        peak_hp = DynoPeak(points[hp_idx].rpm, points[hp_idx].hp)
        with_torque = [p for p in points if p.torque is not None]
        peak_torque = None
        if with_torque:
            top = max(with_torque, key=lambda p: p.torque)
            peak_torque = DynoPeak(top.rpm, top.torque)

        if weight_lb is not None:
            return AbsoluteDynoCurve(points, peak_hp, peak_torque, (start, end), weight_lb=weight_lb)
        return RelativeDynoCurve(points, peak_hp, peak_torque, (start, end))

    def synthesize(self, time: Optional[Sequence[Optional[float]]], speed: Optional[Sequence[Optional[float]]],
                   rpm: Optional[Sequence[Optional[float]]], throttle: Optional[Sequence[Optional[float]]] = None,
                   weight_lb: Optional[float] = None) -> DynoResult:
        """
        Power/torque curve for the best sweep

        Args:
            time: Sample timestamps in seconds
            speed: Vehicle speed in mph
            rpm: Engine RPM
            throttle: Pedal or throttle position for WOT gating (optional)
            weight_lb: Vehicle weight; without it the curve is relative

        Returns:
            AbsoluteDynoCurve, RelativeDynoCurve or DynoFailure
        """
        try:
            curve = self._synthesize(time, speed, rpm, throttle, weight_lb)
        except SweepUnavailable as e:
            logger.warning("Dyno synthesis unavailable: %s", e)
            return DynoFailure(str(e))

        logger.info("Dyno peak %.1f %s @ %.0f RPM", curve.peak_hp.value, curve.units, curve.peak_hp.rpm)
        return curve

    def from_table(self, table: TelemetryTable, weight_lb: Optional[float] = None) -> DynoResult:
        def _col(name):
            return table.numeric(name) if table.has_column(name) else None

        gate = wot_gate_column(table.headers)
        return self.synthesize(
            _col(Channels.TIME), _col(Channels.SPEED), _col(Channels.RPM),
            _col(gate) if gate else None, weight_lb,
        )
