"""
Tunable review settings and advisory service settings
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .constants import AnalysisConstants


@dataclass(frozen=True)
class SpeedBand:
    """A named acceleration interval such as 0-60 mph"""
    label: str
    start_mph: float
    end_mph: float

    @classmethod
    def from_label(cls, label: str) -> 'SpeedBand':
        """Build a band from a label like '40-100'"""
        try:
            start, end = (float(part) for part in label.strip().split('-'))
        except ValueError:
            raise ValueError(f"Invalid speed band label: {label!r}")
        if end <= start:
            raise ValueError(f"Speed band must end above its start: {label!r}")
        return cls(label.strip(), start, end)

    @property
    def from_stop(self) -> bool:
        return self.start_mph == 0


DEFAULT_SPEED_BANDS: Tuple[SpeedBand, ...] = (
    SpeedBand('0-60', 0, 60),
    SpeedBand('40-100', 40, 100),
    SpeedBand('60-130', 60, 130),
)


@dataclass
class ReviewConfig:
    """Thresholds used by the checklist, interval finder and dyno"""
    wot_threshold: float = AnalysisConstants.DEFAULT_WOT_THRESHOLD
    knock_sensor_volts: float = AnalysisConstants.DEFAULT_KNOCK_SENSOR_VOLTS
    oil_pressure_floor: float = AnalysisConstants.DEFAULT_OIL_PRESSURE_FLOOR_PSI
    oil_min_rpm: float = AnalysisConstants.DEFAULT_OIL_MIN_RPM
    coolant_ceiling: float = AnalysisConstants.DEFAULT_COOLANT_CEILING_F
    fuel_trim_variance: float = AnalysisConstants.DEFAULT_FUEL_TRIM_VARIANCE
    misfire_glitch_delta: float = AnalysisConstants.DEFAULT_MISFIRE_GLITCH_DELTA
    ai_sample_stride: int = AnalysisConstants.DEFAULT_AI_SAMPLE_STRIDE
    rpm_bin_width: float = AnalysisConstants.DEFAULT_RPM_BIN_WIDTH
    smoothing_window: int = AnalysisConstants.DEFAULT_SMOOTHING_WINDOW
    min_sweep_samples: int = AnalysisConstants.DEFAULT_MIN_SWEEP_SAMPLES
    stop_speed: float = AnalysisConstants.DEFAULT_STOP_SPEED_MPH
    speed_bands: Tuple[SpeedBand, ...] = field(default=DEFAULT_SPEED_BANDS)

    def __post_init__(self):
        if self.ai_sample_stride < 1:
            raise ValueError("ai_sample_stride must be at least 1")
        if self.smoothing_window < 1:
            raise ValueError("smoothing_window must be at least 1")
        if self.rpm_bin_width <= 0:
            raise ValueError("rpm_bin_width must be positive")


@dataclass
class AdvisorySettings:
    """Connection settings for the advisory text generator"""
    api_url: str = "https://api.openai.com/v1/chat/completions"
    api_key: Optional[str] = None
    model: str = "gpt-4o"
    temperature: float = 0.3
    timeout: float = 30.0

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls) -> 'AdvisorySettings':
        defaults = cls()
        return cls(
            api_url=os.getenv("LOGREVIEW_ADVISORY_URL", defaults.api_url),
            api_key=os.getenv("OPENAI_API_KEY"),
            model=os.getenv("LOGREVIEW_ADVISORY_MODEL", defaults.model),
            temperature=float(os.getenv("LOGREVIEW_ADVISORY_TEMPERATURE", defaults.temperature)),
            timeout=float(os.getenv("LOGREVIEW_ADVISORY_TIMEOUT", defaults.timeout)),
        )
