"""
True wide-open-throttle window detection
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from .channels import Channels
from .constants import AnalysisConstants
from .data_loader import TelemetryTable

logger = logging.getLogger(__name__)


# Lazy imports for heavy dependencies
def _import_ndimage():
    from scipy import ndimage
    return ndimage


@dataclass(frozen=True)
class WotWindow:
    """Maximal run of WOT rows, indices inclusive"""
    start_idx: int
    end_idx: int
    start_time: Optional[float] = None
    end_time: Optional[float] = None

    @property
    def length(self) -> int:
        return self.end_idx - self.start_idx + 1


def contiguous_runs(mask: np.ndarray) -> List[slice]:
    """Slices covering each maximal run of True values, in order"""
    ndimage = _import_ndimage()
    labels, count = ndimage.label(np.asarray(mask, dtype=bool))
    if count == 0:
        return []
    return [objects[0] for objects in ndimage.find_objects(labels)]


class WotDetector:
    """Finds rows where both pedal and throttle blade are past the WOT threshold"""

    def __init__(self, threshold: float = AnalysisConstants.DEFAULT_WOT_THRESHOLD,
                 accelerator_column: str = Channels.ACCELERATOR,
                 throttle_column: str = Channels.THROTTLE):
        self.threshold = threshold
        self.accelerator_column = accelerator_column
        self.throttle_column = throttle_column

    def wot_mask(self, table: TelemetryTable) -> np.ndarray:
        """
        Boolean mask of WOT rows

        accelerator > threshold AND (no throttle column OR throttle > threshold).
        Both bounds are strict; absent readings never qualify.
        """
        if not table.has_column(self.accelerator_column):
            return np.zeros(len(table), dtype=bool)

        mask = table.numeric(self.accelerator_column) > self.threshold
        if table.has_column(self.throttle_column):
            mask &= table.numeric(self.throttle_column) > self.threshold
        return mask

    def find_windows(self, table: TelemetryTable) -> List[WotWindow]:
        """Maximal, non-overlapping WOT windows ordered by start"""
        mask = self.wot_mask(table)
        times = table.numeric(Channels.TIME) if table.has_column(Channels.TIME) else None

        def _time_at(i: int) -> Optional[float]:
            if times is None or np.isnan(times[i]):
                return None
            return float(times[i])

        windows = []
        for run in contiguous_runs(mask):
            start, end = run.start, run.stop - 1
            windows.append(WotWindow(start, end, _time_at(start), _time_at(end)))

        logger.info("Found %d WOT windows covering %d rows", len(windows), int(mask.sum()))
        return windows

    @staticmethod
    def window_mask(table: TelemetryTable, windows: List[WotWindow]) -> np.ndarray:
        """Rebuild a row mask from a list of windows"""
        mask = np.zeros(len(table), dtype=bool)
        for window in windows:
            mask[window.start_idx:window.end_idx + 1] = True
        return mask
