"""
Datalog CSV loading into a column-oriented numeric table
"""

import csv
import logging
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from .constants import AnalysisConstants
from .errors import ParseError

logger = logging.getLogger(__name__)


class LogLayout(Enum):
    """Where the header row sits in an export"""
    DYNAMIC = 'dynamic'            # header found by content, data 4 lines later
    FIXED_OFFSET = 'fixed_offset'  # header on line 16, data from line 20


class TelemetryTable:
    """
    Numeric datalog table

    One column per declared header, in header order. Values are nullable
    floats: anything blank, unparsable or non-finite is ``pd.NA`` in the frame
    and ``None`` in :attr:`rows`, never zero.
    """

    def __init__(self, frame: pd.DataFrame):
        self.frame = frame.reset_index(drop=True).astype('Float64')

    @classmethod
    def from_rows(cls, headers: Sequence[str], rows: Iterable[Sequence[Optional[float]]]) -> 'TelemetryTable':
        """Build a table from already-numeric rows (``None`` = absent)"""
        records = [[np.nan if v is None else v for v in row] for row in rows]
        frame = pd.DataFrame(records, columns=list(headers), dtype=float)
        return cls(frame)

    @property
    def headers(self) -> List[str]:
        return list(self.frame.columns)

    @property
    def rows(self) -> List[Dict[str, Optional[float]]]:
        headers = self.headers
        return [
            {h: (None if pd.isna(v) else float(v)) for h, v in zip(headers, values)}
            for values in self.frame.itertuples(index=False, name=None)
        ]

    def __len__(self) -> int:
        return len(self.frame)

    def has_column(self, name: Optional[str]) -> bool:
        return name is not None and name in self.frame.columns

    def column(self, name: str) -> pd.Series:
        """Nullable column; aggregates on it skip absent values"""
        return self.frame[name]

    def values(self, name: str) -> List[Optional[float]]:
        return [None if pd.isna(v) else float(v) for v in self.frame[name]]

    def numeric(self, name: str) -> np.ndarray:
        """Column as a float array with NaN marking absent samples"""
        return self.frame[name].to_numpy(dtype=float, na_value=np.nan)

    def present(self, name: str) -> pd.Series:
        """Only the present samples of a column, row index kept"""
        return self.frame[name].dropna().astype(float)


def _split_line(line: str, quoted: bool) -> List[str]:
    if quoted:
        # Doubled quotes inside a quoted field escape a literal quote
        return [field.strip() for field in next(csv.reader([line]))]
    return [field.strip() for field in line.split(',')]


def _data_lines(lines: Sequence[str]) -> List[str]:
    return [line for line in lines if line.strip() and ',' in line]


def _build_frame(headers: List[str], rows: List[List[str]]) -> pd.DataFrame:
    width = len(headers)
    # Short rows pad with blanks, extra trailing fields are dropped
    records = [(row + [''] * width)[:width] for row in rows]
    raw = pd.DataFrame(records, columns=range(width), dtype=object)
    numeric = raw.apply(lambda col: pd.to_numeric(col.str.strip(), errors='coerce'))
    numeric = numeric.replace([np.inf, -np.inf], np.nan)

    # Repeated header names keep their first position and last values
    last_index: Dict[str, int] = {}
    for i, name in enumerate(headers):
        if name:
            last_index[name] = i

    frame = numeric[list(last_index.values())].copy()
    frame.columns = list(last_index.keys())
    return frame


def parse_log(content: str, layout: LogLayout = LogLayout.DYNAMIC, quoted: bool = False) -> TelemetryTable:
    """
    Parse raw export text into a :class:`TelemetryTable`

    Args:
        content: Whole CSV text
        layout: DYNAMIC searches for the 'Offset' header row; FIXED_OFFSET
            expects the header on line index 15 and data from index 19
        quoted: Honour RFC4180 style quoting (overlay comparisons)

    Raises:
        ParseError: empty content, no header row or no data rows
    """
    if content is None or not content.strip():
        raise ParseError("CSV content is empty.")

    raw_lines = content.splitlines()

    if layout is LogLayout.DYNAMIC:
        lines = [line.strip() for line in raw_lines]
        header_idx = next((i for i, line in enumerate(lines) if line.lower().startswith('offset')), None)
        if header_idx is None:
            raise ParseError("No header row starting with 'Offset' found.")
        data_start = header_idx + AnalysisConstants.DYNAMIC_DATA_OFFSET
    elif layout is LogLayout.FIXED_OFFSET:
        lines = [line.rstrip() for line in raw_lines]
        header_idx = AnalysisConstants.FIXED_HEADER_LINE
        if len(lines) - header_idx < 5:
            raise ParseError("CSV appears incomplete after header row.")
        data_start = AnalysisConstants.FIXED_DATA_LINE
    else:
        raise ValueError(f"Unknown layout: {layout!r}")

    headers = _split_line(lines[header_idx], quoted)
    if not any(headers):
        raise ParseError(f"Header row {header_idx + 1} is empty.")

    data = _data_lines(lines[data_start:])
    if not data:
        raise ParseError("No data rows found in CSV.")

    frame = _build_frame(headers, [_split_line(line, quoted) for line in data])
    logger.info("Parsed %d rows x %d columns (%s layout)", len(frame), len(frame.columns), layout.value)
    return TelemetryTable(frame)


class DataLoader:
    """Reads datalog exports from disk"""

    def __init__(self, layout: LogLayout = LogLayout.DYNAMIC, quoted: bool = False):
        self.layout = layout
        self.quoted = quoted

    def parse(self, content: str) -> TelemetryTable:
        return parse_log(content, self.layout, self.quoted)

    def load(self, csv_path: str) -> TelemetryTable:
        """Load a CSV file; undecodable bytes are replaced rather than fatal"""
        try:
            with open(csv_path, 'r', encoding='utf-8', errors='replace') as f:
                content = f.read()
        except OSError as e:
            raise ParseError(f"Error reading CSV file {csv_path}: {e}")
        return self.parse(content)
