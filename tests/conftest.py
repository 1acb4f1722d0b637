from typing import List, Optional, Sequence

import pytest

from logreview.channels import Channels
from logreview.config import ReviewConfig


def _format_row(row: Sequence[Optional[float]]) -> str:
    return ','.join('' if v is None else str(v) for v in row)


def make_dynamic_csv(headers: Sequence[str], rows: Sequence[Sequence[Optional[float]]],
                     preamble: int = 3) -> str:
    """Export with a free-form preamble, 'Offset' header, units line, two blanks, then data"""
    lines = [f"HP Tuners log line {i}" for i in range(preamble)]
    lines.append(','.join(headers))
    lines.append(','.join('units' for _ in headers))
    lines.extend(['', ''])
    lines.extend(_format_row(row) for row in rows)
    return '\n'.join(lines) + '\n'


def make_fixed_csv(headers: Sequence[str], rows: Sequence[Sequence[Optional[float]]],
                   quote_headers: bool = False) -> str:
    """Export with the header on line 16 and data from line 20"""
    lines = [f"Channel info {i}" for i in range(15)]
    lines.append(','.join(f'"{h}"' if quote_headers else h for h in headers))
    lines.append(','.join('units' for _ in headers))
    lines.extend(['', ''])
    lines.extend(_format_row(row) for row in rows)
    return '\n'.join(lines) + '\n'


PULL_HEADERS = [
    Channels.TIME,
    Channels.SPEED,
    Channels.RPM,
    Channels.ACCELERATOR,
    Channels.THROTTLE,
    Channels.TIMING,
    Channels.MAP,
    Channels.KNOCK_RETARD,
    Channels.AIRMASS,
]


def pull_rows(accelerator: float = 100.0, hold: int = 5) -> List[List[float]]:
    """
    Parked for ``hold`` samples, then 0 -> 70 mph linearly over 5 s at 10 Hz

    RPM climbs 2000 -> 6500 with speed; timing peaks at 24° mid pull.
    """
    rows = []
    for i in range(hold):
        rows.append([round(i * 0.1, 3), 0.0, 800.0, 0.0, 0.0, 10.0, 35.0, 0.0, 0.15])
    for i in range(51):
        t = round((hold + i) * 0.1, 3)
        speed = round(14.0 * i * 0.1, 3)
        rpm = round(2000 + 90.0 * i, 1)
        timing = 24.0 if i == 25 else 18.0
        rows.append([t, speed, rpm, accelerator, accelerator, timing, 98.0, 0.0, 0.55])
    return rows


@pytest.fixture
def config():
    return ReviewConfig()


@pytest.fixture
def pull_csv():
    return make_dynamic_csv(PULL_HEADERS, pull_rows())


@pytest.fixture
def pull_csv_fixed():
    return make_fixed_csv(PULL_HEADERS, pull_rows())
