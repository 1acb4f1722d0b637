"""
Well-known HP Tuners channel names

Metrics look columns up through these names so a typo fails at one place
instead of silently reading an empty column.
"""

import re
from typing import List, Optional, Sequence


class Channels:
    """Column names exported by the tuning tool"""

    TIME = 'Offset'
    SPEED = 'Vehicle Speed (SAE)'
    RPM = 'Engine RPM (SAE)'
    ACCELERATOR = 'Accelerator Position D (SAE)'
    THROTTLE = 'Throttle Position (SAE)'
    TIMING = 'Timing Advance (SAE)'
    MAP = 'Intake Manifold Absolute Pressure (SAE)'
    KNOCK_RETARD = 'Total Knock Retard'
    KNOCK_SENSOR_1 = 'Knock Sensor 1'
    KNOCK_SENSOR_2 = 'Knock Sensor 2'
    LTFT_BANK_1 = 'Long Term Fuel Trim Bank 1 (SAE)'
    LTFT_BANK_2 = 'Long Term Fuel Trim Bank 2 (SAE)'
    STFT_BANK_1 = 'Short Term Fuel Trim Bank 1 (SAE)'
    STFT_BANK_2 = 'Short Term Fuel Trim Bank 2 (SAE)'
    OIL_PRESSURE = 'Engine Oil Pressure'
    COOLANT_TEMP = 'Engine Coolant Temp (SAE)'
    AIRMASS = 'Cylinder Airmass'

    KNOCK_SENSORS = (KNOCK_SENSOR_1, KNOCK_SENSOR_2)

    # First present wins
    BARO_CANDIDATES = (
        'Barometric Pressure (SAE)',
        'Baro Pressure',
        'Ambient Air Pressure',
    )

    MISFIRE_MARKER = 'Misfire Current Cylinder'

    # Loose fallbacks used when comparing logs from other exports
    SPEED_PATTERN = re.compile(r'vehicle\s*speed', re.IGNORECASE)
    TIME_PATTERN = re.compile(r'offset|time', re.IGNORECASE)


def misfire_columns(headers: Sequence[str]) -> List[str]:
    """Per-cylinder cumulative misfire counter columns, in header order"""
    return [h for h in headers if Channels.MISFIRE_MARKER in h]


def cylinder_label(column: str) -> str:
    """'Misfire Current Cylinder #3' -> '3'"""
    _, sep, label = column.partition('#')
    return label.strip() if sep and label.strip() else '?'


def resolve_column(headers: Sequence[str], name: str, pattern: Optional[re.Pattern] = None) -> Optional[str]:
    """Exact header match, falling back to the first header matching ``pattern``"""
    if name in headers:
        return name
    if pattern is not None:
        for header in headers:
            if pattern.search(header):
                return header
    return None


def wot_gate_column(headers: Sequence[str]) -> Optional[str]:
    """Pedal position if logged, otherwise throttle blade"""
    for name in (Channels.ACCELERATOR, Channels.THROTTLE):
        if name in headers:
            return name
    return None
