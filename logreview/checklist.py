"""
Human readable diagnostic checklist
"""

from typing import List, Optional

from .channels import Channels
from .config import ReviewConfig
from .metric_extractor import BOOST_NO_MAP, BOOST_OK, MetricsReport

WARN = '⚠️'
PASS = '✅'
INFO = 'ℹ️'
TIMING = '📈'
PRESSURE = '🌡'
STATS = '📊'
ALERT = '🚨'
LAUNCH = '🚦'
PULL = '🚀'


def _band_title(label: str) -> str:
    return label.replace('-', '–')


def _boost_lines(report: MetricsReport) -> List[str]:
    if report.boost_status == BOOST_NO_MAP:
        return [f"{INFO} MAP not logged under WOT; boost could not be computed."]
    if report.boost_status != BOOST_OK:
        return []

    peak = f"{PULL} Peak Boost: {report.boost_peak:.2f} psi"
    if report.boost_peak_rpm is not None:
        peak += f" @ {report.boost_peak_rpm:.0f} RPM"
    lines = [peak, f"{STATS} Average Boost (WOT): {report.boost_avg:.2f} psi"]
    if report.boost_at_max_rpm is not None:
        lines.append(f"{TIMING} Boost @ Highest RPM ({report.max_rpm:.0f} RPM): {report.boost_at_max_rpm:.2f} psi")
    return lines


def build_checklist(report: MetricsReport, config: Optional[ReviewConfig] = None) -> List[str]:
    """One status line per check, each starting with its severity icon"""
    config = config or ReviewConfig()
    lines = []

    # Knock
    if report.peak_knock is None:
        lines.append(f"{INFO} Knock column not found.")
    elif report.peak_knock > 0:
        lines.append(f"{WARN} Knock detected: up to {report.peak_knock:.1f}°")
    else:
        lines.append(f"{PASS} No knock detected.")

    # WOT group
    if report.wot_row_count:
        if report.peak_timing is not None and report.peak_timing_rpm is not None:
            lines.append(f"{TIMING} Peak timing under WOT: {report.peak_timing:.1f}° @ {report.peak_timing_rpm:.0f} RPM")
        else:
            lines.append(f"{INFO} Could not determine peak timing @ RPM under WOT.")

        if report.map_wot_min is not None:
            lines.append(f"{PRESSURE} MAP under WOT: {report.map_wot_min:.1f} – {report.map_wot_max:.1f} kPa")
        else:
            lines.append(f"{INFO} MAP data under WOT not found.")

        lines.extend(_boost_lines(report))
    else:
        lines.append(f"{INFO} No WOT conditions found.")

    # Knock sensor volts
    volts = config.knock_sensor_volts
    for sensor in Channels.KNOCK_SENSORS:
        peak = report.knock_sensor_peaks.get(sensor)
        if peak is None:
            lines.append(f"{INFO} {sensor} not found.")
        elif report.knock_sensor_high.get(sensor):
            lines.append(f"{WARN} {sensor} exceeded {volts:.1f}V threshold (Peak: {peak:.2f}V)")
        else:
            lines.append(f"{PASS} {sensor} within safe range (Peak: {peak:.2f}V)")

    # Fuel trims
    limit = f"{config.fuel_trim_variance:g}%"
    if report.fuel_trim_variance_high is None:
        lines.append(f"{INFO} One or both LTFT columns missing; variance check skipped.")
    elif report.fuel_trim_variance_high:
        lines.append(f"{WARN} Fuel trim variance > {limit} between banks")
    else:
        lines.append(f"{PASS} Fuel trim variance within {limit}")

    for bank, value in ((1, report.avg_correction_bank1), (2, report.avg_correction_bank2)):
        if value is None:
            lines.append(f"{INFO} Could not compute avg fuel correction (Bank {bank}).")
        else:
            lines.append(f"{STATS} Avg fuel correction (Bank {bank}): {value:.1f}%")

    # Oil & coolant
    if report.oil_pressure_low is None:
        lines.append(f"{INFO} Oil pressure or RPM column missing; check skipped.")
    elif report.oil_pressure_low:
        lines.append(f"{WARN} Oil pressure dropped below {config.oil_pressure_floor:g} psi.")
    else:
        lines.append(f"{PASS} Oil pressure within safe range.")

    if report.coolant_high is None:
        lines.append(f"{INFO} Coolant temp column missing.")
    elif report.coolant_high:
        lines.append(f"{WARN} Coolant temp exceeded {config.coolant_ceiling:g}°F.")
    else:
        lines.append(f"{PASS} Coolant temp within safe limits.")

    # Misfires
    if report.misfires:
        detail = '\n'.join(f"- Cylinder {cyl}: {count:g} misfires" for cyl, count in report.misfires.items())
        lines.append(f"{ALERT} Misfires detected:\n{detail}")
    else:
        lines.append(f"{PASS} No misfires detected.")

    # Best intervals
    for band in config.speed_bands:
        best = report.best_intervals.get(band.label)
        if best is not None:
            icon = LAUNCH if band.from_stop else PULL
            lines.append(f"{icon} Best {_band_title(band.label)} mph: {best:.2f}s")

    return lines


def render_checklist(report: MetricsReport, config: Optional[ReviewConfig] = None) -> str:
    """Newline-delimited checklist text"""
    return '\n'.join(build_checklist(report, config))
