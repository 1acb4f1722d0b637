"""
Plotting of dyno curves and speed overlays
"""

import logging
from typing import Dict, List, Optional

from .constants import AnalysisConstants
from .dyno import DynoCurve

logger = logging.getLogger(__name__)


# Lazy imports for heavy dependencies
def _import_matplotlib():
    import matplotlib.pyplot as plt
    return plt


class Plotter:
    """Dyno-sheet and overlay charts"""

    def __init__(self, dpi: int = 150):
        self.dpi = dpi

    def _finish(self, plt, fig, save_path: Optional[str]) -> None:
        fig.tight_layout()
        if save_path:
            fig.savefig(save_path, dpi=self.dpi, bbox_inches='tight')
            logger.info("Plot saved to %s", save_path)
        else:
            plt.show()
        plt.close(fig)

    def plot_dyno(self, curve: DynoCurve, save_path: Optional[str] = None, title: Optional[str] = None) -> None:
        """
        Power and torque against RPM on twin axes

        Args:
            curve: Absolute or relative dyno curve
            save_path: Write the figure here instead of showing it
            title: Optional custom title
        """
        if not curve.points:
            raise ValueError("Dyno curve has no points to plot.")

        plt = _import_matplotlib()
        fig, ax1 = plt.subplots(figsize=(12, 7))
        ax2 = ax1.twinx()

        rpm = [p.rpm for p in curve.points]
        hp = [p.hp for p in curve.points]
        torque_pts = [(p.rpm, p.torque) for p in curve.points if p.torque is not None]

        power_label = 'Power (relative)' if curve.is_relative else 'Power (HP)'
        torque_label = 'Torque (relative)' if curve.is_relative else 'Torque (lb-ft)'

        ax1.plot(rpm, hp, color='blue', linewidth=2, label=power_label)
        if torque_pts:
            ax2.plot([r for r, _ in torque_pts], [t for _, t in torque_pts],
                     color='red', linewidth=2, linestyle=':', label=torque_label)

        # HP and torque cross at 5252 RPM on a shared scale
        crossover_rpm = AnalysisConstants.HP_TORQUE_CROSSOVER_RPM
        if min(rpm) < crossover_rpm < max(rpm):
            ax1.axvline(x=crossover_rpm, color='gray', linestyle='--', alpha=0.5, linewidth=1)

        top = max(hp + [t for _, t in torque_pts]) * 1.1
        if top > 0:
            ax1.set_ylim(0, top)
            ax2.set_ylim(0, top)

        ax1.set_xlabel('Engine Speed (RPM)', fontsize=12, fontweight='bold')
        ax1.set_ylabel(power_label, fontsize=12, fontweight='bold', color='blue')
        ax2.set_ylabel(torque_label, fontsize=12, fontweight='bold', color='red')
        ax1.tick_params(axis='y', labelcolor='blue')
        ax2.tick_params(axis='y', labelcolor='red')
        ax1.grid(True, alpha=0.3)

        lines1, labels1 = ax1.get_legend_handles_labels()
        lines2, labels2 = ax2.get_legend_handles_labels()
        ax1.legend(lines1 + lines2, labels1 + labels2, loc='best')
        ax1.set_title(title or 'Estimated Power and Torque', fontsize=14, fontweight='bold')

        if curve.peak_hp is not None:
            peak_info = f"Peak Power: {curve.peak_hp.value:.1f} {curve.units} @ {curve.peak_hp.rpm:.0f} RPM"
            if curve.peak_torque is not None:
                peak_info += f" | Peak Torque: {curve.peak_torque.value:.1f} @ {curve.peak_torque.rpm:.0f} RPM"
            plt.figtext(0.02, -0.03, peak_info, fontsize=10, style='italic')

        self._finish(plt, fig, save_path)

    def plot_overlay(self, series: List[Dict], save_path: Optional[str] = None, title: Optional[str] = None) -> None:
        """Speed vs time for each ``{label, points:[{t, v}]}`` series"""
        if not series:
            raise ValueError("No series to plot.")

        plt = _import_matplotlib()
        fig, ax = plt.subplots(figsize=(12, 6))
        for entry in series:
            points = entry['points']
            ax.plot([p['t'] for p in points], [p['v'] for p in points], linewidth=2, label=entry['label'])

        ax.set_xlabel('Time (seconds)', fontsize=12)
        ax.set_ylabel('Vehicle Speed (mph)', fontsize=12)
        ax.set_title(title or 'Log Comparison', fontsize=14, fontweight='bold')
        ax.grid(True, alpha=0.3)
        ax.legend(loc='best')

        self._finish(plt, fig, save_path)
