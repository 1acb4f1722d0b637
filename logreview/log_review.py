#!/usr/bin/env python3
"""
Datalog Review Tool for HP Tuners CSV exports
Builds a diagnostic checklist, acceleration times, an estimated dyno curve and
an optional AI-written summary from a single log.
"""

import argparse
import json
import logging
import sys

from .advisory import AdvisoryClient
from .analyzer import LogReviewer
from .config import AdvisorySettings, ReviewConfig, SpeedBand
from .constants import AnalysisConstants
from .data_loader import LogLayout
from .dyno import DynoFailure
from .errors import LogReviewError
from .plotting import Plotter

LAYOUTS = {'dynamic': LogLayout.DYNAMIC, 'fixed': LogLayout.FIXED_OFFSET}


def _parse_meta(pairs):
    meta = {}
    for pair in pairs or []:
        key, sep, value = pair.partition('=')
        if not sep:
            raise argparse.ArgumentTypeError(f"Expected key=value, got {pair!r}")
        meta[key.strip()] = value.strip()
    return meta


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Review an HP Tuners datalog: knock, timing, boost, trims, oil, coolant, misfires, '
                    'acceleration times and an estimated dyno curve',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Basic review (header row found automatically)
  logreview log.csv

  # Estimated HP / lb-ft instead of a relative curve
  logreview log.csv --weight 4400 --plot-dyno dyno.png

  # Stored/leaderboard export with the header on line 16
  logreview log.csv --layout fixed --detail 60-130

  # Compare against another log
  logreview log.csv --overlay other.csv --out overlay.png

  # AI summary (needs OPENAI_API_KEY)
  logreview log.csv --meta year=2019 --meta model=Charger --meta power=N/A
        """
    )

    # Required arguments
    parser.add_argument('csv_file', help='Path to CSV log file')
    parser.add_argument('--layout', choices=sorted(LAYOUTS), default='dynamic',
                        help='Header detection: dynamic search or fixed line 16 (default: dynamic)')

    # Vehicle
    parser.add_argument('--weight', type=float, default=None,
                        help='Vehicle weight in lb; omit for a relative (peak = 100) dyno curve')
    parser.add_argument('--meta', action='append', metavar='KEY=VALUE',
                        help='Vehicle metadata for the AI summary (repeatable)')

    # Thresholds
    parser.add_argument('--wot-threshold', type=float, default=AnalysisConstants.DEFAULT_WOT_THRESHOLD,
                        help='Pedal/throttle %% for WOT (default: 86)')
    parser.add_argument('--knock-volts', type=float, default=AnalysisConstants.DEFAULT_KNOCK_SENSOR_VOLTS,
                        help='Knock sensor warning voltage (default: 3.0)')
    parser.add_argument('--oil-floor', type=float, default=AnalysisConstants.DEFAULT_OIL_PRESSURE_FLOOR_PSI,
                        help='Minimum oil pressure in psi above 500 RPM (default: 20)')
    parser.add_argument('--coolant-ceiling', type=float, default=AnalysisConstants.DEFAULT_COOLANT_CEILING_F,
                        help='Maximum coolant temp in °F (default: 230)')
    parser.add_argument('--trim-variance', type=float, default=AnalysisConstants.DEFAULT_FUEL_TRIM_VARIANCE,
                        help='Maximum LTFT difference between banks in %% (default: 10)')
    parser.add_argument('--stop-speed', type=float, default=AnalysisConstants.DEFAULT_STOP_SPEED_MPH,
                        help='Speed in mph treated as stopped for 0-N timing (default: 1.5)')
    parser.add_argument('--bands', nargs='+', metavar='START-END',
                        help='Speed bands to time (default: 0-60 40-100 60-130)')

    # Dyno
    parser.add_argument('--bin-width', type=float, default=AnalysisConstants.DEFAULT_RPM_BIN_WIDTH,
                        help='RPM bin width for the dyno curve (default: 50)')
    parser.add_argument('--smoothing-window', type=int, default=AnalysisConstants.DEFAULT_SMOOTHING_WINDOW,
                        help='Moving average window in samples (default: 5)')
    parser.add_argument('--min-sweep', type=int, default=AnalysisConstants.DEFAULT_MIN_SWEEP_SAMPLES,
                        help='Minimum samples in a usable RPM sweep (default: 10)')

    # Output options
    parser.add_argument('--no-advisory', action='store_true', help='Skip the AI summary')
    parser.add_argument('--json', action='store_true', help='Print the structured result as JSON')
    parser.add_argument('--plot-dyno', metavar='PATH', help='Save the dyno curve plot')
    parser.add_argument('--overlay', metavar='CSV', help='Second log (same --layout) to compare speed traces against')
    parser.add_argument('--out', help='Output file for the overlay plot (optional)')
    parser.add_argument('--detail', metavar='START-END',
                        help='Print the best run and speed trace for a band')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')
    return parser


def main(argv=None):
    """Main entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    try:
        meta = _parse_meta(args.meta)
        if args.weight is not None and args.weight <= 0:
            raise ValueError("--weight must be a positive number of lb")
        bands = tuple(SpeedBand.from_label(b) for b in args.bands) if args.bands else None
        config_kwargs = dict(
            wot_threshold=args.wot_threshold,
            knock_sensor_volts=args.knock_volts,
            oil_pressure_floor=args.oil_floor,
            coolant_ceiling=args.coolant_ceiling,
            fuel_trim_variance=args.trim_variance,
            stop_speed=args.stop_speed,
            rpm_bin_width=args.bin_width,
            smoothing_window=args.smoothing_window,
            min_sweep_samples=args.min_sweep,
        )
        if bands:
            config_kwargs['speed_bands'] = bands
        config = ReviewConfig(**config_kwargs)
    except (ValueError, argparse.ArgumentTypeError) as e:
        parser.error(str(e))

    advisory_client = None
    if not args.no_advisory:
        settings = AdvisorySettings.from_env()
        if settings.enabled:
            advisory_client = AdvisoryClient(settings)

    try:
        reviewer = LogReviewer(config, advisory_client, LAYOUTS[args.layout])
        with open(args.csv_file, 'r', encoding='utf-8', errors='replace') as f:
            content = f.read()

        result = reviewer.review(content, weight_lb=args.weight, meta=meta)

        if args.json:
            print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        else:
            print(reviewer.generate_report(result))

        plotter = Plotter()
        if args.plot_dyno:
            if result.dyno is None or isinstance(result.dyno, DynoFailure):
                print("No dyno curve to plot.")
            else:
                plotter.plot_dyno(result.dyno, args.plot_dyno)

        if args.overlay:
            series = reviewer.overlay([args.csv_file, args.overlay], layout=LAYOUTS[args.layout])
            plotter.plot_overlay(series, args.out)

        if args.detail:
            detail = reviewer.run_detail(content, args.detail, layout=LAYOUTS[args.layout])
            print(json.dumps(detail, indent=2))

    except (LogReviewError, OSError) as e:
        print(f"Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
