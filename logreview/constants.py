"""
Constants and analysis parameters for datalog review
"""


class AnalysisConstants:
    """Constants used throughout the log review"""

    # Physics constants
    HP_TORQUE_CROSSOVER_RPM = 5252
    FT_LBF_PER_SEC_PER_HP = 550
    GRAVITY_FTS2 = 32.174
    MPH_TO_FTS = 5280 / 3600
    KPA_TO_PSI = 0.1450377377
    SEA_LEVEL_BARO_KPA = 101.325

    # WOT and interval defaults
    DEFAULT_WOT_THRESHOLD = 86
    DEFAULT_STOP_SPEED_MPH = 1.5

    # Safety thresholds
    DEFAULT_KNOCK_SENSOR_VOLTS = 3.0
    DEFAULT_OIL_PRESSURE_FLOOR_PSI = 20
    DEFAULT_OIL_MIN_RPM = 500
    DEFAULT_COOLANT_CEILING_F = 230
    DEFAULT_FUEL_TRIM_VARIANCE = 10
    DEFAULT_MISFIRE_GLITCH_DELTA = 1000

    # Dyno defaults
    DEFAULT_RPM_BIN_WIDTH = 50
    DEFAULT_SMOOTHING_WINDOW = 5
    DEFAULT_MIN_SWEEP_SAMPLES = 10
    RELATIVE_PEAK_SCORE = 100

    # Advisory payload
    DEFAULT_AI_SAMPLE_STRIDE = 400

    # Log layouts
    DYNAMIC_DATA_OFFSET = 4  # header + units + 2 spacer rows
    FIXED_HEADER_LINE = 15
    FIXED_DATA_LINE = 19
