"""
Error taxonomy for log review

Every error carries the pipeline ``stage`` it came from so callers can tell
a parse failure from a save failure.
"""


class LogReviewError(Exception):
    """Base class for all log review errors"""
    stage = "analysis"


class ParseError(LogReviewError, ValueError):
    """Malformed or empty CSV, missing header, no data rows or missing required columns"""
    stage = "parse"


class MetricUnavailable(LogReviewError):
    """A column required by one metric is absent"""
    stage = "metric"

    def __init__(self, metric: str, column: str):
        super().__init__(f"{metric}: column '{column}' not found")
        self.metric = metric
        self.column = column


class SweepUnavailable(LogReviewError):
    """No usable RPM sweep for the dyno curve"""
    stage = "sweep"


class DownstreamUnavailable(LogReviewError):
    """The advisory text generator could not be reached or returned garbage"""
    stage = "advisory"


class StorageError(LogReviewError):
    """Persisting a run failed after all retries"""
    stage = "save"
