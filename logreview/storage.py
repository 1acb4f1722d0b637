"""
Persisting submitted runs
"""

import json
import logging
import os
import tempfile
import time
import uuid
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple, TypeVar

from .advisory import sample_rows
from .constants import AnalysisConstants
from .data_loader import TelemetryTable
from .errors import StorageError

logger = logging.getLogger(__name__)

T = TypeVar('T')

VEHICLE_FIELDS = ('year', 'model', 'engine', 'injectors', 'map', 'throttle',
                  'power', 'trans', 'tire', 'gear', 'fuel')


def with_retry(fn: Callable[[], T], tries: int = 3, delay: float = 0.25,
               retry_on: Tuple[type, ...] = (OSError,),
               sleep: Callable[[float], None] = time.sleep) -> T:
    """
    Call ``fn`` until it succeeds, waiting ``delay * attempt`` between tries

    Raises:
        StorageError: every attempt failed; the last error is chained
    """
    last_error = None
    for attempt in range(1, tries + 1):
        try:
            return fn()
        except retry_on as e:
            last_error = e
            logger.warning("Insert attempt %d/%d failed: %s", attempt, tries, e)
            if attempt < tries:
                sleep(delay * attempt)
    raise StorageError(f"Failed to store run after {tries} attempts: {last_error}") from last_error


def _blank_to_none(value):
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def build_run_payload(table: TelemetryTable, vehicle_info: Optional[Dict] = None,
                      interval: Optional[str] = None, time_seconds: Optional[float] = None,
                      consented: bool = False, log_path: Optional[str] = None,
                      stride: int = AnalysisConstants.DEFAULT_AI_SAMPLE_STRIDE) -> Dict:
    """Row for the runs store: sampled log, vehicle fields and leaderboard entry"""
    vehicle_info = dict(vehicle_info or {})
    payload = {
        'user_alias': _blank_to_none(vehicle_info.get('name')),
        'vehicle_info': vehicle_info or None,
        'sampled_log': sample_rows(table, stride),
        'consented': bool(consented),
        'log_path': log_path,
        'interval': _blank_to_none(interval),
        'time_seconds': time_seconds,
        'vin': _blank_to_none(vehicle_info.get('vin')),
    }
    for name in VEHICLE_FIELDS:
        payload[f'vehicle_{name}'] = _blank_to_none(vehicle_info.get(name))
    return payload


class RunStore(ABC):
    """Insert-with-retry front for a run backend; subclasses provide ``insert``"""

    def __init__(self, tries: int = 3, delay: float = 0.25, sleep: Callable[[float], None] = time.sleep):
        self.tries = tries
        self.delay = delay
        self.sleep = sleep

    @abstractmethod
    def insert(self, payload: Dict) -> str:
        """Store one run and return its id"""

    def save(self, payload: Dict) -> Dict:
        run_id = with_retry(lambda: self.insert(payload), self.tries, self.delay, sleep=self.sleep)
        logger.info("Stored run %s", run_id)
        return {
            'runId': run_id,
            'stored': True,
            'leaderboard': bool(payload.get('interval') and payload.get('time_seconds') is not None),
            'trainingQueued': bool(payload.get('consented')),
        }


class FileRunStore(RunStore):
    """One JSON document per run in a directory"""

    def __init__(self, directory: str, **kwargs):
        super().__init__(**kwargs)
        self.directory = directory

    def insert(self, payload: Dict) -> str:
        os.makedirs(self.directory, exist_ok=True)
        run_id = str(uuid.uuid4())
        # Written beside the target and renamed so a reader never sees half a document
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump({'id': run_id, **payload}, f, indent=2)
            os.replace(tmp_path, os.path.join(self.directory, f'{run_id}.json'))
        except Exception:
            os.unlink(tmp_path)
            raise
        return run_id

    def load(self, run_id: str) -> Dict:
        with open(os.path.join(self.directory, f'{run_id}.json'), 'r', encoding='utf-8') as f:
            return json.load(f)
