"""
Observations payload and the external advisory text generator
"""

import json
import logging
from typing import Dict, List, Optional

import numpy as np
import requests

from .channels import Channels
from .config import AdvisorySettings
from .constants import AnalysisConstants
from .data_loader import TelemetryTable
from .errors import DownstreamUnavailable
from .prompts import build_messages, is_naturally_aspirated, sanitize_tone, strip_boost_language

logger = logging.getLogger(__name__)

ADVISORY_FALLBACK = 'AI summary unavailable.'

_SAMPLE_FIELDS = (
    ('rpm', Channels.RPM),
    ('airmass', Channels.AIRMASS),
    ('knock', Channels.KNOCK_RETARD),
    ('t', Channels.TIME),
)


def sample_rows(table: TelemetryTable, stride: int = AnalysisConstants.DEFAULT_AI_SAMPLE_STRIDE) -> List[Dict[str, float]]:
    """
    Every ``stride``-th row reduced to RPM, airmass, knock and time

    Rows missing any of the four values are dropped.
    """
    if not all(table.has_column(column) for _, column in _SAMPLE_FIELDS):
        return []

    columns = {key: table.numeric(column)[::stride] for key, column in _SAMPLE_FIELDS}
    complete = ~np.any([np.isnan(values) for values in columns.values()], axis=0)
    return [
        {key: float(values[i]) for key, values in columns.items()}
        for i in np.flatnonzero(complete)
    ]


def build_observations(checklist: str, table: TelemetryTable,
                       stride: int = AnalysisConstants.DEFAULT_AI_SAMPLE_STRIDE) -> Dict:
    """Checklist text plus a decimated sample, as handed to the generator"""
    sampled = sample_rows(table, stride)
    logger.debug("Sampled %d of %d rows for the advisory payload", len(sampled), len(table))
    text = checklist.strip()
    if sampled:
        text += "\n\nSampled rows (rpm, airmass, knock, t):\n" + json.dumps(sampled, indent=2)
    return {'observations': text, 'sampled': sampled}


class AdvisoryClient:
    """OpenAI-compatible chat completion client for the advisory narrative"""

    def __init__(self, settings: Optional[AdvisorySettings] = None, session: Optional[requests.Session] = None):
        self.settings = settings or AdvisorySettings.from_env()
        self.session = session or requests.Session()

    def generate(self, observations: str, meta: Optional[Dict[str, str]] = None) -> str:
        """
        Advisory prose for an observations payload

        Raises:
            DownstreamUnavailable: not configured, unreachable, HTTP error or
                an empty/garbled reply
        """
        if not self.settings.enabled:
            raise DownstreamUnavailable("Advisory generator is not configured (no API key).")

        payload = {
            'model': self.settings.model,
            'messages': build_messages(observations, meta),
            'temperature': self.settings.temperature,
        }
        headers = {'Authorization': f"Bearer {self.settings.api_key}"}

        try:
            response = self.session.post(self.settings.api_url, json=payload, headers=headers,
                                         timeout=self.settings.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            raise DownstreamUnavailable(f"Advisory request failed: {e}") from e
        except ValueError as e:
            raise DownstreamUnavailable(f"Advisory reply was not JSON: {e}") from e

        try:
            text = (body['choices'][0]['message']['content'] or '').strip()
        except (KeyError, IndexError, TypeError) as e:
            raise DownstreamUnavailable(f"Unexpected advisory reply shape: {e}") from e
        if not text:
            raise DownstreamUnavailable("Advisory reply was empty.")

        text = sanitize_tone(text)
        if is_naturally_aspirated(meta):
            text = strip_boost_language(text)
        return text
