import pytest
import requests

from logreview.advisory import AdvisoryClient, build_observations, sample_rows
from logreview.config import AdvisorySettings
from logreview.data_loader import TelemetryTable
from logreview.errors import DownstreamUnavailable
from logreview.prompts import build_messages, sanitize_tone, strip_boost_language, FEW_SHOTS

from conftest import PULL_HEADERS, pull_rows


class FakeResponse:

    def __init__(self, body=None, status=200):
        self.body = body
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self.body is None:
            raise ValueError("no json")
        return self.body


class FakeSession:

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def _reply(text):
    return FakeResponse({'choices': [{'message': {'content': text}}]})


SETTINGS = AdvisorySettings(api_key='test-key')


def test_sample_rows_keeps_complete_rows_only():
    headers = ['Offset', 'Engine RPM (SAE)', 'Cylinder Airmass', 'Total Knock Retard']
    rows = [[0, 800, 0.2, 0], [1, 900, 0.2, 0], [2, 1000, None, 0], [3, 1100, 0.3, 0], [4, 1200, 0.3, 1]]
    sampled = sample_rows(TelemetryTable.from_rows(headers, rows), stride=2)
    assert sampled == [
        {'rpm': 800.0, 'airmass': 0.2, 'knock': 0.0, 't': 0.0},
        {'rpm': 1200.0, 'airmass': 0.3, 'knock': 1.0, 't': 4.0},
    ]


def test_sample_rows_without_columns_is_empty():
    assert sample_rows(TelemetryTable.from_rows(['Offset', 'A'], [[0, 1]])) == []


def test_observations_payload():
    table = TelemetryTable.from_rows(PULL_HEADERS, pull_rows())
    payload = build_observations("✅ No knock detected.", table, stride=400)
    assert payload['sampled'] == [{'rpm': 800.0, 'airmass': 0.15, 'knock': 0.0, 't': 0.0}]
    assert payload['observations'].startswith("✅ No knock detected.")


def test_generate_posts_chat_completion():
    session = FakeSession(_reply("Summary\nAll good."))
    text = AdvisoryClient(SETTINGS, session).generate("obs", {'fuel': '93'})
    assert text == "Summary\nAll good."
    url, kwargs = session.calls[0]
    assert url == SETTINGS.api_url
    assert kwargs['headers']['Authorization'] == 'Bearer test-key'
    assert kwargs['json']['messages'][-1]['content'].endswith('obs')


@pytest.mark.parametrize('session', [
    FakeSession(error=requests.ConnectionError("down")),
    FakeSession(FakeResponse({'error': 'x'}, status=500)),
    FakeSession(FakeResponse(None)),
    FakeSession(FakeResponse({'choices': []})),
    FakeSession(_reply("   ")),
])
def test_generate_failures_are_downstream_unavailable(session):
    with pytest.raises(DownstreamUnavailable):
        AdvisoryClient(SETTINGS, session).generate("obs")


def test_unconfigured_client_is_unavailable():
    session = FakeSession(_reply("never"))
    with pytest.raises(DownstreamUnavailable):
        AdvisoryClient(AdvisorySettings(), session).generate("obs")
    assert session.calls == []


def test_boost_lines_dropped_for_na_power_adder():
    session = FakeSession(_reply("Summary\nBoost held 8 psi.\nTiming looks clean."))
    text = AdvisoryClient(SETTINGS, session).generate("obs", {'power': 'N/A'})
    assert text == "Summary\nTiming looks clean."


def test_tone_is_softened():
    assert sanitize_tone("You should fix the tune.") == "it may be worth address the tune."
    assert strip_boost_language("a\nPSI high\nb") == "a\nb"


def test_messages_include_style_guide_and_examples():
    messages = build_messages("obs", {'model': 'Charger'})
    assert messages[0]['role'] == 'system'
    assert len(messages) == 2 + 2 * len(FEW_SHOTS)
    assert 'model: Charger' in messages[-1]['content']


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv('OPENAI_API_KEY', 'abc')
    monkeypatch.setenv('LOGREVIEW_ADVISORY_MODEL', 'local-model')
    settings = AdvisorySettings.from_env()
    assert settings.enabled
    assert settings.model == 'local-model'
