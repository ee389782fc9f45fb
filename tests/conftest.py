# Ensure project root is importable
import pathlib, sys
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import requests

import graph_api
from token_storage import AccessTokenProvider, TokenStorage


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=None):
        self._payload = payload
        self.status_code = status_code
        self.ok = 200 <= status_code < 400
        self.text = text if text is not None else str(payload)

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self):
        if not self.ok:
            raise requests.exceptions.HTTPError(f"HTTP {self.status_code}")


class GraphRecorder:
    """Stands in for requests.request inside graph_api and records every call."""

    def __init__(self):
        self.calls = []
        self.responses = []

    def queue(self, payload=None, status_code=200):
        self.responses.append(FakeResponse(payload, status_code))

    def __call__(self, method, url, **kwargs):
        self.calls.append({'method': method, 'url': url, **kwargs})
        if not self.responses:
            return FakeResponse({'data': []})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def graph(monkeypatch):
    recorder = GraphRecorder()
    monkeypatch.setattr(graph_api.requests, 'request', recorder)
    return recorder


@pytest.fixture
def storage(tmp_path):
    return TokenStorage(str(tmp_path / 'tokens.json'))


@pytest.fixture
def provider(storage, monkeypatch):
    monkeypatch.delenv('FB_ACCESS_TOKEN', raising=False)
    return AccessTokenProvider(storage=storage, argv=[])


@pytest.fixture
def authed_provider(provider):
    provider.set('EAAB-test-token')
    return provider
