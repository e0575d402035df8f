"""Shared fakes for the recipe cache tests."""

import threading

from recipecache.exceptions import UpstreamError
from recipecache.fallback import StaticFallbackDataset
from recipecache.orchestrator import FallbackOrchestrator
from recipecache.payloads import RecipeDetail, RecipeSummary
from recipecache.quota import QuotaLedger
from recipecache.store import default_stores


class _MockResponse:
    def __init__(self, json_data=None, status=200, text="OK", headers=None):
        self._json = json_data
        self.status_code = status
        self.text = text
        self.headers = headers or {}

    def json(self):
        if isinstance(self._json, Exception):
            raise self._json
        return self._json


class FakeAdapter:
    """Stands in for an EndpointAdapter; returns ``result`` or raises it."""

    def __init__(self, endpoint, result=None, gate=None):
        self.endpoint = endpoint
        self.result = result
        self.gate = gate
        self.calls = []
        self._lock = threading.Lock()

    def call(self, params):
        with self._lock:
            self.calls.append(params)
        if self.gate is not None:
            self.gate.wait(5)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def failing(endpoint):
    return FakeAdapter(endpoint, UpstreamError("boom", endpoint=endpoint, status_code=503))


def summary(rid, title):
    return RecipeSummary(id=rid, title=title, cuisines=["italian"])


def detail(rid, title, **kwargs):
    return RecipeDetail(id=rid, title=title, **kwargs)


def build_orchestrator(adapters=None, recipes=(), limit=150, buffer=10, single_flight=False):
    adapters = dict(adapters or {})
    for kind in ("search", "recipe", "ingredients", "popular"):
        adapters.setdefault(kind, failing(kind))
    return FallbackOrchestrator(
        stores=default_stores(),
        ledger=QuotaLedger(limit=limit, buffer=buffer),
        adapters=adapters,
        dataset=StaticFallbackDataset(recipes),
        single_flight=single_flight,
    )
