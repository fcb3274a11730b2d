# tests/conftest.py
from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

# now imports work
from loadgen.gateway_stub import app  # noqa


import json
import threading
from typing import Any, Callable, Dict, List

import httpx
import pytest
from fastapi.testclient import TestClient

from loadgen.core.config import GeneratorConfig, StubGatewaySettings, get_stub_settings

GATEWAY_URL = "http://gateway.test/transactions"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path: Path):
    """
    Keep a developer's PAYMENT_DEMO_* / STUB_GATEWAY_* env and .env out of tests.
    """
    import os

    for k in list(os.environ):
        if k.startswith("PAYMENT_DEMO_") or k.startswith("STUB_GATEWAY_"):
            monkeypatch.delenv(k, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def make_config() -> Callable[..., GeneratorConfig]:
    def _make(**kw: Any) -> GeneratorConfig:
        values: Dict[str, Any] = {
            "gateway_url": GATEWAY_URL,
            "number_of_threads": 4,
            "number_of_transactions": 5,
            "request_timeout_s": 1.0,
            "shutdown_grace_s": 1.0,
        }
        values.update(kw)
        return GeneratorConfig(**values)

    return _make


class ScriptedGateway:
    """
    httpx.MockTransport handler that records every request and answers via
    `responder(request, index)`; tracks the peak number of concurrent calls.
    """

    def __init__(self, responder: Callable[[httpx.Request, int], httpx.Response]):
        self.responder = responder
        self.requests: List[httpx.Request] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            idx = len(self.requests)
            self.requests.append(request)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            return self.responder(request, idx)
        finally:
            with self._lock:
                self.in_flight -= 1

    def bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))


@pytest.fixture()
def scripted_gateway() -> Callable[..., ScriptedGateway]:
    return ScriptedGateway


@pytest.fixture()
def stub_settings() -> StubGatewaySettings:
    return StubGatewaySettings(decline_over=900, accepted_currencies="USD")


@pytest.fixture()
def stub_client(stub_settings: StubGatewaySettings):
    """
    Stub gateway client with settings override. TestClient is an httpx.Client,
    so it can be handed to the dispatcher directly.
    """
    app.dependency_overrides[get_stub_settings] = lambda: stub_settings
    yield TestClient(app)
    app.dependency_overrides.clear()
