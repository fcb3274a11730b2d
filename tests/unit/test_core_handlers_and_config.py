# tests/unit/test_core_handlers_and_config.py
from __future__ import annotations

import logging
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel, ValidationError

from loadgen.core.config import GeneratorConfig, StubGatewaySettings, load_config
from loadgen.core.errors import ConfigError, LoadGenError, register_exception_handlers
from loadgen.core.logging import LOGGER_NAME, json_log, setup_logging

URL = "http://gateway.test/transactions"


# module level so FastAPI can resolve the postponed annotation
class EchoBody(BaseModel):
    amount: int


def test_defaults():
    c = load_config(gateway_url=URL)
    assert c.number_of_threads == 10
    assert c.number_of_transactions == 1000
    assert c.request_timeout_s == 5.0
    assert c.shutdown_grace_s == 5.0
    assert c.dispatch_mode == "serial"
    assert c.is_serial


def test_reads_payment_demo_env(monkeypatch):
    monkeypatch.setenv("PAYMENT_DEMO_GATEWAY_URL", URL)
    monkeypatch.setenv("PAYMENT_DEMO_NUMBER_OF_THREADS", "3")
    monkeypatch.setenv("PAYMENT_DEMO_NUMBER_OF_TRANSACTIONS", "42")
    c = load_config()
    assert (c.gateway_url, c.number_of_threads, c.number_of_transactions) == (URL, 3, 42)


def test_reads_dotenv_file(tmp_path: Path):
    # conftest chdirs into tmp_path
    (tmp_path / ".env").write_text(f"PAYMENT_DEMO_GATEWAY_URL={URL}\n", encoding="utf-8")
    assert load_config().gateway_url == URL


def test_overrides_win_and_none_is_ignored(monkeypatch):
    monkeypatch.setenv("PAYMENT_DEMO_GATEWAY_URL", URL)
    monkeypatch.setenv("PAYMENT_DEMO_NUMBER_OF_THREADS", "3")
    c = load_config(number_of_threads=None, number_of_transactions=7)
    assert c.number_of_threads == 3
    assert c.number_of_transactions == 7


def test_missing_gateway_url_is_fatal():
    with pytest.raises(ConfigError) as ei:
        load_config()
    assert ei.value.param == "gateway_url"
    assert ei.value.code == "invalid_config"


def test_empty_gateway_url_is_fatal():
    with pytest.raises(ConfigError) as ei:
        load_config(gateway_url="   ")
    assert ei.value.message == "The payments gateway URI is a required setting."


@pytest.mark.parametrize(
    "url",
    [
        "not a uri",
        "ftp://host/x",
        "/transactions",
        "http://",
        "gateway.test:8080",
        "http://localhost:abc/transactions",
        "http://exa mple.com/tx",
        "http://[::1/tx",
    ],
)
def test_malformed_gateway_url_is_fatal(url):
    with pytest.raises(ConfigError) as ei:
        load_config(gateway_url=url)
    assert ei.value.message == "The payments gateway URI must be a valid URI value."


@pytest.mark.parametrize("url", ["http://127.0.0.1:8080/transactions", "https://gateway.test/v1/tx?x=1"])
def test_well_formed_gateway_url_is_kept(url):
    assert load_config(gateway_url=url).gateway_url == url


@pytest.mark.parametrize("field", ["number_of_threads", "number_of_transactions"])
def test_counts_must_be_positive(field):
    with pytest.raises(ConfigError) as ei:
        load_config(gateway_url=URL, **{field: 0})
    assert ei.value.param == field


def test_log_level_is_normalized_and_checked():
    assert load_config(gateway_url=URL, log_level="debug").log_level == "DEBUG"
    with pytest.raises(ConfigError):
        load_config(gateway_url=URL, log_level="chatty")


def test_config_is_immutable():
    c = GeneratorConfig(gateway_url=URL)
    with pytest.raises(ValidationError):
        c.number_of_threads = 99


def test_stub_settings_currency_list(monkeypatch):
    monkeypatch.setenv("STUB_GATEWAY_ACCEPTED_CURRENCIES", "usd, eur ,")
    assert StubGatewaySettings().accepted_currency_list() == ["USD", "EUR"]


def test_setup_logging_adds_handlers_once(tmp_path: Path):
    logger = logging.getLogger(LOGGER_NAME)
    saved = list(logger.handlers)
    logger.handlers.clear()
    try:
        c = load_config(gateway_url=URL, log_path=str(tmp_path / "logs" / "run.log"))
        setup_logging(c)
        setup_logging(c)
        assert len(logger.handlers) == 2
        json_log(logger, {"event": "probe", "seq": 1})
        for h in logger.handlers:
            h.flush()
        assert '"event": "probe"' in (tmp_path / "logs" / "run.log").read_text(encoding="utf-8")
    finally:
        for h in logger.handlers:
            h.close()
        logger.handlers[:] = saved


def test_register_exception_handlers_loadgen_error_shape():
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/boom")
    def boom():
        raise LoadGenError("bad_request", "nope", param="x")

    r = TestClient(app).get("/boom")
    assert r.status_code == 400
    j = r.json()
    assert j["error"]["code"] == "bad_request"
    assert j["error"]["message"] == "nope"
    assert j["error"]["param"] == "x"


def test_register_exception_handlers_validation_shape():
    app = FastAPI()
    register_exception_handlers(app)

    @app.post("/echo")
    def echo(body: EchoBody):
        return body

    r = TestClient(app).post("/echo", json={"amount": "lots"})
    assert r.status_code == 422
    j = r.json()
    assert j["error"]["code"] == "invalid_transaction"
    assert j["error"]["param"] == "amount"


def test_register_exception_handlers_unhandled_shape():
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/crash")
    def crash():
        raise RuntimeError("kaboom")

    r = TestClient(app, raise_server_exceptions=False).get("/crash")
    assert r.status_code == 500
    j = r.json()
    assert j["error"]["code"] == "internal_error"
    assert "RuntimeError" in j["error"]["message"]
