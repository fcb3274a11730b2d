# loadgen/core/config.py
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Optional
from urllib.parse import urlsplit

import httpx
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from loadgen.core.errors import ConfigError

DispatchMode = Literal["serial", "concurrent"]


class GeneratorConfig(BaseSettings):
    """
    Run parameters, read once at startup and never changed afterwards.

    Environment variables use the PAYMENT_DEMO_ prefix, e.g.
    PAYMENT_DEMO_GATEWAY_URL=http://localhost:8080/transactions
    """
    model_config = SettingsConfigDict(
        env_prefix="PAYMENT_DEMO_",
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    # Load shape
    number_of_threads: int = Field(default=10, gt=0, description="Worker pool size")
    number_of_transactions: int = Field(default=1000, gt=0, description="Total requests to send")
    gateway_url: str = Field(..., description="Payments gateway endpoint (absolute URI)")

    # Timeouts (seconds)
    request_timeout_s: float = Field(default=5.0, gt=0)
    shutdown_grace_s: float = Field(default=5.0, ge=0)

    # "serial" waits for every request before sending the next one
    dispatch_mode: DispatchMode = "serial"

    # Logging / outputs
    log_level: str = "INFO"
    log_path: Optional[str] = None
    report_dir: Optional[str] = None

    @field_validator("gateway_url")
    @classmethod
    def validate_gateway_url(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("The payments gateway URI is a required setting.")
        invalid = "The payments gateway URI must be a valid URI value."
        # same parser the client uses, so bad ports and hosts fail here
        try:
            parts = urlsplit(v)
            url = httpx.URL(v)
        except (ValueError, httpx.InvalidURL) as e:
            raise ValueError(invalid) from e
        if parts.scheme not in ("http", "https") or not parts.netloc or any(c.isspace() for c in v):
            raise ValueError(invalid)
        if not url.host:
            raise ValueError(invalid)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    # --- derived helpers ---
    @property
    def is_serial(self) -> bool:
        return self.dispatch_mode == "serial"

    def abs_log_path(self) -> Optional[Path]:
        return Path(self.log_path).resolve() if self.log_path else None

    def abs_report_dir(self) -> Optional[Path]:
        return Path(self.report_dir).resolve() if self.report_dir else None


def _config_error(exc: ValidationError) -> ConfigError:
    err = exc.errors()[0]
    param = ".".join(str(p) for p in err.get("loc", ())) or None
    msg = err.get("msg", "invalid configuration")
    # pydantic prefixes messages raised from validators
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    if err.get("type") == "missing":
        msg = f"{param} is a required setting."
    return ConfigError(msg, param=param)


def load_config(**overrides: Any) -> GeneratorConfig:
    """
    Build the config from env/.env, with explicit overrides taking priority.
    None-valued overrides are ignored so unset CLI flags fall back to env.
    """
    values = {k: v for k, v in overrides.items() if v is not None}
    try:
        return GeneratorConfig(**values)
    except ValidationError as exc:
        raise _config_error(exc) from exc


class StubGatewaySettings(BaseSettings):
    """Knobs for the local stub gateway (loadgen.gateway_stub)."""
    model_config = SettingsConfigDict(env_prefix="STUB_GATEWAY_", env_file=".env", extra="ignore")

    # amounts above this are declined
    decline_over: int = 900
    # restrict accepted currencies; anything else gets an ERR status
    accepted_currencies: str = "USD"

    def accepted_currency_list(self) -> list[str]:
        return [c.strip().upper() for c in self.accepted_currencies.split(",") if c.strip()]


@lru_cache
def get_stub_settings() -> StubGatewaySettings:
    return StubGatewaySettings()
