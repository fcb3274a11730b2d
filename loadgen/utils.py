# loadgen/utils.py
from __future__ import annotations

import time
from datetime import datetime, timezone


def latency_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


def now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")
