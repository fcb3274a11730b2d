# loadgen/services/counters.py
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np

from loadgen.schemas import TransactionStatus


@dataclass(frozen=True)
class RunSummary:
    endpoint: str
    dispatch_mode: str
    threads: int
    target: int

    # core counts
    sent: int
    approved: int
    declined: int
    error: int

    # diagnostics
    unrecognized: int
    decode_failures: int
    status_counts: Dict[str, int]
    latency_ms: Dict[str, float]

    total_seconds: float = 0.0
    throughput_rps: float = 0.0
    cancelled: bool = False

    @property
    def classified(self) -> int:
        return self.approved + self.declined + self.error


def _percentiles(vals: List[float]) -> Dict[str, float]:
    if not vals:
        return {"min": 0.0, "p50": 0.0, "p90": 0.0, "p99": 0.0, "max": 0.0, "mean": 0.0}
    arr = np.array(vals, dtype=float)
    return {
        "min": float(np.min(arr)),
        "p50": float(np.percentile(arr, 50)),
        "p90": float(np.percentile(arr, 90)),
        "p99": float(np.percentile(arr, 99)),
        "max": float(np.max(arr)),
        "mean": float(np.mean(arr)),
    }


def _status_class(http_status: int) -> str:
    if 200 <= http_status < 300:
        return "2xx"
    if 400 <= http_status < 500:
        return "4xx"
    if 500 <= http_status < 600:
        return "5xx"
    return "other"


@dataclass
class RunCounters:
    """
    Tallies for one run. Every mutation takes the same lock, so the counters
    stay exact when several workers report at once.
    """
    sent: int = 0
    approved: int = 0
    declined: int = 0
    error: int = 0
    unrecognized: int = 0
    decode_failures: int = 0
    status_counts: Dict[str, int] = field(
        default_factory=lambda: {"2xx": 0, "4xx": 0, "5xx": 0, "other": 0, "exceptions": 0}
    )
    latencies_ms: List[float] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def record_sent(self) -> int:
        """Returns the running sent count, including this request."""
        with self._lock:
            self.sent += 1
            return self.sent

    def record_response(self, http_status: int, latency_ms: float) -> None:
        with self._lock:
            self.status_counts[_status_class(http_status)] += 1
            self.latencies_ms.append(latency_ms)

    def record_transport_failure(self, latency_ms: float) -> None:
        with self._lock:
            self.status_counts["exceptions"] += 1
            self.latencies_ms.append(latency_ms)

    def record_decode_failure(self) -> None:
        with self._lock:
            self.decode_failures += 1

    def record_outcome(self, status: TransactionStatus) -> None:
        with self._lock:
            if status is TransactionStatus.APPROVED:
                self.approved += 1
            elif status is TransactionStatus.DECLINED:
                self.declined += 1
            elif status is TransactionStatus.ERROR:
                self.error += 1
            else:
                self.unrecognized += 1

    def snapshot(
        self,
        *,
        endpoint: str,
        dispatch_mode: str,
        threads: int,
        target: int,
        total_seconds: float = 0.0,
        cancelled: bool = False,
    ) -> RunSummary:
        with self._lock:
            return RunSummary(
                endpoint=endpoint,
                dispatch_mode=dispatch_mode,
                threads=threads,
                target=target,
                sent=self.sent,
                approved=self.approved,
                declined=self.declined,
                error=self.error,
                unrecognized=self.unrecognized,
                decode_failures=self.decode_failures,
                status_counts=dict(self.status_counts),
                latency_ms=_percentiles(sorted(self.latencies_ms)),
                total_seconds=total_seconds,
                throughput_rps=(self.sent / total_seconds) if total_seconds > 0 else 0.0,
                cancelled=cancelled,
            )
