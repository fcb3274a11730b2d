# loadgen/services/dispatcher.py
"""
Dispatch loop: drives a fixed number of POSTs at the payments gateway through
a worker pool and tallies what comes back.

In the default "serial" mode the loop waits for each submitted request to
finish before submitting the next one. The pool is sized from config but at
most one request is ever in flight; this keeps memory flat and makes the
number of requests that reach the gateway exact. "concurrent" mode lets up to
`number_of_threads` requests overlap and still sends exactly
`number_of_transactions`.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import Optional, Set

import httpx

from loadgen.core.config import GeneratorConfig
from loadgen.core.errors import DispatcherStateError, ResponseDecodeError
from loadgen.core.logging import json_log
from loadgen.schemas import TransactionResult, TransactionStatus, decode_gateway_response
from loadgen.services.counters import RunCounters, RunSummary
from loadgen.services.payload_generator import PayloadGenerator
from loadgen.utils import latency_ms, now_utc_iso

logger = logging.getLogger(__name__)

REQUEST_HEADERS = {"Content-Type": "application/json"}


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    TERMINATED = "terminated"


class LoadDispatcher:
    def __init__(
        self,
        config: GeneratorConfig,
        client: Optional[httpx.Client] = None,
        generator: Optional[PayloadGenerator] = None,
        stop_event: Optional[threading.Event] = None,
    ):
        self.config = config
        self.generator = generator or PayloadGenerator()
        self.stop_event = stop_event or threading.Event()
        self.counters = RunCounters()
        self.state = RunState.IDLE

        self._client = client
        self._owns_client = client is None
        self._inflight: Set[Future] = set()
        self._state_lock = threading.Lock()

    # ---- public ----

    def stop(self) -> None:
        """Ask a running loop to stop submitting; in-flight work still finishes."""
        self.stop_event.set()

    def run(self) -> RunSummary:
        with self._state_lock:
            if self.state is not RunState.IDLE:
                raise DispatcherStateError(f"dispatcher already used (state={self.state.value})")
            self.state = RunState.RUNNING

        cfg = self.config
        logger.info(
            "Starting with parameters: threads=%d; totalRequests=%d; gatewayUri=%s; mode=%s",
            cfg.number_of_threads,
            cfg.number_of_transactions,
            cfg.gateway_url,
            cfg.dispatch_mode,
        )

        client = self._client or httpx.Client(timeout=cfg.request_timeout_s)
        executor: Optional[ThreadPoolExecutor] = None
        cancelled = False
        t0 = time.perf_counter()
        try:
            executor = ThreadPoolExecutor(max_workers=cfg.number_of_threads, thread_name_prefix="loadgen")
            if cfg.is_serial:
                cancelled = self._run_serial(executor, client)
            else:
                cancelled = self._run_concurrent(executor, client)
        finally:
            self.state = RunState.DRAINING
            if executor is not None:
                self._drain(executor)
            if self._owns_client:
                client.close()
            self.state = RunState.TERMINATED

        summary = self.counters.snapshot(
            endpoint=cfg.gateway_url,
            dispatch_mode=cfg.dispatch_mode,
            threads=cfg.number_of_threads,
            target=cfg.number_of_transactions,
            total_seconds=time.perf_counter() - t0,
            cancelled=cancelled,
        )
        _log_summary(summary)
        return summary

    # ---- loops ----

    def _run_serial(self, executor: ThreadPoolExecutor, client: httpx.Client) -> bool:
        for _ in range(self.config.number_of_transactions):
            if self.stop_event.is_set():
                return True
            fut = executor.submit(self._send_one, client)
            self._inflight = {fut}
            # block here: one request in flight at a time
            fut.result()
            self._inflight = set()
        return False

    def _run_concurrent(self, executor: ThreadPoolExecutor, client: httpx.Client) -> bool:
        target = self.config.number_of_transactions
        limit = self.config.number_of_threads
        submitted = 0
        cancelled = False

        while submitted < target:
            if self.stop_event.is_set():
                cancelled = True
                break
            if len(self._inflight) >= limit:
                done, pending = wait(self._inflight, return_when=FIRST_COMPLETED)
                self._inflight = set(pending)
                for f in done:
                    f.result()
                continue
            self._inflight.add(executor.submit(self._send_one, client))
            submitted += 1

        if not cancelled:
            done, _ = wait(self._inflight)
            self._inflight = set()
            for f in done:
                f.result()
        return cancelled

    def _drain(self, executor: ThreadPoolExecutor) -> None:
        executor.shutdown(wait=False)
        if self._inflight:
            _, not_done = wait(self._inflight, timeout=self.config.shutdown_grace_s)
            if not_done:
                for f in not_done:
                    f.cancel()
                logger.warning(
                    "%d request(s) still running after %.1fs shutdown grace period",
                    len(not_done),
                    self.config.shutdown_grace_s,
                )
        executor.shutdown(wait=False, cancel_futures=True)
        self._inflight = set()

    # ---- one request ----

    def _send_one(self, client: httpx.Client) -> Optional[TransactionResult]:
        try:
            return self._attempt(client)
        except Exception:
            # already counted as sent; the run carries on
            logger.exception("Unexpected error while sending a transaction")
            return None

    def _attempt(self, client: httpx.Client) -> Optional[TransactionResult]:
        timeout = self.config.request_timeout_s
        status_code = 0
        body = ""
        failure: Optional[httpx.HTTPError] = None
        txn = self.generator.generate_transaction_request()
        t0 = time.perf_counter()
        try:
            with client.stream(
                "POST",
                self.config.gateway_url,
                json=txn.to_payload(),
                headers=REQUEST_HEADERS,
                timeout=timeout,
            ) as response:
                status_code = response.status_code
                body = _read_body(response, t0, timeout)
        except httpx.HTTPError as e:
            failure = e
        finally:
            # counted once the send was attempted, whatever happened to it
            seq = self.counters.record_sent()
        took_ms = latency_ms(t0)

        if failure is not None:
            self.counters.record_transport_failure(took_ms)
            logger.warning("Error response from payments gateway (%d): %s: %s", seq, type(failure).__name__, failure)
            return None

        self.counters.record_response(status_code, took_ms)
        ok = status_code == 200
        json_log(
            logger,
            {
                "event": "gateway_response",
                "seq": seq,
                "outcome": "success" if ok else "error",
                "http_status": status_code,
                "latency_ms": round(took_ms, 3),
                "at": now_utc_iso(),
            },
            level=logging.INFO if ok else logging.WARNING,
        )

        try:
            result = decode_gateway_response(status_code, body)
        except ResponseDecodeError as e:
            self.counters.record_decode_failure()
            logger.warning("Response %d: %s", seq, e.message)
            return None

        self.counters.record_outcome(result.status)
        if result.status is TransactionStatus.UNRECOGNIZED:
            logger.debug("Response %d carried an unrecognized transaction status", seq)
        return result


def _read_body(response: httpx.Response, t0: float, timeout: float) -> str:
    """
    Read the body, failing once the whole request has taken longer than
    `timeout`. httpx only bounds each connect/read/write phase on its own.
    """
    chunks = []
    for chunk in response.iter_bytes():
        chunks.append(chunk)
        if time.perf_counter() - t0 > timeout:
            raise httpx.ReadTimeout(f"response not complete within {timeout:.1f}s", request=response.request)
    return b"".join(chunks).decode(response.encoding or "utf-8", errors="replace")


def _log_summary(summary: RunSummary) -> None:
    logger.info("Sent %d requests", summary.sent)
    logger.info(" Approved:  %d requests", summary.approved)
    logger.info(" Declined:  %d requests", summary.declined)
    logger.info(" Error:     %d requests", summary.error)
    if summary.cancelled:
        logger.warning("Run stopped early: %d of %d requests sent", summary.sent, summary.target)


def run_load(
    config: GeneratorConfig,
    client: Optional[httpx.Client] = None,
    stop_event: Optional[threading.Event] = None,
) -> RunSummary:
    return LoadDispatcher(config, client=client, stop_event=stop_event).run()
