# loadgen/cli.py
"""
payments-loadgen: send synthetic card transactions to a payments gateway.

Settings come from PAYMENT_DEMO_* environment variables (or .env); flags
override them.

    payments-loadgen --gateway-url http://127.0.0.1:8080/transactions --requests 200
"""
from __future__ import annotations

import argparse
import json
import signal
import threading
import time
from pathlib import Path
from typing import List, Optional

from loadgen.core.config import load_config
from loadgen.core.errors import ConfigError
from loadgen.core.logging import setup_logging
from loadgen.services.dispatcher import LoadDispatcher
from loadgen.services.report import summary_to_dict, write_report


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="payments-loadgen", description="Payments gateway load generator")
    ap.add_argument("--gateway-url", default=None, help="Gateway endpoint (PAYMENT_DEMO_GATEWAY_URL)")
    ap.add_argument("--threads", type=int, default=None, help="Worker pool size (PAYMENT_DEMO_NUMBER_OF_THREADS)")
    ap.add_argument("--requests", type=int, default=None, help="Total requests (PAYMENT_DEMO_NUMBER_OF_TRANSACTIONS)")
    ap.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds")
    ap.add_argument("--mode", choices=["serial", "concurrent"], default=None, help="Dispatch mode (default: serial)")
    ap.add_argument("--log-level", default=None)
    ap.add_argument("--log-path", default=None, help="Also write logs to this file")
    ap.add_argument("--report-dir", default=None, help="Write loadgen_summary.json/.md here")
    ap.add_argument("--json", action="store_true", help="Print the final summary as JSON")
    return ap


def _install_sigint(stop_event: threading.Event) -> None:
    # first Ctrl-C drains the run, a second one aborts
    def _handler(signum, frame):
        if stop_event.is_set():
            raise KeyboardInterrupt
        print("Stopping after in-flight requests finish (Ctrl-C again to abort)")
        stop_event.set()

    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGINT, _handler)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(
            gateway_url=args.gateway_url,
            number_of_threads=args.threads,
            number_of_transactions=args.requests,
            request_timeout_s=args.timeout,
            dispatch_mode=args.mode,
            log_level=args.log_level,
            log_path=args.log_path,
            report_dir=args.report_dir,
        )
    except ConfigError as e:
        print(f"ERROR: {e.message}")
        return 1

    setup_logging(config)
    print("Running Payments Load Generation App")
    print()

    stop_event = threading.Event()
    _install_sigint(stop_event)

    t0 = time.perf_counter()
    summary = LoadDispatcher(config, stop_event=stop_event).run()
    elapsed = time.perf_counter() - t0

    report_dir = config.abs_report_dir()
    if report_dir is not None:
        json_path, md_path = write_report(summary, report_dir)
        print(f"Wrote: {json_path} and {md_path}")

    if args.json:
        print(json.dumps(summary_to_dict(summary), indent=2))

    print(f"Finished in {elapsed:.3f} seconds")
    print("Exiting Load Generation App")
    return 0


def run() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    run()
