# loadgen/services/report.py
from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Tuple

from loadgen.services.counters import RunSummary

JSON_NAME = "loadgen_summary.json"
MD_NAME = "loadgen_summary.md"


def summary_to_dict(summary: RunSummary) -> Dict[str, Any]:
    d = asdict(summary)
    d["classified"] = summary.classified
    d["generated_at"] = datetime.now().isoformat(timespec="seconds")
    return d


def render_md(summary: RunSummary) -> str:
    lat = summary.latency_ms
    sc = summary.status_counts
    md: List[str] = []
    md.append("# Load Generation Summary")
    md.append(f"- Gateway: `{summary.endpoint}`")
    md.append(f"- Mode: **{summary.dispatch_mode}** ({summary.threads} threads)")
    md.append(f"- Requests: **{summary.sent}** / {summary.target}")
    md.append(f"- Total time: **{summary.total_seconds:.4f}s**")
    md.append(f"- Throughput: **{summary.throughput_rps:.2f} rps**")
    if summary.cancelled:
        md.append("- Stopped early: **yes**")
    md.append("")
    md.append("## Outcomes")
    md.append("| approved | declined | error | unrecognized | undecodable |")
    md.append("|---:|---:|---:|---:|---:|")
    md.append(
        f"| {summary.approved} | {summary.declined} | {summary.error} | "
        f"{summary.unrecognized} | {summary.decode_failures} |"
    )
    md.append("")
    md.append("## Latency (ms)")
    for k in ("min", "p50", "p90", "p99", "max", "mean"):
        md.append(f"- {k}: {lat.get(k, 0):.3f} ms")
    md.append("")
    md.append("## Status counts")
    md.append("```json")
    md.append(json.dumps(sc, indent=2))
    md.append("```")
    return "\n".join(md) + "\n"


def write_report(summary: RunSummary, out_dir: Path) -> Tuple[Path, Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    json_path = out_dir / JSON_NAME
    md_path = out_dir / MD_NAME
    json_path.write_text(json.dumps(summary_to_dict(summary), indent=2), encoding="utf-8")
    md_path.write_text(render_md(summary), encoding="utf-8")
    return json_path, md_path
