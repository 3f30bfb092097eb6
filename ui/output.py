"""
Output formatting -- JSON export, plain text, and CSV.
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from netgauge.models import GraphDataPoint, SpeedTestResult


def create_result_json(
    result: SpeedTestResult,
    graph: Optional[List[GraphDataPoint]] = None,
) -> Dict[str, Any]:
    """Build the JSON document for a finished run."""
    data = result.to_dict()
    data["isoTimestamp"] = datetime.fromtimestamp(
        result.timestamp / 1000, tz=timezone.utc
    ).isoformat()
    if graph:
        data["graph"] = [
            {"time": round(p.time, 1), "speed": round(p.speed, 2), "phase": p.phase}
            for p in graph
        ]
    return data


def save_json(result: Dict[str, Any], filepath: str) -> None:
    """Write *result* to *filepath* atomically (write-tmp then rename)."""
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(result, fh, indent=2, ensure_ascii=False)
        os.replace(tmp, filepath)
    except (OSError, TypeError, ValueError) as exc:
        # TypeError / ValueError: result holds something json can't encode
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise IOError(f"Failed to save JSON to {filepath}: {exc}") from exc


# ---------------------------------------------------------------------------
# Plain-text / CSV helpers
# ---------------------------------------------------------------------------

def format_text_result(result: SpeedTestResult) -> str:
    sep = "=" * 50
    mid = "-" * 50
    lines = [
        sep,
        "Network Test Results",
        sep,
        f"Server: {result.server_location}",
        f"Location: {result.user_location.city}, {result.user_location.country}",
        f"IP: {result.user_location.ip}",
        mid,
        f"Ping: {result.ping.value:.1f} ms (jitter: {result.jitter.value:.1f} ms)",
        f"Download: {result.download_speed.value:.1f} Mbps",
        f"Upload: {result.upload_speed.value:.1f} Mbps",
    ]
    if result.packet_loss is not None:
        lines.append(f"Packet Loss: {result.packet_loss.percentage:.1f}%")
    if result.bufferbloat is not None:
        lines.append(
            f"Bufferbloat: {result.bufferbloat.rating.value} "
            f"(+{result.bufferbloat.latency_increase.value:.1f} ms)"
        )
    if result.estimated_fields:
        lines.append(f"Estimated: {', '.join(result.estimated_fields)}")
    lines.append(sep)
    return "\n".join(lines)


def _csv_escape(value: str) -> str:
    """Quote a CSV field if it contains a delimiter, quote or newline."""
    if any(ch in value for ch in (",", '"', "\n", "\r")):
        return '"' + value.replace('"', '""') + '"'
    return value


def format_csv_header() -> str:
    return (
        "timestamp,server,city,country,ip,ping_ms,jitter_ms,download_mbps,"
        "upload_mbps,packet_loss_pct,bufferbloat,estimated"
    )


def format_csv_row(result: SpeedTestResult) -> str:
    ts = datetime.fromtimestamp(result.timestamp / 1000, tz=timezone.utc).isoformat()
    loss = f"{result.packet_loss.percentage:.1f}" if result.packet_loss is not None else ""
    bloat = result.bufferbloat.rating.value if result.bufferbloat is not None else ""
    fields = [
        ts,
        _csv_escape(result.server_location),
        _csv_escape(result.user_location.city),
        _csv_escape(result.user_location.country),
        result.user_location.ip,
        f"{result.ping.value:.1f}",
        f"{result.jitter.value:.1f}",
        f"{result.download_speed.value:.1f}",
        f"{result.upload_speed.value:.1f}",
        loss,
        bloat,
        _csv_escape(";".join(result.estimated_fields)),
    ]
    return ",".join(fields)
