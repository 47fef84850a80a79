"""Shared logging utilities."""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

LOG_ROOT = Path.cwd() / "logs"
CLI_LOG_FILE = LOG_ROOT / "proxy.log"

SECRET_HEADER_MARKERS = ("authorization", "key", "token", "secret", "cookie")


def write_incoming_log(
    method: str,
    path: str,
    headers: dict[str, str],
    query: str = "",
    *,
    keep: int = 200,
    log_root: Path | None = None,
) -> Path:
    """Write a single incoming request log entry, keeping only the newest ``keep``."""
    payload = {
        "timestamp": _utc_now(),
        "method": method,
        "path": path,
        "query": query,
        "headers": redact_headers(headers),
    }
    folder = (log_root or LOG_ROOT) / "incoming"
    file_path = _write_json(folder, payload)
    _prune_folder(folder, keep)
    return file_path


def write_cli_log(
    level: str,
    message: str,
    *,
    log_file: Path | None = None,
    **extra: Any,
) -> None:
    """Append a line to the rolling CLI log file."""
    log_file = log_file or CLI_LOG_FILE
    log_file.parent.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
    extra_str = " ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""
    line = f"[{timestamp}] {level}: {message}"
    if extra_str:
        line += f" {extra_str}"
    line += "\n"
    with log_file.open("a") as f:
        f.write(line)


def clear_logs(log_root: Path | None = None) -> int:
    """Delete per-request logs from a previous run."""
    folder = (log_root or LOG_ROOT) / "incoming"
    if not folder.exists():
        return 0

    deleted = 0
    for old_file in folder.glob("*.json"):
        try:
            old_file.unlink()
            deleted += 1
        except OSError:
            pass
    return deleted


def _prune_folder(folder: Path, keep: int) -> int:
    """Delete all but the ``keep`` most recent log files in a folder."""
    files = sorted(folder.glob("*.json"))
    if len(files) <= keep:
        return 0

    deleted = 0
    # Filenames start with a UTC timestamp, so sorted order is age order
    for old_file in files[: len(files) - keep]:
        try:
            old_file.unlink()
            deleted += 1
        except OSError:
            pass
    return deleted


def redact_headers(headers: dict[str, str]) -> dict[str, str]:
    """Redact sensitive headers."""
    redacted = {}
    for key, value in headers.items():
        if any(marker in key.lower() for marker in SECRET_HEADER_MARKERS):
            redacted[key] = _mask(value)
        else:
            redacted[key] = value
    return redacted


def _write_json(folder: Path, payload: dict[str, Any]) -> Path:
    """Write payload to a unique JSON file in the given folder."""
    folder.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S.%fZ")
    file_path = folder / f"{timestamp}_{uuid4().hex}.json"
    file_path.write_text(json.dumps(payload, indent=2, default=str))
    return file_path


def _mask(value: str) -> str:
    if len(value) <= 10:
        return "***"
    return value[:6] + "..." + value[-4:]


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()
