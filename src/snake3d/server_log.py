from __future__ import annotations

import datetime as dt
import os
from pathlib import Path
import sys
from threading import Lock


_TRACE_LOCK = Lock()
_TRACE_PATH: Path | None = None


def _format_value(value: object) -> str:
    text = str(value)
    return text.replace("\n", "\\n")


def _format_fields(fields: dict[str, object]) -> str:
    parts: list[str] = []
    for key in sorted(fields):
        parts.append(f"{key}={_format_value(fields[key])}")
    return " ".join(parts)


def _format_line(event: str, level: str, fields: dict[str, object]) -> str:
    timestamp = dt.datetime.now(dt.timezone.utc).isoformat(timespec="milliseconds")
    payload = _format_fields(fields)
    line = f"{timestamp} level={level} event={str(event).strip()}"
    if payload:
        line += f" {payload}"
    return line + "\n"


def server_log_path() -> Path | None:
    with _TRACE_LOCK:
        return _TRACE_PATH


def init_server_log(
    *,
    base_dir: Path,
    host: str,
    port: int,
    matchmaking: str,
    max_phantoms: int,
) -> Path:
    timestamp = dt.datetime.now(dt.timezone.utc).strftime("%Y%m%dT%H%M%S.%fZ")
    path = base_dir / "logs" / "server" / f"server-pid{os.getpid()}-{timestamp}.log"
    path.parent.mkdir(parents=True, exist_ok=True)

    with _TRACE_LOCK:
        global _TRACE_PATH
        _TRACE_PATH = path

    server_log(
        "init",
        host=str(host),
        port=int(port),
        matchmaking=str(matchmaking),
        max_phantoms=int(max_phantoms),
        pid=int(os.getpid()),
    )
    return path


def _write(line: str) -> None:
    with _TRACE_LOCK:
        path = _TRACE_PATH
        if path is None:
            return
        with path.open("a", encoding="utf-8") as handle:
            handle.write(line)


def server_log(event: str, **fields: object) -> None:
    _write(_format_line(event, "info", fields))


def server_log_critical(event: str, **fields: object) -> None:
    """Trace an invariant violation; also echoed to stderr."""
    line = _format_line(event, "critical", fields)
    _write(line)
    sys.stderr.write(line)


def close_server_log() -> None:
    with _TRACE_LOCK:
        global _TRACE_PATH
        _TRACE_PATH = None


__all__ = [
    "close_server_log",
    "init_server_log",
    "server_log",
    "server_log_critical",
    "server_log_path",
]
