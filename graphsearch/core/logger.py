"""Structured logging: console plus a JSON-lines search event log."""

import json
import logging
import os
import sys
import threading
import time
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from graphsearch.core.config import config


def _format_duration(seconds: float) -> str:
    if seconds < 0:
        return "0s"
    if seconds >= 60:
        m = int(seconds // 60)
        s = seconds % 60
        if s < 0.05:
            return f"{m}m"
        return f"{m}m {s:.0f}s" if s >= 1 else f"{m}m {s:.1f}s"
    if seconds >= 0.05:
        return f"{seconds:.1f}s"
    if seconds > 0:
        return "<0.1s"
    return "0s"


def _short_reason(reason: str | None, max_len: int = 80) -> str:
    """One-line short reason for console (failed tier)."""
    if not reason or not reason.strip():
        return ""
    s = reason.strip().replace("\n", " ").strip()
    return s[:max_len] + "..." if len(s) > max_len else s


def _use_color() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    try:
        return sys.stderr.isatty()
    except Exception:
        return False


def _c(role: str) -> str:
    if not _use_color():
        return ""
    codes = {
        "tier": "\033[38;5;81m",
        "done_ok": "\033[38;5;78m",
        "done_fail": "\033[38;5;203m",
        "duration": "\033[38;5;221m",
        "dim": "\033[38;5;245m",
    }
    return codes.get(role, "")


def _reset() -> str:
    if not _use_color():
        return ""
    return "\033[0m"


@dataclass
class LogEvent:
    event_type: str
    timestamp: str
    data: dict[str, Any]

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class GraphSearchLogger:
    def __init__(self):
        config.logs_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = config.logs_dir / "search.log"
        self._file_lock = threading.Lock()
        self._log_file_handle = open(self.log_file, "a", encoding="utf-8")
        self._setup_console_logger()

    def _setup_console_logger(self):
        self.console = logging.getLogger("graphsearch")
        self.console.setLevel(logging.DEBUG)
        self._console_formatter = logging.Formatter(
            "%(asctime)s │ %(message)s", datefmt="%H:%M:%S"
        )
        if not self.console.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(logging.INFO)
            handler.setFormatter(self._console_formatter)
            self.console.addHandler(handler)

    def log_event(self, event: LogEvent) -> None:
        with self._file_lock:
            self._log_file_handle.write(event.to_json() + "\n")
            self._log_file_handle.flush()

    def _timestamp(self) -> str:
        return datetime.now().isoformat()

    def search_start(self, query_string: str, entity_types: list[str], advisory: str | None = None):
        self.log_event(
            LogEvent(
                event_type="SEARCH_START",
                timestamp=self._timestamp(),
                data={
                    "query_string": query_string[:500],
                    "entity_types": entity_types,
                    "advisory": advisory,
                },
            )
        )
        self.console.info(
            f"Search: {query_string[:100]}{'...' if len(query_string) > 100 else ''}  "
            f"{_c('dim')}[{', '.join(entity_types)}]{_reset()}"
        )
        if advisory:
            self.console.warning(f"⚠️ {advisory}")

    def tier_attempt(self, tier: str, method: str, path: str) -> float:
        self.log_event(
            LogEvent(
                event_type="TIER_ATTEMPT",
                timestamp=self._timestamp(),
                data={"tier": tier, "method": method, "path": path},
            )
        )
        self.console.info(f"  │ ▶ {_c('tier')}{tier}{_reset()}  {method} {path}")
        return time.monotonic()

    def tier_result(
        self,
        tier: str,
        started: float,
        success: bool,
        *,
        error_reason: str | None = None,
        recoverable: bool = False,
    ) -> None:
        elapsed = time.monotonic() - started
        data: dict[str, Any] = {
            "tier": tier,
            "success": success,
            "duration_seconds": round(elapsed, 3),
        }
        if not success:
            data["error_reason"] = (error_reason or "")[:500]
            data["recoverable"] = recoverable
        self.log_event(
            LogEvent(event_type="TIER_RESULT", timestamp=self._timestamp(), data=data)
        )
        dur = f"{_c('duration')}{_format_duration(elapsed)}{_reset()}"
        if success:
            status = f"{_c('done_ok')}[ok]{_reset()}"
        elif recoverable:
            status = f"{_c('done_fail')}[rejected: {_short_reason(error_reason)}]{_reset()}"
        else:
            status = f"{_c('done_fail')}[failed: {_short_reason(error_reason)}]{_reset()}"
        self.console.info(f"  │   └ {_c('tier')}{tier}{_reset()}  in {dur}  {status}")

    def enrichment(self, attempted: int, unavailable: int, duration_seconds: float) -> None:
        self.log_event(
            LogEvent(
                event_type="ENRICHMENT",
                timestamp=self._timestamp(),
                data={
                    "attempted": attempted,
                    "unavailable": unavailable,
                    "duration_seconds": round(duration_seconds, 3),
                },
            )
        )
        if attempted:
            self.console.info(
                f"  │ Enriched {attempted - unavailable}/{attempted} hits "
                f"in {_format_duration(duration_seconds)}"
            )

    def search_done(self, tier: str | None, result_count: int, total_count: int, duration_seconds: float):
        self.log_event(
            LogEvent(
                event_type="SEARCH_DONE",
                timestamp=self._timestamp(),
                data={
                    "tier": tier,
                    "result_count": result_count,
                    "total_count": total_count,
                    "duration_seconds": round(duration_seconds, 3),
                },
            )
        )
        dur = f"{_c('duration')}{_format_duration(duration_seconds)}{_reset()}"
        self.console.info(
            f"{_c('done_ok')}✓ Done{_reset()}  {result_count} of {total_count} results "
            f"via {tier or '-'}  total {dur}"
        )

    def _format_tool_args(self, args: dict) -> str:
        parts = []
        for key, value in args.items():
            if value is None or value == "" or value == []:
                continue
            text = str(value).replace("\n", " ")
            parts.append(f"{key}={text[:40]}{'...' if len(text) > 40 else ''}")
        return ", ".join(parts)

    def tool_execute(self, tool_name: str, args: dict):
        self.log_event(
            LogEvent(
                event_type="TOOL_EXECUTE",
                timestamp=self._timestamp(),
                data={"tool": tool_name, "args": args},
            )
        )
        self.console.info(f"▶ Run  {_c('tier')}{tool_name}{_reset()}({self._format_tool_args(args)})")

    def tool_result(self, tool_name: str, output_length: int, success: bool):
        self.log_event(
            LogEvent(
                event_type="TOOL_RESULT",
                timestamp=self._timestamp(),
                data={"tool": tool_name, "output_length": output_length, "success": success},
            )
        )
        status = f"{_c('done_ok')}[ok]{_reset()}" if success else f"{_c('done_fail')}[failed]{_reset()}"
        self.console.info(f"└ {tool_name}  {output_length} chars  {status}")

    def error(self, message: str, *args, exception: Exception | None = None, **kwargs):
        self.log_event(
            LogEvent(
                event_type="ERROR",
                timestamp=self._timestamp(),
                data={
                    "message": message,
                    "exception": str(exception) if exception else None,
                },
            )
        )
        allowed = {"exc_info", "stack_info", "stacklevel", "extra"}
        log_kwargs = {k: v for k, v in kwargs.items() if k in allowed}
        if exception and "exc_info" not in log_kwargs:
            log_kwargs["exc_info"] = exception
        self.console.error(f"❌ Error: {message}", *args, **log_kwargs)

    def info(self, message: str, *args, **kwargs):
        allowed = {"exc_info", "stack_info", "stacklevel", "extra"}
        log_kwargs = {k: v for k, v in kwargs.items() if k in allowed}
        self.console.info(message, *args, **log_kwargs)

    def warning(self, message: str, *args, **kwargs):
        self.log_event(
            LogEvent(
                event_type="WARNING",
                timestamp=self._timestamp(),
                data={"message": message[:500]},
            )
        )
        allowed = {"exc_info", "stack_info", "stacklevel", "extra"}
        log_kwargs = {k: v for k, v in kwargs.items() if k in allowed}
        self.console.warning(f"⚠️ {message}", *args, **log_kwargs)

    def debug(self, message: str, *args, **kwargs):
        allowed = {"exc_info", "stack_info", "stacklevel", "extra"}
        log_kwargs = {k: v for k, v in kwargs.items() if k in allowed}
        self.console.debug(message, *args, **log_kwargs)


logger = GraphSearchLogger()
