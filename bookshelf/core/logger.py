from collections.abc import Callable, MutableMapping
import logging
from pathlib import Path
import sys
from typing import Any, Literal

from asgi_correlation_id import correlation_id
import structlog
from structlog.types import EventDict

from .config import get_default_logger_config

###############################################################################

_default_config: dict[str, Any] = get_default_logger_config()

# Keys rendered in the line prefix; everything else goes to the trailing extras.
_PREFIX_KEYS = {"timestamp", "level", "correlation_id", "event", "cid", "logger", "log_level", "logger_name"}

_LEVEL_COLORS = {
    "debug": "\033[32m",  # green
    "info": "\033[34m",  # blue
    "warning": "\033[33m",  # yellow
    "error": "\033[31m",  # red
    "critical": "\033[35m",  # magenta
}
_RESET = "\033[0m"


def add_cid(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add correlation_id (full) and cid (short) into event_dict.
    Console will render only cid; file logs keep full correlation_id.
    """
    cid_value = correlation_id.get()
    if cid_value:
        event_dict["correlation_id"] = cid_value
        event_dict["cid"] = cid_value[: _default_config["console"]["correlation_id_length"]]
    else:
        event_dict["cid"] = ""
    return event_dict


def _short_time(ts: str) -> str:
    """Cut an ISO8601 timestamp down to HH:MM:SS.mmm."""
    if not ts or len(ts) < 20:
        return ts
    return ts[11:23]


def _level_token(level: str, colorize: bool) -> str:
    token = f"[{level:<8}]"
    color = _LEVEL_COLORS.get(level.lower(), "") if colorize else ""
    return f"{color}{token}{_RESET}" if color else token


def _render_line(event_dict: EventDict, *, for_console: bool) -> str:
    console_cfg = _default_config["console"]
    ts = str(event_dict.get("timestamp") or "")
    level = str(event_dict.get("level", "info"))
    cid = event_dict.get("cid", "") if for_console else event_dict.get("correlation_id", "")
    logger_name = event_dict.get("logger")

    parts: list[str] = []
    if ts:
        parts.append(_short_time(ts) if for_console else ts)
    parts.append(_level_token(level, for_console and console_cfg["colorize_level"]))
    if cid:
        parts.append(f"[{cid}]")
    if console_cfg["show_logger_name"] and logger_name:
        parts.append(f"[{logger_name}]")
    parts.append(str(event_dict.get("event", "")))

    extra = {k: v for k, v in event_dict.items() if k not in _PREFIX_KEYS}
    if extra:
        parts.append(str(extra))
    return " ".join(parts)


def console_renderer() -> Callable[[Any, str, MutableMapping[str, Any]], str]:
    """Renderer for terminals: short timestamp, colored level, short cid."""

    def _render(logger: Any, method_name: str, event_dict: EventDict) -> str:
        return _render_line(event_dict, for_console=True)

    return _render


def file_renderer() -> Callable[[Any, str, MutableMapping[str, Any]], str]:
    """Plain text renderer for log files, keeps the full timestamp and correlation id."""

    def _render(logger: Any, method_name: str, event_dict: EventDict) -> str:
        return _render_line(event_dict, for_console=False)

    return _render


# =========================
# Logger setup
# =========================
def _merge_dict(dst: dict[str, Any], src: dict[str, Any] | None) -> dict[str, Any]:
    out = {**dst}
    for k, v in (src or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge_dict(out[k], v)
        else:
            out[k] = v
    return out


def setup_logger(
    is_debug: bool = False,
    log_level: str | None = None,
    log_format: Literal["json", "console"] = "json",
    log_file: str | None = None,
    config: dict[str, Any] | None = None,
) -> None:
    """Configure structlog + stdlib logging with consistent console/file output.

    A file handler is attached when ``log_file`` is given or the file section of
    the logger config is enabled.
    """
    cfg = _merge_dict(_default_config, config or {})

    level = logging.DEBUG if is_debug else logging.INFO
    if log_level:
        level = logging.getLevelName(log_level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    # Shared pre-chain (no renderer!)
    pre_chain: list[Callable[[Any, str, MutableMapping[str, Any]], EventDict]] = [
        add_cid,
        structlog.processors.TimeStamper(fmt="iso", utc=False),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=console_renderer(), foreign_pre_chain=pre_chain)
    )
    root_logger.addHandler(console_handler)

    if log_file or cfg["file"]["enabled"]:
        log_path = Path(log_file or cfg["file"]["path"])
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(
            log_path, mode=str(cfg["file"]["mode"]), encoding=str(cfg["file"]["encoding"])
        )
        file_handler.setLevel(level)

        file_processor: Any = file_renderer() if log_format == "console" else structlog.processors.JSONRenderer()
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(processor=file_processor, foreign_pre_chain=pre_chain)
        )
        root_logger.addHandler(file_handler)

    # Make external loggers flow into root
    for name in cfg["external_loggers"]["propagate"]:
        logging.getLogger(name).handlers.clear()
        logging.getLogger(name).propagate = True
        logging.getLogger(name).setLevel(level)

    # Disable noisy loggers
    for name in cfg["external_loggers"]["ignore"]:
        logging.getLogger(name).handlers.clear()
        logging.getLogger(name).propagate = False
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """External interface to get a structlog logger."""
    return structlog.get_logger(name)  # type: ignore[no-any-return]
