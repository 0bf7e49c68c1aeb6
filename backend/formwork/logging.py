"""Structured Logging for Formwork

Events are snake_case names with key/value fields:

    log = schema_logger()
    log.debug("schema_built", schema="Signup", fields=2)

- Colored console output in development, JSON lines in production
- stdlib ``logging`` records (uvicorn, httpx, ...) rendered through the same chain
- Request-scoped fields through contextvars (``logging_context``)
- Credentials redacted and oversized payload snippets clipped before rendering
"""
import logging
import sys
from contextlib import contextmanager
from typing import Iterator

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

REDACTED = "[REDACTED]"
SENSITIVE_KEYS = frozenset({"password", "token", "secret", "authorization", "cookie", "api_key", "access_token"})
MAX_VALUE_LENGTH = 200
_MAX_DEPTH = 6
_QUIET_LIBRARIES = ("httpcore", "httpx", "uvicorn.access")


def redact_sensitive(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace values stored under credential-like keys, at any nesting depth."""
    return {key: _scrub(key, value, 0) for key, value in event_dict.items()}


def _scrub(key, value, depth: int):
    if str(key).lower() in SENSITIVE_KEYS: return REDACTED
    if depth >= _MAX_DEPTH: return value
    if isinstance(value, dict): return {k: _scrub(k, v, depth + 1) for k, v in value.items()}
    if isinstance(value, (list, tuple)): return [_scrub("", v, depth + 1) for v in value]
    return value


def clip_long_strings(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Shorten top-level string fields such as raw payloads."""
    for key, value in event_dict.items():
        if key != "event" and isinstance(value, str) and len(value) > MAX_VALUE_LENGTH:
            event_dict[key] = f"{value[:MAX_VALUE_LENGTH]}... ({len(value)} chars)"
    return event_dict


def add_service_info(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    from formwork import __version__
    from formwork.config import get_settings

    event_dict.setdefault("service", get_settings().SERVICE_NAME)
    event_dict.setdefault("version", __version__)
    return event_dict


def shared_processors() -> list[Processor]:
    """Chain run for structlog events and foreign stdlib records alike."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        add_service_info,
        clip_long_strings,
        redact_sensitive,
    ]


def _renderer(json_logs: bool) -> Processor:
    if json_logs: return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty(), exception_formatter=structlog.dev.plain_traceback)


def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """Route structlog and stdlib logging through one processor chain.

    Args:
        level: Root log level name. Defaults to ``LOG_LEVEL`` from settings.
        json_logs: JSON lines when True, console output when False. Defaults to ``LOG_JSON``.
    """
    from formwork.config import get_settings

    settings = get_settings()
    level_name = (level or settings.LOG_LEVEL).upper()
    json_logs = settings.LOG_JSON if json_logs is None else json_logs
    processors = shared_processors()

    structlog.configure(
        processors=[
            *processors,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, _renderer(json_logs)],
    ))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level_name, logging.INFO))
    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


@contextmanager
def logging_context(**fields) -> Iterator[None]:
    """Attach ``fields`` to every event logged inside the block.

    Usage:
        with logging_context(schema="Signup", route="/signup"):
            outcome = validator.validate_payload(raw, content_type)
    """
    with structlog.contextvars.bound_contextvars(**fields):
        yield


_domain_loggers: dict[str, structlog.stdlib.BoundLogger] = {}


def domain_logger(domain: str) -> structlog.stdlib.BoundLogger:
    """Shared ``formwork.<domain>`` logger."""
    if domain not in _domain_loggers: _domain_loggers[domain] = get_logger(f"formwork.{domain}")
    return _domain_loggers[domain]


def schema_logger() -> structlog.stdlib.BoundLogger:
    return domain_logger("schema")


def coercion_logger() -> structlog.stdlib.BoundLogger:
    return domain_logger("coercion")


def parser_logger() -> structlog.stdlib.BoundLogger:
    return domain_logger("parser")


def api_logger() -> structlog.stdlib.BoundLogger:
    """Logger for the FastAPI boundary and its exception handlers."""
    return domain_logger("api")
