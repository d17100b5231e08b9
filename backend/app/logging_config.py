import json
import logging
import logging.handlers
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

# Request-scoped identifiers attached to every record
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
letter_id_var: ContextVar[str | None] = ContextVar("letter_id", default=None)
template_id_var: ContextVar[str | None] = ContextVar("template_id", default=None)

CONTEXT_VARS: dict[str, ContextVar[str | None]] = {
    "correlation_id": correlation_id_var,
    "letter_id": letter_id_var,
    "template_id": template_id_var,
}

# (file name, minimum level, logger name prefixes or None for everything)
LOG_FILES: tuple[tuple[str, int, tuple[str, ...] | None], ...] = (
    ("api.log", logging.INFO, ("app", "uvicorn")),
    (
        "generation.log",
        logging.INFO,
        ("app.domains.generation", "app.domains.regeneration", "app.domains.versioning"),
    ),
    ("errors.log", logging.ERROR, None),
)


def generate_correlation_id() -> str:
    return f"corr-{uuid.uuid4().hex[:12]}"


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Use the given id (e.g. from a request header) or generate a fresh one."""
    cid = correlation_id or generate_correlation_id()
    correlation_id_var.set(cid)
    return cid


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


def clear_context() -> None:
    for var in CONTEXT_VARS.values():
        var.set(None)


def current_context() -> dict[str, str]:
    """The context identifiers that are currently set."""
    return {name: value for name, var in CONTEXT_VARS.items() if (value := var.get())}


class StructuredJSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Carries the current correlation/letter/template ids, the payload passed as
    ``extra={"extra_data": {...}}`` under "extra", and any other attribute
    given through ``extra=`` (stringified when it is not JSON serializable).
    """

    RESERVED_ATTRS = frozenset(
        logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
        | {"message", "asctime", "extra_data", "taskName"}
    )

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            **current_context(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            log_data["extra"] = extra_data

        for key, value in record.__dict__.items():
            if key in self.RESERVED_ATTRS or key.startswith("_"):
                continue
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = str(value)
            log_data[key] = value

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored single-line output for local development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    SHORT_NAMES = {"correlation_id": "cid", "letter_id": "letter", "template_id": "template"}

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        context = current_context()
        context_str = ""
        if context:
            parts = [
                f"{self.SHORT_NAMES[name]}={value if name == 'correlation_id' else value[:8]}"
                for name, value in context.items()
            ]
            context_str = f" [{', '.join(parts)}]"

        timestamp = datetime.fromtimestamp(record.created, timezone.utc).strftime(
            "%Y-%m-%d %H:%M:%S"
        )
        formatted = (
            f"{color}{timestamp} {record.levelname:8}{self.RESET} "
            f"{record.name}{context_str} - {record.getMessage()}"
        )
        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"
        return formatted


def _file_handler(
    path: Path, level: int, prefixes: tuple[str, ...] | None, formatter: logging.Formatter
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    if prefixes:
        handler.addFilter(lambda record: record.name.startswith(prefixes))
    return handler


def setup_logging(log_dir: str, enable_console: bool = True) -> None:
    """
    Route logs to rotating JSON files under `log_dir`:

    - api.log: application and uvicorn logs
    - generation.log: provider calls, snapshots, restorations, regenerations
    - errors.log: every error-level record
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    json_formatter = StructuredJSONFormatter()
    for file_name, level, prefixes in LOG_FILES:
        root_logger.addHandler(_file_handler(log_path / file_name, level, prefixes, json_formatter))

    if enable_console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(ConsoleFormatter())
        root_logger.addHandler(console_handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Set context ids for the duration of a block, restoring the outer values on exit.

        with LogContext(letter_id=str(letter.id)):
            logger.info("Generating")  # carries letter_id
    """

    def __init__(
        self,
        correlation_id: str | None = None,
        letter_id: str | None = None,
        template_id: str | None = None,
        auto_generate_correlation_id: bool = False,
    ):
        self.values = {
            "correlation_id": correlation_id,
            "letter_id": letter_id,
            "template_id": template_id,
        }
        self.auto_generate_correlation_id = auto_generate_correlation_id
        self._tokens: list = []

    def __enter__(self) -> "LogContext":
        values = dict(self.values)
        if (
            values["correlation_id"] is None
            and self.auto_generate_correlation_id
            and correlation_id_var.get() is None
        ):
            values["correlation_id"] = generate_correlation_id()

        for name, value in values.items():
            if value:
                var = CONTEXT_VARS[name]
                self._tokens.append((var, var.set(value)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)
        return False
