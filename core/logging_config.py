import logging
import logging.handlers
import sys
from pathlib import Path
from pythonjsonlogger import jsonlogger

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

# Loggers whose warnings are security events (failed logins, lockouts,
# rejected bearer tokens, revoked refresh tokens)
SECURITY_LOGGERS = ("services.auth_service", "services.rate_limiter", "services.access_gate")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    Adds the standard fields to every JSON log entry.
    """
    def add_fields(self, log_record, record, message_dict):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)

        log_record['timestamp'] = record.created
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['module'] = record.module
        log_record['function'] = record.funcName
        log_record['line'] = record.lineno
        if hasattr(record, "request_id"):
            log_record['request_id'] = record.request_id


class SecurityEventFilter(logging.Filter):
    """Passes WARNING and above from the authentication services only."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.WARNING and record.name.startswith(SECURITY_LOGGERS)


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(log_level: str = "INFO", log_dir: str = "logs"):
    """
    Configure application-wide logging.

    Handlers:
        console       human readable, filtered by log_level
        app.log       every record, JSON
        error.log     ERROR and above, JSON
        security.log  warnings from the auth services (lockouts, bad tokens), JSON

    All files rotate at 10 MB. Safe to call more than once; previous handlers
    are closed.

    Args:
        log_level: Minimum console level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory where log files are written
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    json_formatter = CustomJsonFormatter(
        '%(timestamp)s %(level)s %(logger)s %(message)s'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    security_handler = _rotating_handler(log_path / "security.log", logging.WARNING, json_formatter)
    security_handler.addFilter(SecurityEventFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.addHandler(console_handler)
    root_logger.addHandler(_rotating_handler(log_path / "app.log", logging.DEBUG, json_formatter))
    root_logger.addHandler(_rotating_handler(log_path / "error.log", logging.ERROR, json_formatter))
    root_logger.addHandler(security_handler)

    for noisy in ("uvicorn", "uvicorn.access", "uvicorn.error", "sqlalchemy.engine", "slowapi"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    # passlib warns about bcrypt's version attribute on every import
    logging.getLogger("passlib.handlers.bcrypt").setLevel(logging.ERROR)

    root_logger.info(
        "Logging configured",
        extra={
            "log_level": log_level,
            "log_dir": str(log_path.absolute())
        }
    )
