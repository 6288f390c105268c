import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

from authgate.config import get_settings

CONSOLE_FORMAT = logging.Formatter(
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
FILE_FORMAT = logging.Formatter(
    "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
MAX_LOG_BYTES = 10 * 1024 * 1024  # 10MB


def _rotating(path: Path, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_LOG_BYTES, backupCount=5)
    handler.setLevel(level)
    handler.setFormatter(FILE_FORMAT)
    return handler


def _build_logger() -> logging.Logger:
    """authgate logger: console, logs/app.log and logs/errors.log (ERROR+)."""
    settings = get_settings()
    level = logging.DEBUG if settings.APP_DEBUG else logging.INFO

    logs_dir = Path(settings.LOG_DIR)
    logs_dir.mkdir(parents=True, exist_ok=True)

    app_logger = logging.getLogger("authgate")
    app_logger.setLevel(level)
    # Prevent duplicate logs on re-import
    if app_logger.handlers:
        app_logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(CONSOLE_FORMAT)
    app_logger.addHandler(console)
    app_logger.addHandler(_rotating(logs_dir / "app.log", logging.INFO))
    app_logger.addHandler(_rotating(logs_dir / "errors.log", logging.ERROR))
    return app_logger


logger = _build_logger()


def get_logger(name: str = None) -> logging.Logger:
    """Get a logger instance. If name is provided, returns a child logger."""
    if name:
        return logger.getChild(name)
    return logger
