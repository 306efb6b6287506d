import logging
import os
from typing import Optional

ROOT_LOGGER = "estateease"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


def _level(name: Optional[str]) -> int:
    return getattr(logging, (name or "INFO").upper(), logging.INFO)


def configure_logging(level: Optional[str] = None) -> None:
    """Attach the console handler once; later calls only change the level."""
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        root.propagate = False
    root.setLevel(_level(level or os.getenv("LOG_LEVEL")))


def get_logger(component: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{component}")


configure_logging()

_db_logger = get_logger("db")


def log_db_operation(
    operation: str,
    collection: str,
    success: bool,
    rows: Optional[int] = None,
    error: Optional[str] = None,
) -> None:
    """One line per store call: `[DB] INSERT coupons - SUCCESS (rows=1)`.

    Successes go out at DEBUG, failures at ERROR with the driver message.
    """
    line = f"[DB] {operation} {collection} - {'SUCCESS' if success else 'FAILED'}"
    if rows is not None:
        line += f" (rows={rows})"
    if success:
        _db_logger.debug(line)
    else:
        _db_logger.error("%s | error=%s", line, error)
