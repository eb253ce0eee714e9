"""
Logging setup for worldgrid.

Every ``worldgrid.*`` logger writes DEBUG and above to a rotating
``debug.log`` under the data directory, and WARNING and above to stderr.
The helpers at the bottom emit the pipe-delimited one-line records that
the registry, the runtime and the spawn gate share, so a single grep on
``VILLAGE |`` or ``SPAWN |`` follows one concern through a session.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


LOG_FILE_NAME = "debug.log"
MAX_LOG_SIZE = 10 * 1024 * 1024
BACKUP_COUNT = 5

ROOT_LOGGER_NAME = "worldgrid"

FILE_FORMAT = "%(asctime)s.%(msecs)03d | %(levelname)-7s | %(name)s:%(lineno)d | %(message)s"
CONSOLE_FORMAT = "%(levelname)s | %(name)s | %(message)s"


def setup_logging(
    data_root: Path | str,
    log_level: int = logging.DEBUG,
    console_level: int = logging.WARNING,
) -> Path:
    """Attach file and console handlers to the worldgrid logger.

    Calling it again swaps the handlers rather than stacking them.

    Returns:
        Path to the log file
    """
    log_dir = Path(data_root)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILE_NAME

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)
    for handler in list(root_logger.handlers):
        handler.close()
        root_logger.removeHandler(handler)

    file_handler = RotatingFileHandler(
        log_path, maxBytes=MAX_LOG_SIZE, backupCount=BACKUP_COUNT, encoding="utf-8"
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)
    root_logger.debug(f"Logging to {log_path.absolute()}")
    return log_path


def get_logger(name: str) -> logging.Logger:
    """Logger under the worldgrid namespace, prefixing bare names."""
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


# --- structured records ---


def _suffix(*parts: str | None) -> str:
    return "".join(f" | {part}" for part in parts if part)


def log_storage(
    logger: logging.Logger,
    operation: str,
    key: str | None = None,
    success: bool = True,
    details: str | None = None,
) -> None:
    """STORAGE | op | key | OK/FAILED | details"""
    status = "OK" if success else "FAILED"
    logger.debug(f"STORAGE | {operation}{_suffix(key)} | {status}{_suffix(details)}")


def log_village_load(
    logger: logging.Logger,
    slug: str,
    status: str,
    duration_ms: int | None = None,
    details: str | None = None,
) -> None:
    """VILLAGE | slug | status | Nms | details"""
    duration = f"{duration_ms}ms" if duration_ms is not None else None
    logger.info(f"VILLAGE | {slug} | {status}{_suffix(duration, details)}")


def log_collision(
    logger: logging.Logger,
    world_x: int,
    world_y: int,
    blocked: bool,
    reason: str,
) -> None:
    """COLLISION | world(x,y) | BLOCKED/OPEN | reason"""
    verdict = "BLOCKED" if blocked else "OPEN"
    logger.debug(f"COLLISION | world({world_x},{world_y}) | {verdict} | {reason}")


def log_spawn(
    logger: logging.Logger,
    agent_url: str,
    status: str,
    village: str | None = None,
    details: str | None = None,
) -> None:
    """SPAWN | url | status | village=slug | details"""
    village_str = f"village={village}" if village else None
    logger.debug(f"SPAWN | {agent_url} | {status}{_suffix(village_str, details)}")


def log_cli_cmd(logger: logging.Logger, command: str, details: str | None = None) -> None:
    logger.info(f"CLI_CMD | {command}{_suffix(details)}")
