"""
Logging for applications built on the bitcoin.de client.

The client writes only to the ``bitcoinde`` logger.  DEBUG records trace
each request (method, signed URL, nonce, form body) and each response
(status, size); ERROR records carry every reported failure.  The
``X-API-SIGNATURE`` header and the API secret are never part of those
records, and ``redact`` masks any secret an application registers should
it reach a message anyway.

``setup_logging`` attaches a console handler and, optionally, a rotating
trace file under ``<project-root>/logs/``.  It can be called again to
change levels (``cli.py --log-level``) without stacking handlers.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Set, Union

LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
LOG_FILE_NAME = "bitcoinde.log"

_MAX_BYTES = 5 * 1024 * 1024
_BACKUP_COUNT = 5

_CONSOLE = "bitcoinde.console"
_FILE = "bitcoinde.file"

_TRACE_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s:%(lineno)d | %(message)s"
_CONSOLE_FORMAT = "%(levelname)-8s | %(message)s"

Level = Union[int, str]


class SecretRedactor(logging.Filter):
    """Replace registered secrets with ``***`` in the rendered message."""

    def __init__(self) -> None:
        super().__init__()
        self._secrets: Set[str] = set()

    def add(self, secret: str) -> None:
        if secret:
            self._secrets.add(secret)

    def filter(self, record: logging.LogRecord) -> bool:
        if self._secrets:
            message = record.getMessage()
            for secret in self._secrets:
                message = message.replace(secret, "***")
            record.msg, record.args = message, ()
        return True


_redactor = SecretRedactor()


def redact(secret: str) -> None:
    """Mask *secret* in everything the handlers from ``setup_logging`` emit."""
    _redactor.add(secret)


def parse_level(level: Level) -> int:
    """Return a numeric logging level for a name such as ``"debug"``."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level '{level}'.")
    return value


def _find(logger: logging.Logger, name: str) -> Optional[logging.Handler]:
    return next((h for h in logger.handlers if h.get_name() == name), None)


def setup_logging(
    console_level: Level = logging.INFO,
    file_level: Level = logging.DEBUG,
    log_dir: Optional[Path] = None,
    to_file: bool = True,
) -> logging.Logger:
    """
    Configure and return the ``bitcoinde`` logger.

    Parameters
    ----------
    console_level : int or str
        Level of the console handler (``INFO`` by default).
    file_level : int or str
        Level of the rotating trace file (``DEBUG`` by default).
    log_dir : Path, optional
        Directory for ``bitcoinde.log``; defaults to ``LOG_DIR``.
    to_file : bool
        ``False`` logs to the console only.

    Returns
    -------
    logging.Logger
        The configured logger.  Repeated calls update the levels of the
        handlers already attached instead of adding new ones.
    """
    console_level = parse_level(console_level)
    file_level = parse_level(file_level)

    logger = logging.getLogger("bitcoinde")
    logger.setLevel(min(console_level, file_level) if to_file else console_level)

    console = _find(logger, _CONSOLE)
    if console is None:
        console = logging.StreamHandler()
        console.set_name(_CONSOLE)
        console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
        console.addFilter(_redactor)
        logger.addHandler(console)
    console.setLevel(console_level)

    trace = _find(logger, _FILE)
    if to_file and trace is None:
        directory = Path(log_dir) if log_dir is not None else LOG_DIR
        directory.mkdir(parents=True, exist_ok=True)
        trace = RotatingFileHandler(
            directory / LOG_FILE_NAME,
            maxBytes=_MAX_BYTES,
            backupCount=_BACKUP_COUNT,
            encoding="utf-8",
        )
        trace.set_name(_FILE)
        trace.setFormatter(logging.Formatter(_TRACE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        trace.addFilter(_redactor)
        logger.addHandler(trace)
        logger.debug("Request trace file: %s", trace.baseFilename)
    elif not to_file and trace is not None:
        logger.removeHandler(trace)
        trace.close()
        trace = None

    if trace is not None:
        trace.setLevel(file_level)
    return logger
