from __future__ import annotations
from typing import Any, Optional
from pathlib import Path
import logging
import json
import sys


_logger = logging.getLogger("edge_transport")
_logger.setLevel(logging.DEBUG)
if not _logger.handlers:
    _logger.addHandler(logging.NullHandler())

filename: Optional[str] = None


class JSONFormatter(logging.Formatter):
    """Format records as one JSON object per line.

    Extra `status` information given with the `extra` keyword
    (see `edge_transport.main()`) is included as is.
    """

    def format(self, record: logging.LogRecord) -> str:
        message = {
            "level": record.levelname,
            "time": self.formatTime(record),
            "message": record.getMessage(),
        }
        if hasattr(record, "status"):
            message["status"] = record.status
        if record.exc_info:
            message["exception"] = self.formatException(record.exc_info)
        return json.dumps(message)


def initialize(config: Any):
    """Set up handlers for console and log file.

    Parameters
    ----------
    config : argparse.Namespace or similar
        Must have attributes `log_level`, `log_format`,
        `scenario_name` and `results_path`
    """
    global filename
    level = getattr(logging, str(config.log_level or "INFO").upper())
    if config.log_format == "JSON":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s", "%H:%M:%S")
    for handler in list(_logger.handlers):
        _logger.removeHandler(handler)
        handler.close()
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(formatter)
    _logger.addHandler(console)
    log_dir = Path(config.results_path)
    log_dir.mkdir(parents=True, exist_ok=True)
    filename = str(log_dir / f"{config.scenario_name}.log")
    file_handler = logging.FileHandler(filename, "w", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    _logger.addHandler(file_handler)


def debug(msg: str, *args, **kwargs):
    _logger.debug(msg, *args, **kwargs)


def info(msg: str, *args, **kwargs):
    _logger.info(msg, *args, **kwargs)


def warn(msg: str, *args, **kwargs):
    _logger.warning(msg, *args, **kwargs)


def error(msg: str, exception: Optional[BaseException] = None,
          *args, **kwargs):
    if exception is not None:
        kwargs["exc_info"] = (
            type(exception), exception, exception.__traceback__)
    _logger.error(msg, *args, **kwargs)
