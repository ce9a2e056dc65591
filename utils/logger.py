# Logs process information to the console and a timestamped file, implemented to ensure the singleton pattern

import logging
import os
import sys
from datetime import datetime
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(levelname)-8s - %(name)s.%(funcName)s:%(lineno)d - %(message)s'

_logger_configured = False
_log_file_path = None
_root_handlers = []


def setup_logging(
    base_name: str = "paramtune",
    level=logging.INFO,
    log_dir: str = "logs",
    console: bool = True,
    force: bool = False
) -> str:
    """
    Set up the global logging configuration. Should be called once at application startup.
    Loggers obtained before that configure logging lazily; pass force=True to replace
    that configuration (e.g. with the level and folder chosen on the command line).
    Returns the log file path.
    """
    global _logger_configured, _log_file_path

    if _logger_configured and not force:
        return _log_file_path

    os.makedirs(log_dir, exist_ok=True)

    timestamp = datetime.now().strftime('%Y-%m-%d_%H-%M-%S')
    _log_file_path = os.path.join(log_dir, f"{base_name}_{timestamp}.log")

    handlers = [logging.FileHandler(_log_file_path)]
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))

    root = logging.getLogger()
    # Only the handlers installed here are replaced, foreign ones stay attached
    for handler in _root_handlers:
        root.removeHandler(handler)
        handler.close()
    _root_handlers[:] = handlers

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)

    _logger_configured = True
    return _log_file_path


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger instance. Automatically sets up logging if not already configured.

    Args:
        name: Logger name. If None, uses the calling module's name.
    """
    if not _logger_configured:
        setup_logging()

    if name is None:
        # Automatically determine the calling module's name
        import inspect
        frame = inspect.currentframe().f_back
        name = frame.f_globals.get('__name__', 'unknown')

    return logging.getLogger(name)


def add_file_handler(path: str, logger_name: Optional[str] = None, level=logging.INFO) -> logging.Handler:
    """
    Attach a file handler for a single run (e.g. the run's output.log).

    The caller owns the handler and removes it with `remove_handler` once the run is over.
    """
    handler = logging.FileHandler(path)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger(logger_name).addHandler(handler)
    return handler


def remove_handler(handler: logging.Handler, logger_name: Optional[str] = None) -> None:
    logging.getLogger(logger_name).removeHandler(handler)
    handler.close()
