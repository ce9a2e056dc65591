"""
Capture of the process's console output into a run-scoped log file.

Pipeline stages may print diagnostics straight to the stdout/stderr file
descriptors, bypassing Python logging. While a run is active both descriptors
are redirected into pipes; a reader thread per pipe forwards every line to the
run's log file and echoes it to the original console.
"""

import io
import logging
import os
import sys
import threading
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional, TextIO, Union

from utils.logger import add_file_handler, get_logger, remove_handler

logger = get_logger(__name__)

CAPTURE_LOGGER_NAME = "paramtune.console"
CAPTURE_FORMAT = '%(asctime)s - %(levelname)s: %(message)s'


class StreamCapture:
    """
    Redirect one file descriptor into a pipe drained by a background thread.

    Usage:
        with StreamCapture(sys.__stdout__, on_line) as capture:
            ...  # everything written to fd 1 reaches on_line
    """

    def __init__(self, stream: Union[int, TextIO, None], callback: Callable[[str], None], echo: bool = True):
        self.stream = stream
        self.callback = callback
        self.echo = echo
        self.active = False

        self._fd: Optional[int] = None
        self._saved_fd: Optional[int] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def fd(self) -> Optional[int]:
        return self._fd

    @property
    def saved_fd(self) -> Optional[int]:
        """Duplicate of the original descriptor while capturing."""
        return self._saved_fd

    def _resolve_fd(self) -> Optional[int]:
        if isinstance(self.stream, int):
            return self.stream
        if self.stream is None:
            return None
        return _descriptor(self.stream)

    def _flush(self) -> None:
        if self.stream is not None and not isinstance(self.stream, int):
            self.stream.flush()

    def __enter__(self) -> "StreamCapture":
        self._fd = self._resolve_fd()
        if self._fd is None:
            logger.warning(f"Cannot capture {self.stream!r}: no file descriptor, output is not logged")
            return self

        self._flush()
        self._saved_fd = os.dup(self._fd)
        read_fd, write_fd = os.pipe()
        os.dup2(write_fd, self._fd)
        os.close(write_fd)

        self._thread = threading.Thread(target=self._drain, args=(read_fd,), daemon=True)
        self._thread.start()
        self.active = True
        return self

    def _drain(self, read_fd: int) -> None:
        with os.fdopen(read_fd, "r", errors="replace") as pipe:
            for line in pipe:
                if self.echo:
                    os.write(self._saved_fd, line.encode(errors="replace"))
                self.callback(line.rstrip("\n"))

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self.active:
            return

        self._flush()
        # Restoring the descriptor closes the pipe's last write end, the reader sees EOF
        os.dup2(self._saved_fd, self._fd)
        self._thread.join()
        os.close(self._saved_fd)

        self.active = False
        self._saved_fd = None
        self._thread = None


def _descriptor(stream) -> Optional[int]:
    try:
        return stream.fileno()
    except (AttributeError, OSError, ValueError, io.UnsupportedOperation):
        return None


@contextmanager
def _bypass_capture(captures: List[StreamCapture]) -> Iterator[None]:
    """
    Point the root logger's console handlers at the saved descriptors.

    Their records are already written to the run log by the root file handler
    and must not come back through the captured pipes.
    """
    saved_fds = {capture.fd: capture.saved_fd for capture in captures if capture.active}
    rebound = []
    try:
        for handler in logging.getLogger().handlers:
            if type(handler) is not logging.StreamHandler:
                continue
            fd = _descriptor(handler.stream)
            if fd not in saved_fds:
                continue
            handler.flush()
            console = open(saved_fds[fd], "w", closefd=False)
            rebound.append((handler, handler.setStream(console), console))
        yield
    finally:
        for handler, original, console in rebound:
            handler.setStream(original)
            console.close()


@contextmanager
def capture_console(logfile: Union[str, Path], capture: bool = True) -> Iterator[logging.Logger]:
    """
    Route a run's console output and log records into its log file.

    Log records reach the file through a root file handler. Lines written to the
    captured stdout/stderr descriptors by anything else are logged in addition,
    stdout lines at INFO and stderr lines at ERROR.

    Args:
        logfile: Run-scoped log file
        capture: Redirect the stdout/stderr file descriptors

    Yields:
        The logger receiving the captured lines
    """
    console_logger = logging.getLogger(CAPTURE_LOGGER_NAME)
    console_logger.propagate = False
    console_logger.setLevel(logging.INFO)

    handler = add_file_handler(str(logfile), CAPTURE_LOGGER_NAME)
    handler.setFormatter(logging.Formatter(CAPTURE_FORMAT))
    root_handler = add_file_handler(str(logfile), level=logging.NOTSET)

    try:
        with ExitStack() as stack:
            if capture:
                stdout = stack.enter_context(StreamCapture(sys.__stdout__, console_logger.info))
                stderr = stack.enter_context(StreamCapture(sys.__stderr__, console_logger.error))
                stack.enter_context(_bypass_capture([stdout, stderr]))

            yield console_logger
    finally:
        remove_handler(root_handler)
        remove_handler(handler, CAPTURE_LOGGER_NAME)
