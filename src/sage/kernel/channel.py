"""
Line channel - line-oriented exchange with a child process over its stdio.

A background thread reads the child's stdout so that a blocked read can be
bounded by a timeout or cancelled from another thread, without changing the
wire protocol.
"""

import logging
import queue
import threading
from typing import IO, Iterable, Optional, Union

from sage.kernel.base import KernelTimeoutError, ProcessError

logger = logging.getLogger(__name__)

_EOF = object()
_CANCELLED = object()


class LineChannel:
    """
    Request/response channel over a pair of pipes.

    Manages:
    - Writing newline-terminated UTF-8 lines to the child's stdin
    - A daemon reader thread feeding decoded stdout lines into a queue
    - Timeout and cancellation for blocked reads
    """

    def __init__(self, stdin: IO[bytes], stdout: IO[bytes], name: str = "kernel"):
        """
        Initialize the channel and start the reader thread.

        Args:
            stdin: Child's standard input (binary, writable)
            stdout: Child's standard output (binary, readable)
            name: Label used for the reader thread
        """
        self._stdin: Optional[IO[bytes]] = stdin
        self._stdout: Optional[IO[bytes]] = stdout
        self._lines: "queue.Queue[Union[str, object, Exception]]" = queue.Queue()
        self._cancelled = threading.Event()
        self._eof = False
        self._reader_thread = threading.Thread(
            target=self._read_lines, name=f"{name}-stdout-reader", daemon=True
        )
        self._reader_thread.start()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def at_eof(self) -> bool:
        return self._eof

    def write_lines(self, lines: Iterable[str]):
        """
        Write lines to the child and flush.

        Raises:
            ProcessError: If stdin is closed or the pipe is broken
        """
        if self._stdin is None:
            raise ProcessError("Kernel input stream is closed")

        try:
            for line in lines:
                self._stdin.write(f"{line}\n".encode("utf-8"))
            self._stdin.flush()
        except (BrokenPipeError, OSError, ValueError) as e:
            raise ProcessError(f"Failed to write to kernel: {e}") from e

    def read_line(self, timeout: Optional[float] = None) -> Optional[str]:
        """
        Read the next line from the child, without its terminator.

        Args:
            timeout: Seconds to wait, or None to wait indefinitely

        Returns:
            The line, or None at end-of-stream

        Raises:
            KernelTimeoutError: If the timeout elapses or the channel was cancelled
            ProcessError: If reading the pipe failed
        """
        if self._cancelled.is_set():
            raise KernelTimeoutError("Kernel exchange was cancelled")
        if self._eof:
            return None

        try:
            item = self._lines.get(timeout=timeout)
        except queue.Empty:
            raise KernelTimeoutError(f"No response from kernel within {timeout} seconds")

        if item is _CANCELLED:
            raise KernelTimeoutError("Kernel exchange was cancelled")
        if item is _EOF:
            self._eof = True
            return None
        if isinstance(item, Exception):
            self._eof = True
            raise ProcessError(f"Failed to read from kernel: {item}") from item

        return item

    def cancel(self):
        """Cancel the exchange; a blocked read_line() raises KernelTimeoutError."""
        self._cancelled.set()
        self._lines.put(_CANCELLED)

    def close_input(self):
        """Close the child's stdin, signalling end-of-input."""
        if self._stdin is None:
            return
        stdin, self._stdin = self._stdin, None
        try:
            stdin.close()
        except (BrokenPipeError, OSError) as e:
            logger.debug(f"Error closing kernel stdin: {e}")

    def close(self, join_timeout: float = 1.0):
        """Close both pipes. Call after the child has exited."""
        self.close_input()
        self._reader_thread.join(timeout=join_timeout)
        if self._stdout is not None:
            stdout, self._stdout = self._stdout, None
            try:
                stdout.close()
            except OSError as e:
                logger.debug(f"Error closing kernel stdout: {e}")

    def _read_lines(self):
        """Background thread to read child output."""
        stream = self._stdout
        try:
            while stream is not None:
                raw = stream.readline()
                if not raw:
                    break
                self._lines.put(raw.decode("utf-8", errors="replace").rstrip("\r\n"))
        except (OSError, ValueError) as e:
            self._lines.put(e)
            return
        self._lines.put(_EOF)
