"""
Base classes for Sage kernels.

Defines the Kernel interface and the exceptions every kernel raises.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sage.kernel.protocol import ExecutionResult, KernelInfo


class Kernel(ABC):
    """
    Abstract base class for execution kernels.

    Each kernel must implement:
    - connect: acquire the interpreter process
    - execute: run one block of code and return its ExecutionResult
    - disconnect: release the process (best-effort, never raises)
    - is_connected / info
    """

    @abstractmethod
    def connect(self) -> None:
        """
        Start the interpreter. No-op when already connected.

        Raises:
            KernelConnectionError: If the process cannot be started
                or does not complete the handshake
        """
        pass

    @abstractmethod
    def execute(self, code: str) -> "ExecutionResult":
        """
        Execute code and collect every output block up to the terminal one.

        Raises:
            KernelNotConnectedError: If called before connect()
            ProtocolError: If the response stream is malformed
            ProcessError: If the process dies or a pipe closes mid-exchange
            KernelTimeoutError: If the exchange times out or is cancelled
        """
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Stop the interpreter. Always succeeds."""
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        pass

    @property
    @abstractmethod
    def info(self) -> "KernelInfo":
        pass

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.disconnect()
        return False


# Exceptions
class KernelError(Exception):
    """Base exception for kernel failures"""

    pass


class KernelConnectionError(KernelError):
    """Raised when the interpreter cannot be spawned or fails the handshake"""

    pass


class KernelNotConnectedError(KernelError):
    """Raised when execute() is called on a disconnected kernel"""

    pass


class ProtocolError(KernelError):
    """Raised when a response line is malformed or a sentinel is missing"""

    pass


class ProcessError(KernelError):
    """Raised when the interpreter exits or a pipe closes mid-exchange"""

    pass


class KernelTimeoutError(KernelError):
    """Raised when an exchange exceeds its timeout or is cancelled"""

    pass
