"""
Kernel Manager - owns the console's active kernel.
"""

import atexit
import logging
from typing import Optional

from sage.config import Config
from sage.kernel.direct import DirectKernel
from sage.utils.logger import LogSink, NullSink

logger = logging.getLogger(__name__)


class KernelManager:
    """
    Manages the lifecycle of the console's kernel.

    Features:
    - Lazy start (the kernel spawns on first use)
    - Restart after a fatal protocol or process error
    - Automatic cleanup on exit
    """

    def __init__(self, config: Optional[Config] = None, sink: Optional[LogSink] = None):
        """
        Initialize the kernel manager.

        Args:
            config: Configuration. Defaults to one read from the environment.
            sink: Structured log sink passed to the kernel
        """
        self.config = config or Config()
        self.sink = sink or NullSink()
        self._kernel: Optional[DirectKernel] = None

        # Register cleanup on exit
        atexit.register(self.shutdown)

    @property
    def kernel(self) -> Optional[DirectKernel]:
        return self._kernel

    def start(self) -> DirectKernel:
        """
        Get the running kernel, starting one if needed.

        Raises:
            KernelConnectionError: If the kernel cannot be started
        """
        if self._kernel is not None and self._kernel.is_connected:
            return self._kernel

        kernel = self._kernel or DirectKernel.from_config(self.config, sink=self.sink)
        kernel.connect()
        self._kernel = kernel
        return kernel

    def restart(self) -> DirectKernel:
        """Stop the current kernel and start a fresh one. Namespace state is lost."""
        self.shutdown()
        return self.start()

    def shutdown(self):
        """Stop the kernel if it is running."""
        if self._kernel is None:
            return
        try:
            self._kernel.disconnect()
        except Exception as e:
            logger.error(f"Error shutting down kernel: {e}")
        finally:
            self._kernel = None


# Global kernel manager instance
_kernel_manager: Optional[KernelManager] = None


def get_kernel_manager(
    config: Optional[Config] = None, sink: Optional[LogSink] = None
) -> KernelManager:
    """Get the global kernel manager."""
    global _kernel_manager
    if _kernel_manager is None:
        _kernel_manager = KernelManager(config, sink)
    return _kernel_manager


def reset_kernel_manager():
    """Reset the global kernel manager. Useful for testing."""
    global _kernel_manager
    if _kernel_manager is not None:
        _kernel_manager.shutdown()
        _kernel_manager = None
