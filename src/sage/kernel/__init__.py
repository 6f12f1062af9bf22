"""
Kernel module for Sage.

Runs user code in a long-lived Python subprocess and harvests namespace
metadata for autocomplete:
- Subprocess lifecycle (connect, disconnect, restart)
- Line-framed, multi-block response protocol
- Completions, type relationships and SQL metadata per execution

Only the standard library is used here; the introspection companion
imports the protocol constants from inside the user's interpreter.
"""

from sage.kernel.base import (
    Kernel,
    KernelConnectionError,
    KernelError,
    KernelNotConnectedError,
    KernelTimeoutError,
    ProcessError,
    ProtocolError,
)
from sage.kernel.channel import LineChannel
from sage.kernel.direct import DirectKernel
from sage.kernel.manager import KernelManager, get_kernel_manager, reset_kernel_manager
from sage.kernel.protocol import (
    CompletionItem,
    ErrorOutput,
    ExecutionResult,
    KernelInfo,
    KernelMessage,
    KernelType,
    ResultOutput,
    SqlMetadata,
    StdoutOutput,
    TypeRelationships,
)

__all__ = [
    "Kernel",
    "DirectKernel",
    "KernelManager",
    "get_kernel_manager",
    "reset_kernel_manager",
    "LineChannel",
    "KernelMessage",
    "KernelInfo",
    "KernelType",
    "ExecutionResult",
    "StdoutOutput",
    "ResultOutput",
    "ErrorOutput",
    "CompletionItem",
    "TypeRelationships",
    "SqlMetadata",
    "KernelError",
    "KernelConnectionError",
    "KernelNotConnectedError",
    "ProtocolError",
    "ProcessError",
    "KernelTimeoutError",
]
