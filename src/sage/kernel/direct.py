"""
Direct kernel - runs Python as a long-lived subprocess and talks to it over stdio.
"""

import atexit
import logging
import os
import subprocess
import time
from pathlib import Path
from typing import List, Optional

import sage
from sage.kernel.base import (
    Kernel,
    KernelConnectionError,
    KernelError,
    KernelNotConnectedError,
    ProcessError,
    ProtocolError,
    KernelTimeoutError,
)
from sage.kernel.channel import LineChannel
from sage.kernel.protocol import (
    MSG_COMPLETIONS,
    MSG_ERROR,
    MSG_RESULT,
    MSG_SQL_METADATA,
    MSG_STDOUT,
    MSG_SUCCESS,
    MSG_TYPE_RELATIONSHIPS,
    OUTPUT_START,
    READY_TOKEN,
    CompletionItem,
    ExecutionOutput,
    ExecutionResult,
    KernelInfo,
    KernelMessage,
    KernelType,
    ResultOutput,
    SqlMetadata,
    StdoutOutput,
    TypeRelationships,
)
from sage.utils.logger import LogSink, NullSink

logger = logging.getLogger(__name__)

COMPANION_MODULE = "sage.introspection.repl"

# The package root goes last on the child's sys.path
BOOTSTRAP = (
    "import sys; sys.path.append(sys.argv[1]); "
    "from sage.introspection.repl import main; main()"
)


class DirectKernel(Kernel):
    """
    Kernel backed by a Python subprocess running the introspection companion.

    Manages:
    - Process lifecycle (spawn, handshake, teardown)
    - Framed request/response exchange over stdin/stdout
    - Collection of side-channel metadata blocks (completions, type
      relationships, SQL metadata) ahead of the terminal block
    """

    def __init__(
        self,
        python_path: str,
        name: str = "python3",
        display_name: str = "Python 3",
        *,
        startup_timeout: Optional[float] = None,
        execute_timeout: Optional[float] = None,
        sink: Optional[LogSink] = None,
    ):
        """
        Initialize the kernel (disconnected).

        Args:
            python_path: Interpreter executable to spawn
            name: Logical kernel name
            display_name: Human-readable kernel name
            startup_timeout: Seconds to wait for the ready token (None = forever)
            execute_timeout: Seconds to wait for a full response (None = forever)
            sink: Structured log sink (defaults to a no-op sink)
        """
        self._info = KernelInfo(
            name=name,
            display_name=display_name,
            python_path=python_path,
            kernel_type=KernelType.DIRECT,
        )
        self.startup_timeout = startup_timeout
        self.execute_timeout = execute_timeout
        self.sink = sink or NullSink()
        self._process: Optional[subprocess.Popen] = None
        self._channel: Optional[LineChannel] = None
        self._execution_count = 0

    @classmethod
    def from_config(cls, config, sink: Optional[LogSink] = None) -> "DirectKernel":
        """Create a kernel from a ``sage.config.Config``."""
        return cls(
            config.python_path,
            config.kernel_name,
            config.display_name,
            startup_timeout=config.startup_timeout,
            execute_timeout=config.execute_timeout,
            sink=sink,
        )

    @property
    def info(self) -> KernelInfo:
        return self._info

    @property
    def is_connected(self) -> bool:
        return self._process is not None

    @property
    def execution_count(self) -> int:
        return self._execution_count

    def connect(self) -> None:
        if self.is_connected:
            return

        command = self._build_command()
        self.sink.info("KERNEL", f"Starting kernel: {self._info.python_path} ({COMPANION_MODULE})")

        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                env=self._build_env(),
            )
        except (OSError, ValueError) as e:
            self.sink.error("KERNEL", "Failed to spawn Python process", exception=e)
            raise KernelConnectionError(f"Failed to spawn Python process: {e}") from e

        channel = LineChannel(process.stdin, process.stdout, name=self._info.name)

        try:
            line = channel.read_line(timeout=self.startup_timeout)
        except KernelError as e:
            self._terminate(process, channel)
            raise KernelConnectionError(f"Failed to read from Python: {e}") from e

        if line is None:
            self._terminate(process, channel)
            raise KernelConnectionError("Python process died immediately")

        if line.strip() != READY_TOKEN:
            self._terminate(process, channel)
            raise KernelConnectionError(f"Kernel failed to start. Got: '{line.strip()}'")

        self._process = process
        self._channel = channel
        atexit.register(self.disconnect)
        self.sink.info("KERNEL", f"Kernel ready (pid {process.pid})", pid=process.pid)

    def execute(self, code: str) -> ExecutionResult:
        if not self.is_connected or self._channel is None:
            raise KernelNotConnectedError("Kernel not connected")

        self._execution_count += 1
        channel = self._channel
        self.sink.debug(
            "KERNEL",
            f"Execute [{self._execution_count}] ({len(code)} chars)",
            execution_count=self._execution_count,
        )

        try:
            channel.write_lines(KernelMessage.request_lines(code))
            result = self._collect_result(channel)
        except (ProtocolError, ProcessError, KernelTimeoutError) as e:
            self.sink.error("KERNEL", f"Execution [{self._execution_count}] failed", exception=e)
            self.disconnect()
            raise

        self.sink.info(
            "KERNEL",
            f"Execution [{result.execution_count}] {'succeeded' if result.success else 'failed'} "
            f"({len(result.outputs)} outputs, {len(result.completions)} completions)",
            success=result.success,
        )
        return result

    def interrupt(self):
        """
        Cancel an in-flight execute() from another thread.

        The blocked call raises KernelTimeoutError and the kernel disconnects.
        """
        channel = self._channel
        if channel is not None:
            self.sink.warning("KERNEL", "Execution cancelled")
            channel.cancel()

    def disconnect(self) -> None:
        process, channel = self._process, self._channel
        self._process = None
        self._channel = None

        if process is None and channel is None:
            return

        atexit.unregister(self.disconnect)
        self._terminate(process, channel)
        self.sink.info("KERNEL", "Kernel disconnected")

    def __del__(self):
        try:
            self.disconnect()
        except Exception as e:
            logger.debug(f"Error during kernel teardown: {e}")

    # --- Internal methods ---

    def _build_command(self) -> List[str]:
        return [self._info.python_path, "-u", "-c", BOOTSTRAP, self.package_root()]

    @staticmethod
    def package_root() -> str:
        """Directory containing the sage package."""
        return str(Path(sage.__file__).resolve().parent.parent)

    @staticmethod
    def _build_env() -> dict:
        """Environment for a non-interactive, plain-terminal child speaking UTF-8."""
        env = dict(os.environ)
        env["TERM"] = "dumb"
        env.pop("TERM_PROGRAM", None)
        env["PYTHONUNBUFFERED"] = "1"
        env["PYTHONIOENCODING"] = "utf-8"
        return env

    def _collect_result(self, channel: LineChannel) -> ExecutionResult:
        """Read response blocks until a terminal one arrives."""
        deadline = time.monotonic() + self.execute_timeout if self.execute_timeout else None

        outputs: List[ExecutionOutput] = []
        completions: List[CompletionItem] = []
        type_relationships = TypeRelationships()
        sql_metadata = SqlMetadata()
        success = False
        finished = False

        while not finished:
            # Wait for output start marker
            while True:
                line = channel.read_line(timeout=self._remaining(deadline))
                if line is None:
                    raise self._stream_ended("before an output start marker")
                if line.strip() == OUTPUT_START:
                    break

            line = channel.read_line(timeout=self._remaining(deadline))
            if line is None:
                raise self._stream_ended("inside an output block")

            message = KernelMessage.parse(line)
            kind = message["type"]
            self.sink.debug("KERNEL", f"Block: {kind}", block_type=kind)

            if kind == MSG_STDOUT:
                data = message.get("data")
                if isinstance(data, str):
                    outputs.append(StdoutOutput(data))
            elif kind == MSG_RESULT:
                data = message.get("data")
                if isinstance(data, str):
                    outputs.append(ResultOutput(data))
                success = True
                finished = True
            elif kind == MSG_SUCCESS:
                success = True
                finished = True
            elif kind == MSG_ERROR:
                outputs.append(KernelMessage.parse_error(message))
                success = False
                finished = True
            elif kind == MSG_COMPLETIONS:
                completions = KernelMessage.parse_completions(message)
            elif kind == MSG_TYPE_RELATIONSHIPS:
                type_relationships = self._parse_side_channel(
                    TypeRelationships, message, type_relationships
                )
            elif kind == MSG_SQL_METADATA:
                sql_metadata = self._parse_side_channel(SqlMetadata, message, sql_metadata)
            else:
                self.sink.warning("KERNEL", f"Unknown block type '{kind}', ending execution")
                finished = True

            # Output end marker; EOF here surfaces on the next block read
            channel.read_line(timeout=self._remaining(deadline))

        return ExecutionResult(
            outputs=tuple(outputs),
            execution_count=self._execution_count,
            success=success,
            completions=tuple(completions),
            type_relationships=type_relationships,
            sql_metadata=sql_metadata,
        )

    def _parse_side_channel(self, cls, message: dict, current):
        """Decode a metadata payload; a malformed payload keeps the current value."""
        data = message.get("data")
        if not isinstance(data, dict):
            return current
        try:
            return cls.from_dict(data)
        except (TypeError, ValueError) as e:
            self.sink.warning("KERNEL", f"Ignoring malformed {message['type']} block: {e}")
            return current

    @staticmethod
    def _remaining(deadline: Optional[float]) -> Optional[float]:
        if deadline is None:
            return None
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise KernelTimeoutError("Kernel did not finish responding in time")
        return remaining

    def _stream_ended(self, where: str) -> KernelError:
        process = self._process
        if process is not None:
            try:
                returncode = process.wait(timeout=0.5)
            except subprocess.TimeoutExpired:
                returncode = None
            if returncode is not None:
                return ProcessError(f"Python process exited with code {returncode} {where}")
        return ProtocolError(f"Kernel output ended {where}")

    @staticmethod
    def _terminate(process: Optional[subprocess.Popen], channel: Optional[LineChannel]):
        """Close stdin first, then kill the child if it is still running."""
        if channel is not None:
            channel.close_input()

        if process is not None and process.poll() is None:
            try:
                process.kill()
                process.wait()
            except OSError as e:
                logger.warning(f"Error terminating kernel process: {e}")

        if channel is not None:
            channel.close()
