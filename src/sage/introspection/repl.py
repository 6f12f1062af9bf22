"""
Introspection companion - the main loop that runs inside the kernel subprocess.

Usage:
    python -u -m sage.introspection.repl

DirectKernel starts it through a bootstrap that calls main().

Announces readiness, then executes framed requests from stdin and answers
with framed blocks on stdout: captured stdout, the three harvest blocks,
then exactly one terminal block (result, success or error).
"""

import builtins
import contextlib
import io
import json
import os
import pprint
import sys
import traceback
from typing import IO, Any, Dict, Optional, Tuple

from sage.introspection.harvester import harvest
from sage.introspection.providers import ProviderRegistry, default_registry
from sage.kernel.protocol import (
    EXEC_END,
    EXEC_START,
    MSG_COMPLETIONS,
    MSG_ERROR,
    MSG_RESULT,
    MSG_SQL_METADATA,
    MSG_STDOUT,
    MSG_SUCCESS,
    MSG_TYPE_RELATIONSHIPS,
    OUTPUT_END,
    OUTPUT_START,
    READY_TOKEN,
)

_NO_VALUE = object()


def new_namespace() -> Dict[str, Any]:
    return {"__name__": "__main__", "__builtins__": builtins}


def format_result(value: Any) -> str:
    """Format a value the way an interactive shell displays it."""
    try:
        if isinstance(value, str):
            return repr(value)
        if isinstance(value, (list, dict, tuple, set)):
            return pprint.pformat(value, width=80, compact=True)
        return repr(value)
    except Exception:
        return str(value)


def run_code(code: str, namespace: Dict[str, Any]) -> Tuple[Any, str, Optional[BaseException]]:
    """
    Run code as an expression if it is one, else as statements.

    Returns:
        (value or _NO_VALUE, captured stdout, raised exception or None)
    """
    captured = io.StringIO()
    value: Any = _NO_VALUE

    try:
        try:
            compiled = compile(code, "<sage>", "eval")
            is_expression = True
        except SyntaxError:
            compiled = compile(code, "<sage>", "exec")
            is_expression = False

        with contextlib.redirect_stdout(captured):
            if is_expression:
                value = eval(compiled, namespace)
            else:
                exec(compiled, namespace)
    except Exception as e:
        return _NO_VALUE, captured.getvalue(), e

    return value, captured.getvalue(), None


class CompanionLoop:
    """Serves execution requests over a pair of text streams."""

    def __init__(
        self,
        stdin: IO[str],
        stdout: IO[str],
        namespace: Optional[Dict[str, Any]] = None,
        registry: Optional[ProviderRegistry] = None,
    ):
        self.stdin = stdin
        self.stdout = stdout
        self.namespace = namespace if namespace is not None else new_namespace()
        self.registry = registry or default_registry()

    def emit(self, payload: Dict[str, Any]):
        """Write one framed block."""
        self.stdout.write(f"{OUTPUT_START}\n{json.dumps(payload, default=str)}\n{OUTPUT_END}\n")
        self.stdout.flush()

    def read_request(self) -> Optional[str]:
        """Block until a full request arrives. None at end-of-input."""
        while True:
            line = self.stdin.readline()
            if not line:
                return None
            if line.rstrip("\r\n") == EXEC_START:
                break

        code_lines = []
        while True:
            line = self.stdin.readline()
            if not line:
                return None
            line = line.rstrip("\r\n")
            if line == EXEC_END:
                break
            code_lines.append(line)
        return "\n".join(code_lines)

    def handle(self, code: str):
        value, captured, error = run_code(code, self.namespace)

        if captured:
            self.emit({"type": MSG_STDOUT, "data": captured})

        payloads = harvest(self.namespace, self.registry)
        self.emit({"type": MSG_COMPLETIONS, "data": payloads["completions"]})
        self.emit({"type": MSG_TYPE_RELATIONSHIPS, "data": payloads["type_relationships"]})
        self.emit({"type": MSG_SQL_METADATA, "data": payloads["sql_metadata"]})

        if error is not None:
            self.emit(
                {
                    "type": MSG_ERROR,
                    "ename": type(error).__name__,
                    "evalue": str(error),
                    "traceback": "".join(
                        traceback.format_exception(type(error), error, error.__traceback__)
                    ).split("\n"),
                }
            )
        elif value is not _NO_VALUE and value is not None:
            self.emit({"type": MSG_RESULT, "data": format_result(value)})
        else:
            self.emit({"type": MSG_SUCCESS})

    def serve(self):
        self.stdout.write(f"{READY_TOKEN}\n")
        self.stdout.flush()

        while True:
            code = self.read_request()
            if code is None:
                break
            self.handle(code)


def main():
    os.environ["TERM"] = "dumb"
    sys.ps1 = sys.ps2 = ""
    try:
        sys.stdout.reconfigure(line_buffering=True)
    except (AttributeError, OSError):
        pass

    CompanionLoop(sys.stdin, sys.stdout).serve()


if __name__ == "__main__":
    main()
