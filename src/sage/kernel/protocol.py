"""
Kernel protocol definitions - line-framed JSON blocks over the interpreter's stdio.

Request:
    SAGE_EXEC_START
    <code, one buffer line per protocol line>
    SAGE_EXEC_END

Response: zero or more blocks of
    SAGE_OUTPUT_START
    {"type": "...", ...}
    SAGE_OUTPUT_END
ending with a block whose type is ``result``, ``success`` or ``error``.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from sage.kernel.base import ProtocolError

READY_TOKEN = "SAGE_KERNEL_READY"
EXEC_START = "SAGE_EXEC_START"
EXEC_END = "SAGE_EXEC_END"
OUTPUT_START = "SAGE_OUTPUT_START"
OUTPUT_END = "SAGE_OUTPUT_END"
RESERVED_PREFIX = "SAGE_"

# Discriminators
MSG_STDOUT = "stdout"
MSG_RESULT = "result"
MSG_SUCCESS = "success"
MSG_ERROR = "error"
MSG_COMPLETIONS = "completions"
MSG_TYPE_RELATIONSHIPS = "type_relationships"
MSG_SQL_METADATA = "sql_metadata"

TERMINAL_TYPES = frozenset({MSG_RESULT, MSG_SUCCESS, MSG_ERROR})
SIDE_CHANNEL_TYPES = frozenset({MSG_COMPLETIONS, MSG_TYPE_RELATIONSHIPS, MSG_SQL_METADATA})


class KernelType(Enum):
    """Kernel variants."""

    DIRECT = "direct"


@dataclass(frozen=True)
class KernelInfo:
    """Identity of a kernel instance."""

    name: str
    display_name: str
    python_path: str
    kernel_type: KernelType = KernelType.DIRECT


@dataclass(frozen=True)
class StdoutOutput:
    """Text the code printed."""

    text: str


@dataclass(frozen=True)
class ResultOutput:
    """Formatted value of the evaluated expression."""

    text: str


@dataclass(frozen=True)
class ErrorOutput:
    """Exception raised inside the interpreter."""

    ename: str
    evalue: str
    traceback: Tuple[str, ...] = ()


ExecutionOutput = Union[StdoutOutput, ResultOutput, ErrorOutput]


@dataclass(frozen=True)
class CompletionItem:
    """A harvested namespace name and its runtime type name."""

    name: str
    type: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "type": self.type}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompletionItem":
        return cls(name=str(data["name"]), type=str(data.get("type", "")))


@dataclass
class TypeRelationships:
    """Callable return types and per-type member lists."""

    return_types: Dict[str, str] = field(default_factory=dict)
    type_methods: Dict[str, List[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"return_types": dict(self.return_types), "type_methods": dict(self.type_methods)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TypeRelationships":
        return_types = data.get("return_types") or {}
        type_methods = data.get("type_methods") or {}
        if not isinstance(return_types, dict) or not isinstance(type_methods, dict):
            raise ValueError("return_types and type_methods must be mappings")
        return cls(
            return_types={str(k): str(v) for k, v in return_types.items()},
            type_methods={str(k): [str(m) for m in v] for k, v in type_methods.items()},
        )


def _dedupe(values: Iterable[Any]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        text = str(value)
        if text not in seen:
            seen.add(text)
            result.append(text)
    return result


@dataclass
class SqlMetadata:
    """Tables, columns (qualified and bare) and functions of live SQL connections."""

    tables: List[str] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)
    functions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {"tables": list(self.tables), "columns": list(self.columns), "functions": list(self.functions)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SqlMetadata":
        for key in ("tables", "columns", "functions"):
            if not isinstance(data.get(key, []), list):
                raise ValueError(f"{key} must be a list")
        return cls(
            tables=_dedupe(data.get("tables", [])),
            columns=_dedupe(data.get("columns", [])),
            functions=_dedupe(data.get("functions", [])),
        )


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one execute() call."""

    outputs: Tuple[ExecutionOutput, ...] = ()
    execution_count: int = 0
    success: bool = False
    completions: Tuple[CompletionItem, ...] = ()
    type_relationships: TypeRelationships = field(default_factory=TypeRelationships)
    sql_metadata: SqlMetadata = field(default_factory=SqlMetadata)

    def completion_names(self) -> List[str]:
        return [item.name for item in self.completions]

    @property
    def error(self) -> Optional[ErrorOutput]:
        for output in self.outputs:
            if isinstance(output, ErrorOutput):
                return output
        return None


class KernelMessage:
    """Sage wire-format encoding and decoding."""

    @staticmethod
    def split_code(code: str) -> List[str]:
        """Split code into protocol lines, normalizing line terminators."""
        return code.replace("\r\n", "\n").replace("\r", "\n").splitlines()

    @staticmethod
    def request_lines(code: str) -> List[str]:
        """Create an execution request."""
        return [EXEC_START, *KernelMessage.split_code(code), EXEC_END]

    @staticmethod
    def block(payload: Dict[str, Any]) -> List[str]:
        """Create one response block."""
        return [OUTPUT_START, json.dumps(payload), OUTPUT_END]

    @staticmethod
    def parse(line: str) -> Dict[str, Any]:
        """
        Decode the structured line of a response block.

        Raises:
            ProtocolError: If the line is not a JSON object with a string ``type``
        """
        try:
            data = json.loads(line.strip())
        except json.JSONDecodeError as e:
            raise ProtocolError(f"Malformed output line: {line.strip()[:200]!r} ({e})") from e

        if not isinstance(data, dict) or not isinstance(data.get("type"), str):
            raise ProtocolError(f"Output line has no message type: {line.strip()[:200]!r}")

        return data

    @staticmethod
    def parse_error(data: Dict[str, Any]) -> ErrorOutput:
        traceback = data.get("traceback")
        if not isinstance(traceback, list):
            traceback = []
        return ErrorOutput(
            ename=str(data.get("ename") or "Error"),
            evalue=str(data.get("evalue") or ""),
            traceback=tuple(str(entry) for entry in traceback),
        )

    @staticmethod
    def parse_completions(data: Dict[str, Any]) -> List[CompletionItem]:
        """Decode a completions payload, skipping malformed items."""
        items = data.get("data")
        if not isinstance(items, list):
            return []
        completions = []
        for item in items:
            if isinstance(item, dict) and "name" in item:
                completions.append(CompletionItem.from_dict(item))
        return completions
