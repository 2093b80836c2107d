from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from ..errors import InvalidRequestError

NOT_AVAILABLE = "N/A"
TIMEOUT_LABEL = "Timeout"

RawEngineResponse = dict[str, Any]


class EngineRole(str, enum.Enum):
    """Position of an engine in the failover order.

    Example:
        ```python
        role = EngineRole.PRIMARY
        ```
    """

    PRIMARY = "primary"
    SECONDARY = "secondary"


@dataclass(slots=True)
class ExecutionRequest:
    """One submission to run on a remote engine.

    Example:
        ```python
        req = ExecutionRequest(source_code="print('Hello')", language_label="Python")
        ```
    """

    source_code: str
    language_label: str
    stdin: str = ""
    args: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Reject blank source code before anything touches the network.

        Example:
            ```python
            ExecutionRequest(source_code="   ", language_label="Python")  # raises
            ```
        """
        if not isinstance(self.source_code, str) or not self.source_code.strip():
            raise InvalidRequestError("Source code cannot be empty")
        if self.stdin is None:
            self.stdin = ""
        self.args = tuple(str(arg) for arg in (self.args or ()))


@dataclass(frozen=True, slots=True)
class RuntimeDescriptor:
    """A (language, version) pair an engine reports as installed.

    `engine_ref` holds the engine-native handle needed to submit, such as
    Judge0's numeric language id.

    Example:
        ```python
        rt = RuntimeDescriptor("python", "3.10.0", frozenset({"py", "python3"}))
        ```
    """

    engine_language_id: str
    version: str
    aliases: frozenset[str] = frozenset()
    engine_ref: str | None = None

    def matches(self, language_id: str) -> bool:
        """Return True when the id equals the language or one of its aliases.

        Example:
            ```python
            rt.matches("py")
            ```
        """
        return self.engine_language_id == language_id or language_id in self.aliases


@dataclass(slots=True)
class ExecutionOutcome:
    """Normalized result handed back to callers.

    Example:
        ```python
        out = ExecutionOutcome(success=True, output="Hello")
        ```
    """

    success: bool
    output: str = ""
    error_message: str = ""
    awaiting_input: bool = False
    engine_used: EngineRole | None = None
    elapsed_time_label: str = NOT_AVAILABLE
    failures: tuple[str, ...] = field(default_factory=tuple)
