from __future__ import annotations

from typing import Protocol

from .types import ExecutionOutcome, ExecutionRequest, RawEngineResponse, RuntimeDescriptor


class ExecutionEngine(Protocol):
    """Client for one remote execution engine.

    Implementations raise `EngineError` subclasses for engine-level failures and
    keep the raw response shape private to `execute`/`normalize`.
    """

    name: str

    def list_runtimes(self) -> list[RuntimeDescriptor]:
        """Query the engine's currently installed runtimes, in engine order.

        Example:
            ```python
            runtimes = engine.list_runtimes()
            ```
        """
        ...

    def execute(self, runtime: RuntimeDescriptor, request: ExecutionRequest) -> RawEngineResponse:
        """Run one request against a resolved runtime and return the raw response.

        Example:
            ```python
            raw = engine.execute(runtime, ExecutionRequest("print(1)", "Python"))
            ```
        """
        ...

    def normalize(self, raw: RawEngineResponse) -> ExecutionOutcome:
        """Convert the engine's raw response into an ExecutionOutcome.

        Example:
            ```python
            outcome = engine.normalize(raw)
            ```
        """
        ...

    def check_health(self) -> bool:
        """Return True when the engine answers its probe endpoint.

        Example:
            ```python
            ok = engine.check_health()
            ```
        """
        ...

    def close(self) -> None:
        """Release the underlying HTTP client.

        Example:
            ```python
            engine.close()
            ```
        """
        ...
