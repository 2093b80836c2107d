from __future__ import annotations

from collections.abc import Iterable


class CodeRelayError(Exception):
    """Base class for every error raised by code-relay.

    Example:
        ```python
        try:
            orchestrator.execute(request)
        except CodeRelayError as exc:
            print(exc)
        ```
    """


class InvalidRequestError(CodeRelayError, ValueError):
    """Request rejected locally before any engine is contacted.

    Example:
        ```python
        raise InvalidRequestError("source_code must not be empty")
        ```
    """


class EngineError(CodeRelayError):
    """Engine-level failure that makes the orchestrator fail over.

    Example:
        ```python
        raise EngineError("piston", "engine returned garbage")
        ```
    """

    def __init__(self, engine: str, message: str) -> None:
        """Store the engine name alongside the message.

        Example:
            ```python
            err = EngineError("judge0", "boom")
            ```
        """
        super().__init__(f"{engine}: {message}")
        self.engine = engine
        self.detail = message


class EngineUnavailable(EngineError):
    """Engine could not be reached, timed out, or refused an inventory query.

    Example:
        ```python
        raise EngineUnavailable("piston", "connection refused")
        ```
    """


class TransportError(EngineError):
    """Engine answered with a non-2xx status or an unparsable body.

    Example:
        ```python
        raise TransportError("piston", "HTTP 500", status_code=500, body="oops")
        ```
    """

    def __init__(
        self,
        engine: str,
        message: str,
        *,
        status_code: int | None = None,
        body: str = "",
    ) -> None:
        """Keep the status code and raw body for diagnostics.

        Example:
            ```python
            err = TransportError("judge0", "HTTP 429", status_code=429, body="slow down")
            ```
        """
        super().__init__(engine, message)
        self.status_code = status_code
        self.body = body


class InvalidEngineResponse(EngineError):
    """Engine answered 2xx but the execution section is missing.

    Example:
        ```python
        raise InvalidEngineResponse("piston", "response has no 'run' section")
        ```
    """


class EngineFault(EngineError):
    """Engine reported an internal failure unrelated to the submitted program.

    Example:
        ```python
        raise EngineFault("judge0", "Internal Error")
        ```
    """


class NoRuntimesInstalled(EngineError):
    """Engine inventory is empty.

    Example:
        ```python
        raise NoRuntimesInstalled("piston", "no runtimes installed")
        ```
    """


class InvalidRuntimeVersion(EngineError):
    """Inventory matched the language but only with a wildcard or empty version.

    Example:
        ```python
        raise InvalidRuntimeVersion("piston", "version '*' is not a concrete version")
        ```
    """


class LanguageNotSupported(EngineError):
    """Requested language is absent from the engine inventory.

    Example:
        ```python
        raise LanguageNotSupported("piston", "cobol", ["python", "c"])
        ```
    """

    def __init__(self, engine: str, language: str, available: Iterable[str]) -> None:
        """Record the language and the sorted inventory for diagnostics.

        Example:
            ```python
            err = LanguageNotSupported("judge0", "zig", ["python"])
            ```
        """
        self.language = language
        self.available = sorted(set(available))
        listing = ", ".join(self.available) or "none"
        super().__init__(
            engine,
            f"language '{language}' not found in available runtimes. Available languages: {listing}",
        )
