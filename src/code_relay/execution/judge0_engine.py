from __future__ import annotations

import logging
import re
import shlex
from typing import Any
from urllib.parse import urlparse

from ..errors import (
    EngineError,
    EngineFault,
    EngineUnavailable,
    InvalidEngineResponse,
    InvalidRuntimeVersion,
    TransportError,
)
from ..languages import map_language
from .normalize import compile_error_outcome, invalid_response_outcome, normalize_run
from .transport import HttpEngineClient
from .types import (
    NOT_AVAILABLE,
    TIMEOUT_LABEL,
    ExecutionOutcome,
    ExecutionRequest,
    RawEngineResponse,
    RuntimeDescriptor,
)

logger = logging.getLogger(__name__)

STATUS_IN_QUEUE = 1
STATUS_PROCESSING = 2
STATUS_ACCEPTED = 3
STATUS_TIME_LIMIT_EXCEEDED = 5
STATUS_COMPILATION_ERROR = 6
STATUS_INTERNAL_ERROR = 13
STATUS_EXEC_FORMAT_ERROR = 14

_ENGINE_FAULT_STATUSES = {STATUS_INTERNAL_ERROR, STATUS_EXEC_FORMAT_ERROR}
_UNFINISHED_STATUSES = {STATUS_IN_QUEUE, STATUS_PROCESSING}
_LANGUAGE_NAME = re.compile(r"^(?P<name>.+?)\s*\((?P<version>[^()]*)\)\s*$")

# Judge0 display names that differ from the playground labels.
JUDGE0_NAME_ALIASES: dict[str, str] = {
    "visual basic.net": "vbnet",
    "common lisp": "lisp",
}


def parse_language_name(display: str) -> tuple[str, str]:
    """Split a Judge0 language name such as `"Python (3.8.1)"` into name and version.

    Example:
        ```python
        parse_language_name("C++ (GCC 9.2.0)")  # ("C++", "GCC 9.2.0")
        ```
    """
    match = _LANGUAGE_NAME.match(display.strip())
    if match is None:
        return display.strip(), ""
    return match.group("name").strip(), match.group("version").strip()


def _has_text(value: Any) -> bool:
    """Return True for a non-blank string.

    Example:
        ```python
        _has_text(" x ")  # True
        ```
    """
    return isinstance(value, str) and bool(value.strip())


class Judge0Engine(HttpEngineClient):
    """Client for the Judge0 CE submissions API.

    Example:
        ```python
        engine = Judge0Engine(EngineSettings(kind="judge0", base_url="https://ce.judge0.com"))
        ```
    """

    name = "judge0"

    def list_runtimes(self) -> list[RuntimeDescriptor]:
        """Query `/languages` and return descriptors, newest language id first.

        Judge0 lists languages by ascending id, which puts the oldest runtime of
        a language first; reversing gives the resolver newest-first order.

        Example:
            ```python
            runtimes = engine.list_runtimes()
            ```
        """
        try:
            payload = self._request_json(
                "GET", "/languages", timeout=self._settings.inventory_timeout_seconds
            )
        except TransportError as exc:
            raise EngineUnavailable(self.name, f"language inventory query failed: {exc.detail}") from exc
        if not isinstance(payload, list):
            raise EngineUnavailable(self.name, "language inventory is not a list")

        entries: list[tuple[int, RuntimeDescriptor]] = []
        for entry in payload:
            if not isinstance(entry, dict) or entry.get("is_archived"):
                continue
            try:
                language_id = int(entry["id"])
            except (KeyError, TypeError, ValueError):
                continue
            display = str(entry.get("name") or "").strip()
            if not display:
                continue
            name, version = parse_language_name(display)
            canonical = JUDGE0_NAME_ALIASES.get(name.casefold()) or map_language(name)
            aliases = frozenset({name.lower(), display.lower(), str(language_id)} - {canonical})
            entries.append(
                (
                    language_id,
                    RuntimeDescriptor(
                        engine_language_id=canonical,
                        version=version,
                        aliases=aliases,
                        engine_ref=str(language_id),
                    ),
                )
            )
        entries.sort(key=lambda item: item[0], reverse=True)
        logger.debug("judge0 reported %d languages", len(entries))
        return [descriptor for _, descriptor in entries]

    def execute(self, runtime: RuntimeDescriptor, request: ExecutionRequest) -> RawEngineResponse:
        """Create a synchronous submission (`wait=true`) and return its result.

        Example:
            ```python
            raw = engine.execute(runtime, ExecutionRequest("print('Hello')", "Python"))
            ```
        """
        if runtime.version in {"", "*"}:
            raise InvalidRuntimeVersion(self.name, f"refusing to execute with version '{runtime.version}'")
        if runtime.engine_ref is None:
            raise InvalidRuntimeVersion(self.name, f"runtime {runtime.engine_language_id} has no Judge0 language id")
        body: dict[str, Any] = {
            "source_code": request.source_code,
            "language_id": int(runtime.engine_ref),
            "stdin": request.stdin,
        }
        if request.args:
            body["command_line_arguments"] = shlex.join(request.args)
        logger.debug(
            "judge0 execute language_id=%s (source=%d chars, stdin=%d chars)",
            runtime.engine_ref,
            len(request.source_code),
            len(request.stdin),
        )
        payload = self._request_json(
            "POST",
            "/submissions",
            json=body,
            params={"base64_encoded": "false", "wait": "true"},
            timeout=self._settings.timeout_seconds,
        )
        if not isinstance(payload, dict):
            raise TransportError(self.name, "submission response is not a JSON object", body=str(payload)[:500])
        status = payload.get("status")
        if not isinstance(status, dict) or not isinstance(status.get("id"), int):
            raise InvalidEngineResponse(self.name, "response has no 'status' section")
        status_id = status["id"]
        if status_id in _ENGINE_FAULT_STATUSES:
            detail = payload.get("message") or status.get("description") or "internal error"
            raise EngineFault(self.name, str(detail))
        if status_id in _UNFINISHED_STATUSES:
            raise EngineFault(self.name, f"submission still {status.get('description') or 'pending'} after wait")
        return payload

    def normalize(self, raw: RawEngineResponse) -> ExecutionOutcome:
        """Map a Judge0 submission result onto the shared run classification.

        Example:
            ```python
            outcome = engine.normalize({"stdout": "Hello\\n", "status": {"id": 3}, "exit_code": 0})
            ```
        """
        if not isinstance(raw, dict):
            return invalid_response_outcome()
        status = raw.get("status")
        if not isinstance(status, dict) or not isinstance(status.get("id"), int):
            return invalid_response_outcome()
        status_id = status["id"]
        label = self._elapsed_label(status_id, raw.get("time"))

        if status_id == STATUS_COMPILATION_ERROR:
            return compile_error_outcome(str(raw.get("compile_output") or raw.get("message") or ""), label)

        exit_code = raw.get("exit_code")
        if not isinstance(exit_code, int):
            exit_code = 0 if status_id == STATUS_ACCEPTED else None
        exit_signal = raw.get("exit_signal")
        outcome = normalize_run(
            stdout=raw.get("stdout"),
            stderr=raw.get("stderr"),
            exit_code=exit_code,
            elapsed_time_label=label,
            signal=str(exit_signal) if exit_signal else None,
        )
        if outcome.error_message and not _has_text(raw.get("stderr")) and status_id != STATUS_ACCEPTED:
            detail = raw.get("message") or status.get("description")
            if _has_text(detail):
                outcome.error_message = f"{outcome.error_message} ({str(detail).strip()})"
        return outcome

    def check_health(self) -> bool:
        """Return True when `/about` answers.

        Example:
            ```python
            ok = engine.check_health()
            ```
        """
        try:
            self._request_json("GET", "/about", timeout=self._settings.inventory_timeout_seconds)
        except EngineError as exc:
            logger.warning("judge0 health check failed: %s", exc)
            return False
        return True

    @staticmethod
    def _elapsed_label(status_id: int, elapsed: Any) -> str:
        """Derive the elapsed-time label from a Judge0 status and `time` field.

        Example:
            ```python
            Judge0Engine._elapsed_label(3, "0.012")  # "0.012s"
            ```
        """
        if status_id == STATUS_TIME_LIMIT_EXCEEDED:
            return TIMEOUT_LABEL
        if elapsed is None or str(elapsed).strip() == "":
            return NOT_AVAILABLE
        return f"{str(elapsed).strip()}s"

    def _headers(self) -> dict[str, str]:
        """Add Judge0 or RapidAPI authentication headers when a key is configured.

        Example:
            ```python
            headers = engine._headers()
            ```
        """
        headers = super()._headers()
        key = self._settings.api_key
        if not key:
            return headers
        host = urlparse(self._settings.base_url).netloc
        if host.endswith("rapidapi.com"):
            headers["X-RapidAPI-Key"] = key
            headers["X-RapidAPI-Host"] = host
        else:
            headers["X-Auth-Token"] = key
        return headers
