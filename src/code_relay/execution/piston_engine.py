from __future__ import annotations

import logging
from typing import Any

from ..errors import (
    EngineError,
    EngineFault,
    EngineUnavailable,
    InvalidEngineResponse,
    InvalidRuntimeVersion,
    TransportError,
)
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

_TIMEOUT_STATUS = "TO"
_INTERNAL_ERROR_STATUS = "XX"


def _compile_failed(stage: Any) -> bool:
    """Return True when a Piston compile stage exists and did not exit cleanly.

    Example:
        ```python
        _compile_failed({"code": 1, "stderr": "error"})  # True
        ```
    """
    if not isinstance(stage, dict):
        return False
    return stage.get("code") not in (0, None) or bool(stage.get("signal"))


def _elapsed_label(stage: dict[str, Any]) -> str:
    """Derive the elapsed-time label from a Piston stage.

    Example:
        ```python
        _elapsed_label({"status": "TO"})  # "Timeout"
        ```
    """
    if stage.get("status") == _TIMEOUT_STATUS or stage.get("timeout"):
        return TIMEOUT_LABEL
    wall_time = stage.get("wall_time")
    if isinstance(wall_time, (int, float)) and not isinstance(wall_time, bool):
        return f"{wall_time:g} ms"
    return NOT_AVAILABLE


class PistonEngine(HttpEngineClient):
    """Client for the Piston v2 execution API.

    Example:
        ```python
        engine = PistonEngine(EngineSettings(kind="piston", base_url="https://emkc.org/api/v2/piston"))
        ```
    """

    name = "piston"

    def list_runtimes(self) -> list[RuntimeDescriptor]:
        """Query `/runtimes` and return descriptors in the engine's order.

        Example:
            ```python
            runtimes = engine.list_runtimes()
            ```
        """
        try:
            payload = self._request_json(
                "GET", "/runtimes", timeout=self._settings.inventory_timeout_seconds
            )
        except TransportError as exc:
            raise EngineUnavailable(self.name, f"runtime inventory query failed: {exc.detail}") from exc
        if not isinstance(payload, list):
            raise EngineUnavailable(self.name, "runtime inventory is not a list")

        runtimes: list[RuntimeDescriptor] = []
        for entry in payload:
            if not isinstance(entry, dict):
                continue
            language = str(entry.get("language") or "").strip()
            if not language:
                continue
            aliases = frozenset(str(alias) for alias in entry.get("aliases") or () if alias)
            runtimes.append(
                RuntimeDescriptor(
                    engine_language_id=language,
                    version=str(entry.get("version") or "").strip(),
                    aliases=aliases,
                )
            )
        logger.debug("piston reported %d runtimes", len(runtimes))
        return runtimes

    def execute(self, runtime: RuntimeDescriptor, request: ExecutionRequest) -> RawEngineResponse:
        """POST one source file to `/execute` with a concrete runtime version.

        Example:
            ```python
            raw = engine.execute(runtime, ExecutionRequest("print('Hello')", "Python"))
            ```
        """
        if runtime.version in {"", "*"}:
            raise InvalidRuntimeVersion(self.name, f"refusing to execute with version '{runtime.version}'")
        body = {
            "language": runtime.engine_language_id,
            "version": runtime.version,
            "files": [{"content": request.source_code}],
            "stdin": request.stdin,
            "args": list(request.args),
        }
        logger.debug(
            "piston execute %s %s (source=%d chars, stdin=%d chars)",
            runtime.engine_language_id,
            runtime.version,
            len(request.source_code),
            len(request.stdin),
        )
        payload = self._request_json(
            "POST", "/execute", json=body, timeout=self._settings.timeout_seconds
        )
        if not isinstance(payload, dict):
            raise TransportError(self.name, "execution response is not a JSON object", body=str(payload)[:500])
        if _compile_failed(payload.get("compile")):
            return payload
        run = payload.get("run")
        if not isinstance(run, dict):
            raise InvalidEngineResponse(self.name, "response has no 'run' section")
        if run.get("status") == _INTERNAL_ERROR_STATUS:
            raise EngineFault(self.name, str(run.get("message") or "internal error while running"))
        return payload

    def normalize(self, raw: RawEngineResponse) -> ExecutionOutcome:
        """Map a Piston response onto the shared run classification.

        Example:
            ```python
            outcome = engine.normalize({"run": {"stdout": "Hello\\n", "stderr": "", "code": 0}})
            ```
        """
        if not isinstance(raw, dict):
            return invalid_response_outcome()
        compile_stage = raw.get("compile")
        if _compile_failed(compile_stage):
            output = compile_stage.get("stderr") or compile_stage.get("output") or compile_stage.get("stdout") or ""
            return compile_error_outcome(str(output), _elapsed_label(compile_stage))
        run = raw.get("run")
        if not isinstance(run, dict):
            return invalid_response_outcome()
        code = run.get("code")
        return normalize_run(
            stdout=run.get("stdout"),
            stderr=run.get("stderr"),
            exit_code=code if isinstance(code, int) else None,
            elapsed_time_label=_elapsed_label(run),
            signal=run.get("signal"),
        )

    def check_health(self) -> bool:
        """Return True when `/runtimes` answers.

        Example:
            ```python
            ok = engine.check_health()
            ```
        """
        try:
            self.list_runtimes()
        except EngineError as exc:
            logger.warning("piston health check failed: %s", exc)
            return False
        return True

    def _headers(self) -> dict[str, str]:
        """Add the Piston API key header when one is configured.

        Example:
            ```python
            headers = engine._headers()
            ```
        """
        headers = super()._headers()
        if self._settings.api_key:
            headers["Authorization"] = self._settings.api_key
        return headers
