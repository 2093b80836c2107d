import logging

import httpx
import pytest

from code_relay import (
    EngineRole,
    ExecutionOrchestrator,
    ExecutionOutcome,
    ExecutionRequest,
    InvalidRequestError,
    RelayConfig,
    run_code,
)
from code_relay.errors import EngineFault, EngineUnavailable, TransportError
from code_relay.execution.config import EngineSettings
from code_relay.execution.judge0_engine import Judge0Engine
from code_relay.execution.normalize import normalize_run
from code_relay.execution.piston_engine import PistonEngine
from code_relay.execution.types import RuntimeDescriptor
from code_relay.orchestrator import build_engine


class _FakeEngine:
    def __init__(
        self,
        name: str,
        runtimes: list[RuntimeDescriptor] | Exception,
        result: dict | Exception | None = None,
    ) -> None:
        self.name = name
        self._runtimes = runtimes
        self._result = result if result is not None else {"stdout": "Hello\n", "stderr": "", "code": 0}
        self.inventory_calls = 0
        self.executed: list[tuple[RuntimeDescriptor, ExecutionRequest]] = []
        self.closed = False

    def list_runtimes(self) -> list[RuntimeDescriptor]:
        self.inventory_calls += 1
        if isinstance(self._runtimes, Exception):
            raise self._runtimes
        return list(self._runtimes)

    def execute(self, runtime: RuntimeDescriptor, request: ExecutionRequest) -> dict:
        self.executed.append((runtime, request))
        if isinstance(self._result, Exception):
            raise self._result
        return self._result

    def normalize(self, raw: dict) -> ExecutionOutcome:
        if "compile_error" in raw:
            return ExecutionOutcome(success=False, error_message=f"Compilation Error:\n{raw['compile_error']}")
        return normalize_run(stdout=raw.get("stdout"), stderr=raw.get("stderr"), exit_code=raw.get("code"))

    def check_health(self) -> bool:
        return not isinstance(self._runtimes, Exception)

    def close(self) -> None:
        self.closed = True


PYTHON = [RuntimeDescriptor("python", "3.10.0", frozenset({"py"}))]


def test_blank_source_fails_before_any_engine_call() -> None:
    primary = _FakeEngine("primary", PYTHON)
    orchestrator = ExecutionOrchestrator(primary)
    with pytest.raises(InvalidRequestError, match="Source code cannot be empty"):
        run_code("   \n", "Python", orchestrator=orchestrator)
    assert primary.inventory_calls == 0
    assert primary.executed == []


def test_blank_language_fails_before_any_engine_call() -> None:
    primary = _FakeEngine("primary", PYTHON)
    with pytest.raises(InvalidRequestError):
        ExecutionOrchestrator(primary).execute(ExecutionRequest("print(1)", "  "))
    assert primary.inventory_calls == 0


def test_hello_runs_on_primary() -> None:
    primary = _FakeEngine("primary", PYTHON)
    secondary = _FakeEngine("secondary", PYTHON)
    outcome = run_code("print('Hello')", "Python Language", orchestrator=ExecutionOrchestrator(primary, secondary))
    assert outcome.success is True
    assert outcome.output == "Hello"
    assert outcome.awaiting_input is False
    assert outcome.engine_used is EngineRole.PRIMARY
    assert outcome.failures == ()
    assert secondary.inventory_calls == 0
    runtime, request = primary.executed[0]
    assert runtime.version == "3.10.0"
    assert request.language_label == "Python Language"


def test_primary_inventory_unreachable_fails_over_once() -> None:
    primary = _FakeEngine("primary", EngineUnavailable("piston", "timed out after 10.0s"))
    secondary = _FakeEngine("secondary", PYTHON)
    outcome = ExecutionOrchestrator(primary, secondary).execute(ExecutionRequest("print('Hello')", "Python"))
    assert outcome.success is True
    assert outcome.engine_used is EngineRole.SECONDARY
    assert primary.executed == []
    assert len(secondary.executed) == 1
    assert outcome.failures == ("primary: piston: timed out after 10.0s",)


def test_primary_execute_transport_error_fails_over() -> None:
    primary = _FakeEngine("primary", PYTHON, TransportError("piston", "HTTP 500", status_code=500))
    secondary = _FakeEngine("secondary", PYTHON)
    outcome = ExecutionOrchestrator(primary, secondary).execute(ExecutionRequest("print('Hello')", "Python"))
    assert outcome.engine_used is EngineRole.SECONDARY
    assert len(primary.executed) == 1
    assert len(secondary.executed) == 1


def test_compile_error_does_not_fail_over() -> None:
    primary = _FakeEngine("primary", PYTHON, {"compile_error": "SyntaxError"})
    secondary = _FakeEngine("secondary", PYTHON)
    outcome = ExecutionOrchestrator(primary, secondary).execute(ExecutionRequest("print(", "Python"))
    assert outcome.success is False
    assert outcome.error_message
    assert outcome.engine_used is EngineRole.PRIMARY
    assert secondary.inventory_calls == 0
    assert secondary.executed == []


def test_awaiting_input_does_not_fail_over() -> None:
    primary = _FakeEngine(
        "primary",
        PYTHON,
        {"stdout": "Enter your name: ", "stderr": "EOFError: EOF when reading a line", "code": 1},
    )
    secondary = _FakeEngine("secondary", PYTHON)
    outcome = ExecutionOrchestrator(primary, secondary).execute(ExecutionRequest("input('Enter your name: ')", "Python"))
    assert outcome.awaiting_input is True
    assert outcome.error_message == ""
    assert outcome.engine_used is EngineRole.PRIMARY
    assert secondary.executed == []


def test_language_only_on_secondary_fails_over() -> None:
    primary = _FakeEngine("primary", PYTHON)
    secondary = _FakeEngine("secondary", [RuntimeDescriptor("cobol", "3.1.2")])
    outcome = ExecutionOrchestrator(primary, secondary).execute(ExecutionRequest("DISPLAY 'HI'.", "COBOL"))
    assert outcome.engine_used is EngineRole.SECONDARY
    assert primary.executed == []
    assert "language 'cobol' not found" in outcome.failures[0]


def test_wildcard_only_inventory_fails_over() -> None:
    primary = _FakeEngine("primary", [RuntimeDescriptor("python", "*")])
    secondary = _FakeEngine("secondary", PYTHON)
    outcome = ExecutionOrchestrator(primary, secondary).execute(ExecutionRequest("print('Hello')", "Python"))
    assert outcome.engine_used is EngineRole.SECONDARY
    assert primary.executed == []


def test_all_engines_failing_returns_consolidated_outcome(caplog: pytest.LogCaptureFixture) -> None:
    primary = _FakeEngine("primary", EngineUnavailable("piston", "connection refused"))
    secondary = _FakeEngine("secondary", PYTHON, EngineFault("judge0", "Internal Error"))
    with caplog.at_level(logging.WARNING, logger="code_relay.orchestrator"):
        outcome = ExecutionOrchestrator(primary, secondary).execute(ExecutionRequest("print('Hello')", "Python"))
    assert outcome.success is False
    assert outcome.engine_used is EngineRole.SECONDARY
    assert outcome.failures == (
        "primary: piston: connection refused",
        "secondary: judge0: Internal Error",
    )
    assert "connection refused" in outcome.error_message
    assert "Internal Error" in outcome.error_message
    assert any(record.levelno == logging.ERROR for record in caplog.records)


def test_source_is_never_logged(caplog: pytest.LogCaptureFixture) -> None:
    primary = _FakeEngine("primary", EngineUnavailable("piston", "down"))
    secondary = _FakeEngine("secondary", PYTHON)
    with caplog.at_level(logging.DEBUG):
        ExecutionOrchestrator(primary, secondary).execute(
            ExecutionRequest("print('top-secret-source')", "Python", stdin="hunter2")
        )
    assert "top-secret-source" not in caplog.text
    assert "hunter2" not in caplog.text


def test_without_secondary_failure_is_reported_for_primary() -> None:
    primary = _FakeEngine("primary", [])
    outcome = ExecutionOrchestrator(primary).execute(ExecutionRequest("print('Hello')", "Python"))
    assert outcome.success is False
    assert outcome.engine_used is EngineRole.PRIMARY
    assert "no runtimes installed" in outcome.error_message


def test_list_runtimes_and_health() -> None:
    primary = _FakeEngine("primary", PYTHON)
    secondary = _FakeEngine("secondary", EngineUnavailable("judge0", "down"))
    orchestrator = ExecutionOrchestrator(primary, secondary)
    assert orchestrator.roles == [EngineRole.PRIMARY, EngineRole.SECONDARY]
    assert orchestrator.list_runtimes(EngineRole.PRIMARY) == PYTHON
    assert orchestrator.health() == {EngineRole.PRIMARY: True, EngineRole.SECONDARY: False}


def test_list_runtimes_for_missing_role_raises() -> None:
    orchestrator = ExecutionOrchestrator(_FakeEngine("primary", PYTHON))
    with pytest.raises(ValueError, match="secondary"):
        orchestrator.list_runtimes(EngineRole.SECONDARY)


def test_context_manager_closes_engines() -> None:
    primary = _FakeEngine("primary", PYTHON)
    secondary = _FakeEngine("secondary", PYTHON)
    with ExecutionOrchestrator(primary, secondary):
        pass
    assert primary.closed and secondary.closed


def test_from_config_builds_engines_by_kind() -> None:
    config = RelayConfig(
        primary=EngineSettings(kind="judge0", base_url="http://judge0.test"),
        secondary=EngineSettings(kind="piston", base_url="http://piston.test/api/v2"),
    )
    with ExecutionOrchestrator.from_config(config) as orchestrator:
        assert isinstance(orchestrator.engine_for(EngineRole.PRIMARY), Judge0Engine)
        assert isinstance(orchestrator.engine_for(EngineRole.SECONDARY), PistonEngine)


def test_end_to_end_failover_over_http() -> None:
    piston_calls: list[str] = []

    def piston(request: httpx.Request) -> httpx.Response:
        piston_calls.append(request.url.path)
        raise httpx.ReadTimeout("timed out", request=request)

    def judge0(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/languages":
            return httpx.Response(200, json=[{"id": 71, "name": "Python (3.8.1)"}])
        return httpx.Response(
            201,
            json={"stdout": "Hello\n", "stderr": None, "exit_code": 0, "status": {"id": 3}, "time": "0.01"},
        )

    primary = build_engine(
        EngineSettings(kind="piston", base_url="http://piston.test/api/v2"),
        client=httpx.Client(transport=httpx.MockTransport(piston)),
    )
    secondary = build_engine(
        EngineSettings(kind="judge0", base_url="http://judge0.test"),
        client=httpx.Client(transport=httpx.MockTransport(judge0)),
    )
    outcome = run_code("print('Hello')", "Python", orchestrator=ExecutionOrchestrator(primary, secondary))
    assert outcome.success is True
    assert outcome.output == "Hello"
    assert outcome.engine_used is EngineRole.SECONDARY
    assert piston_calls == ["/api/v2/runtimes"]


def test_unparsable_success_body_fails_over() -> None:
    def piston(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/runtimes"):
            return httpx.Response(200, json=[{"language": "python", "version": "3.10.0", "aliases": ["py"]}])
        return httpx.Response(200, text="<html>proxy error</html>")

    def judge0(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/languages":
            return httpx.Response(200, json=[{"id": 71, "name": "Python (3.8.1)"}])
        return httpx.Response(201, json={"stdout": "Hello\n", "exit_code": 0, "status": {"id": 3}})

    primary = build_engine(
        EngineSettings(kind="piston", base_url="http://piston.test/api/v2"),
        client=httpx.Client(transport=httpx.MockTransport(piston)),
    )
    secondary = build_engine(
        EngineSettings(kind="judge0", base_url="http://judge0.test"),
        client=httpx.Client(transport=httpx.MockTransport(judge0)),
    )
    outcome = run_code("print('Hello')", "Python", orchestrator=ExecutionOrchestrator(primary, secondary))
    assert outcome.success is True
    assert outcome.engine_used is EngineRole.SECONDARY
    assert "unparsable response body" in outcome.failures[0]
