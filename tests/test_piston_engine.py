import json
from typing import Callable

import httpx
import pytest

from code_relay.errors import (
    EngineFault,
    EngineUnavailable,
    InvalidEngineResponse,
    InvalidRuntimeVersion,
    TransportError,
)
from code_relay.execution.config import EngineSettings
from code_relay.execution.piston_engine import PistonEngine
from code_relay.execution.types import ExecutionRequest, RuntimeDescriptor

BASE_URL = "http://piston.test/api/v2"


def _engine(handler: Callable[[httpx.Request], httpx.Response], api_key: str | None = None) -> PistonEngine:
    settings = EngineSettings(kind="piston", base_url=BASE_URL, api_key=api_key)
    return PistonEngine(settings, client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_list_runtimes_parses_inventory() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.url.path == "/api/v2/runtimes"
        return httpx.Response(
            200,
            json=[
                {"language": "python", "version": "3.10.0", "aliases": ["py", "py3", "python3"]},
                {"language": "c++", "version": "10.2.0", "aliases": ["cpp", "g++"]},
                {"language": "", "version": "1.0.0"},
                "garbage",
            ],
        )

    runtimes = _engine(handler).list_runtimes()
    assert [(rt.engine_language_id, rt.version) for rt in runtimes] == [("python", "3.10.0"), ("c++", "10.2.0")]
    assert runtimes[1].matches("cpp")


def test_list_runtimes_http_error_is_unavailable() -> None:
    engine = _engine(lambda request: httpx.Response(503, text="maintenance"))
    with pytest.raises(EngineUnavailable, match="503"):
        engine.list_runtimes()


def test_list_runtimes_timeout_is_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(EngineUnavailable, match="timed out"):
        _engine(handler).list_runtimes()


def test_list_runtimes_non_list_is_unavailable() -> None:
    with pytest.raises(EngineUnavailable):
        _engine(lambda request: httpx.Response(200, json={"message": "nope"})).list_runtimes()


def test_execute_posts_concrete_runtime() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(
            200,
            json={"language": "python", "version": "3.10.0", "run": {"stdout": "Hello\n", "stderr": "", "code": 0}},
        )

    engine = _engine(handler, api_key="secret")
    raw = engine.execute(
        RuntimeDescriptor("python", "3.10.0"),
        ExecutionRequest("print('Hello')", "Python", stdin="x", args=("a", "b")),
    )
    assert seen["path"] == "/api/v2/execute"
    assert seen["body"] == {
        "language": "python",
        "version": "3.10.0",
        "files": [{"content": "print('Hello')"}],
        "stdin": "x",
        "args": ["a", "b"],
    }
    assert seen["auth"] == "secret"
    outcome = engine.normalize(raw)
    assert outcome.success is True
    assert outcome.output == "Hello"


@pytest.mark.parametrize("version", ["", "*"])
def test_execute_refuses_wildcard_version(version: str) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(InvalidRuntimeVersion):
        _engine(handler).execute(RuntimeDescriptor("python", version), ExecutionRequest("print(1)", "Python"))


def test_execute_http_error_is_transport_error() -> None:
    engine = _engine(lambda request: httpx.Response(400, json={"message": "runtime is unknown"}))
    with pytest.raises(TransportError) as exc:
        engine.execute(RuntimeDescriptor("python", "3.10.0"), ExecutionRequest("print(1)", "Python"))
    assert exc.value.status_code == 400
    assert "runtime is unknown" in exc.value.body


def test_execute_missing_run_section_is_invalid() -> None:
    engine = _engine(lambda request: httpx.Response(200, json={"language": "python"}))
    with pytest.raises(InvalidEngineResponse):
        engine.execute(RuntimeDescriptor("python", "3.10.0"), ExecutionRequest("print(1)", "Python"))


def test_execute_internal_error_status_is_engine_fault() -> None:
    engine = _engine(
        lambda request: httpx.Response(200, json={"run": {"status": "XX", "message": "isolate crashed"}})
    )
    with pytest.raises(EngineFault, match="isolate crashed"):
        engine.execute(RuntimeDescriptor("python", "3.10.0"), ExecutionRequest("print(1)", "Python"))


def test_compile_failure_is_returned_and_normalized() -> None:
    payload = {
        "language": "c",
        "version": "10.2.0",
        "compile": {"stdout": "", "stderr": "main.c:1: error: expected ';'", "code": 1, "signal": None},
    }
    engine = _engine(lambda request: httpx.Response(200, json=payload))
    raw = engine.execute(RuntimeDescriptor("c", "10.2.0"), ExecutionRequest("int main(){return 0}", "C"))
    outcome = engine.normalize(raw)
    assert outcome.success is False
    assert outcome.error_message == "Compilation Error:\nmain.c:1: error: expected ';'"


def test_normalize_eof_is_awaiting_input() -> None:
    engine = _engine(lambda request: httpx.Response(200, json=[]))
    outcome = engine.normalize(
        {
            "run": {
                "stdout": "Enter your name: ",
                "stderr": "Traceback (most recent call last):\nEOFError: EOF when reading a line",
                "code": 1,
            }
        }
    )
    assert outcome.awaiting_input is True
    assert outcome.error_message == ""
    assert outcome.output == "Enter your name:"


def test_normalize_timeout_label_and_signal() -> None:
    engine = _engine(lambda request: httpx.Response(200, json=[]))
    outcome = engine.normalize(
        {"run": {"stdout": "", "stderr": "", "code": None, "signal": "SIGKILL", "status": "TO"}}
    )
    assert outcome.success is False
    assert outcome.elapsed_time_label == "Timeout"
    assert outcome.error_message == "Program terminated by signal SIGKILL"


def test_normalize_wall_time_label() -> None:
    engine = _engine(lambda request: httpx.Response(200, json=[]))
    outcome = engine.normalize({"run": {"stdout": "ok", "stderr": "", "code": 0, "wall_time": 42}})
    assert outcome.elapsed_time_label == "42 ms"


def test_normalize_without_run_section_is_invalid_response() -> None:
    engine = _engine(lambda request: httpx.Response(200, json=[]))
    outcome = engine.normalize({"language": "python"})
    assert outcome.success is False
    assert outcome.error_message == "invalid engine response"


def test_check_health() -> None:
    assert _engine(lambda request: httpx.Response(200, json=[])).check_health() is True
    assert _engine(lambda request: httpx.Response(500)).check_health() is False


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>oops</html>"),
        httpx.Response(200, json=[1]),
    ],
)
def test_execute_unusable_success_body_is_transport_error(response: httpx.Response) -> None:
    engine = _engine(lambda request: response)
    with pytest.raises(TransportError):
        engine.execute(RuntimeDescriptor("python", "3.10.0"), ExecutionRequest("print(1)", "Python"))
