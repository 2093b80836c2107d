from __future__ import annotations

from ..input_detection import EOF_MARKERS, is_end_of_input, recover_prompt
from .types import NOT_AVAILABLE, ExecutionOutcome

INVALID_RESPONSE_MESSAGE = "invalid engine response"


def _has_text(value: str | None) -> bool:
    """Return True when a stream holds something besides whitespace.

    Example:
        ```python
        _has_text("  \\n")  # False
        ```
    """
    return bool(value and value.strip())


def invalid_response_outcome() -> ExecutionOutcome:
    """Outcome used when a response carries no execution section at all.

    Example:
        ```python
        outcome = invalid_response_outcome()
        ```
    """
    return ExecutionOutcome(success=False, error_message=INVALID_RESPONSE_MESSAGE)


def compile_error_outcome(compiler_output: str, elapsed_time_label: str = NOT_AVAILABLE) -> ExecutionOutcome:
    """Outcome for a program rejected by the compile stage.

    Example:
        ```python
        outcome = compile_error_outcome("main.c:1: error: expected ';'")
        ```
    """
    detail = compiler_output.strip() or "compilation failed"
    return ExecutionOutcome(
        success=False,
        error_message=f"Compilation Error:\n{detail}",
        elapsed_time_label=elapsed_time_label,
    )


def normalize_run(
    *,
    stdout: str | None,
    stderr: str | None,
    exit_code: int | None,
    elapsed_time_label: str = NOT_AVAILABLE,
    signal: str | None = None,
    eof_markers: tuple[str, ...] = EOF_MARKERS,
) -> ExecutionOutcome:
    """Apply the engine-independent classification to one finished run.

    Any stderr counts against success, even with exit code 0. An end-of-input
    marker in stderr means the program is blocked on stdin, so it is reported
    as awaiting input instead of as an error. An empty successful run is not
    promoted to awaiting input here; callers that know the program reads stdin
    make that call.

    Example:
        ```python
        outcome = normalize_run(stdout="Hello\\n", stderr="", exit_code=0)
        ```
    """
    out = stdout or ""
    err = stderr or ""
    exit_success = exit_code == 0
    has_stdout = _has_text(out)
    has_stderr = _has_text(err)
    success = exit_success and not has_stderr

    if has_stderr and is_end_of_input(err, eof_markers):
        partial = out if has_stdout else recover_prompt(err)
        return ExecutionOutcome(
            success=success,
            output=partial.strip(),
            error_message="",
            awaiting_input=True,
            elapsed_time_label=elapsed_time_label,
        )
    if has_stderr:
        return ExecutionOutcome(
            success=success,
            error_message=f"Runtime Error:\n{err.strip()}",
            elapsed_time_label=elapsed_time_label,
        )
    if has_stdout:
        return ExecutionOutcome(
            success=success,
            output=out.strip(),
            elapsed_time_label=elapsed_time_label,
        )
    if exit_success:
        return ExecutionOutcome(success=True, elapsed_time_label=elapsed_time_label)
    if exit_code is None and signal:
        message = f"Program terminated by signal {signal}"
    else:
        message = f"Program exited with code {'unknown' if exit_code is None else exit_code}"
    return ExecutionOutcome(
        success=False,
        error_message=message,
        elapsed_time_label=elapsed_time_label,
    )
