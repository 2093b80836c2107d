from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace

import httpx

from .errors import EngineError, InvalidRequestError
from .execution.config import EngineSettings, RelayConfig
from .execution.engine import ExecutionEngine
from .execution.judge0_engine import Judge0Engine
from .execution.piston_engine import PistonEngine
from .execution.runtime import RuntimeResolver
from .execution.types import EngineRole, ExecutionOutcome, ExecutionRequest, RuntimeDescriptor
from .languages import map_language

logger = logging.getLogger(__name__)

ALL_FAILED_HEADER = "All execution engines failed:"

_ENGINE_CLASSES: dict[str, type[PistonEngine] | type[Judge0Engine]] = {
    "piston": PistonEngine,
    "judge0": Judge0Engine,
}


def build_engine(settings: EngineSettings, *, client: httpx.Client | None = None) -> ExecutionEngine:
    """Instantiate the engine client matching `settings.kind`.

    Example:
        ```python
        engine = build_engine(EngineSettings(kind="judge0", base_url="https://ce.judge0.com"))
        ```
    """
    try:
        engine_class = _ENGINE_CLASSES[settings.kind]
    except KeyError:
        raise ValueError(f"Unsupported engine kind: {settings.kind}") from None
    return engine_class(settings, client=client)


def _all_failed_outcome(failures: Iterable[str], last_role: EngineRole | None) -> ExecutionOutcome:
    """Outcome returned when no configured engine produced a result.

    Example:
        ```python
        outcome = _all_failed_outcome(["primary: piston: timed out"], EngineRole.PRIMARY)
        ```
    """
    failures = tuple(failures)
    lines = "\n".join(f"- {failure}" for failure in failures)
    return ExecutionOutcome(
        success=False,
        error_message=f"{ALL_FAILED_HEADER}\n{lines}",
        engine_used=last_role,
        failures=failures,
    )


class ExecutionOrchestrator:
    """Route a request to the primary engine and fail over to the secondary.

    Any `EngineError` from resolving or executing on one engine moves on to the
    next one. Program-level results (compile errors, runtime errors, non-zero
    exits, awaiting input) come back as they are, from the first engine that
    answered, so a submission never runs on both engines.

    Calls are synchronous. Abandoning a call (thread timeout, KeyboardInterrupt)
    only stops the local wait; a run the engine already accepted may still
    finish remotely.

    Example:
        ```python
        with ExecutionOrchestrator.from_config(RelayConfig.load()) as orchestrator:
            outcome = orchestrator.execute(ExecutionRequest("print('Hello')", "Python"))
        ```
    """

    def __init__(
        self,
        primary: ExecutionEngine,
        secondary: ExecutionEngine | None = None,
        resolver: RuntimeResolver | None = None,
    ) -> None:
        """Bind the engines in failover order and the runtime resolver.

        Example:
            ```python
            orchestrator = ExecutionOrchestrator(PistonEngine(primary_settings), Judge0Engine(secondary_settings))
            ```
        """
        self._engines: list[tuple[EngineRole, ExecutionEngine]] = [(EngineRole.PRIMARY, primary)]
        if secondary is not None:
            self._engines.append((EngineRole.SECONDARY, secondary))
        self._resolver = resolver or RuntimeResolver()

    @classmethod
    def from_config(cls, config: RelayConfig) -> "ExecutionOrchestrator":
        """Build engine clients for every configured role.

        Example:
            ```python
            orchestrator = ExecutionOrchestrator.from_config(RelayConfig.defaults())
            ```
        """
        primary = build_engine(config.primary)
        secondary = build_engine(config.secondary) if config.secondary is not None else None
        return cls(primary, secondary)

    @property
    def roles(self) -> list[EngineRole]:
        """Return the configured roles in failover order.

        Example:
            ```python
            orchestrator.roles  # [EngineRole.PRIMARY, EngineRole.SECONDARY]
            ```
        """
        return [role for role, _ in self._engines]

    def engine_for(self, role: EngineRole) -> ExecutionEngine:
        """Return the engine configured for `role`.

        Example:
            ```python
            engine = orchestrator.engine_for(EngineRole.SECONDARY)
            ```
        """
        for configured_role, engine in self._engines:
            if configured_role == role:
                return engine
        raise ValueError(f"No engine configured for role '{EngineRole(role).value}'")

    def execute(self, request: ExecutionRequest) -> ExecutionOutcome:
        """Run `request` on the first engine able to serve it.

        Raises `InvalidRequestError` when the language label maps to nothing;
        every engine-level failure is folded into the returned outcome instead.

        Example:
            ```python
            outcome = orchestrator.execute(ExecutionRequest("print('Hello')", "Python"))
            outcome.output  # "Hello"
            ```
        """
        language_id = map_language(request.language_label)
        if not language_id:
            raise InvalidRequestError("Language cannot be empty")

        failures: list[str] = []
        last_role: EngineRole | None = None
        for role, engine in self._engines:
            last_role = role
            try:
                runtime = self._resolver.resolve(engine, language_id)
                raw = engine.execute(runtime, request)
            except EngineError as exc:
                logger.warning("%s engine failed for %s: %s", role.value, language_id, exc)
                failures.append(f"{role.value}: {exc}")
                continue
            outcome = engine.normalize(raw)
            logger.info(
                "%s engine (%s) ran %s %s: success=%s awaiting_input=%s",
                role.value,
                engine.name,
                runtime.engine_language_id,
                runtime.version,
                outcome.success,
                outcome.awaiting_input,
            )
            return replace(outcome, engine_used=role, failures=tuple(failures))

        logger.error("all execution engines failed for %s", language_id)
        return _all_failed_outcome(failures, last_role)

    def list_runtimes(self, role: EngineRole = EngineRole.PRIMARY) -> list[RuntimeDescriptor]:
        """Return the live inventory of one configured engine.

        Example:
            ```python
            runtimes = orchestrator.list_runtimes(EngineRole.SECONDARY)
            ```
        """
        return self.engine_for(role).list_runtimes()

    def health(self) -> dict[EngineRole, bool]:
        """Probe every configured engine.

        Example:
            ```python
            orchestrator.health()  # {EngineRole.PRIMARY: True, EngineRole.SECONDARY: False}
            ```
        """
        return {role: engine.check_health() for role, engine in self._engines}

    def close(self) -> None:
        """Close every engine's HTTP client.

        Example:
            ```python
            orchestrator.close()
            ```
        """
        for _, engine in self._engines:
            engine.close()

    def __enter__(self) -> "ExecutionOrchestrator":
        """Enter a context that closes the engines on exit.

        Example:
            ```python
            with ExecutionOrchestrator(engine) as orchestrator:
                orchestrator.health()
            ```
        """
        return self

    def __exit__(self, *exc_info: object) -> None:
        """Close the engines when leaving the context.

        Example:
            ```python
            orchestrator.__exit__(None, None, None)
            ```
        """
        self.close()


def run_code(
    source_code: str,
    language: str,
    *,
    orchestrator: ExecutionOrchestrator,
    stdin: str = "",
    args: Iterable[str] = (),
) -> ExecutionOutcome:
    """Execute source code in the given language through an orchestrator.

    Example:
        ```python
        from code_relay import ExecutionOrchestrator, RelayConfig, run_code
        with ExecutionOrchestrator.from_config(RelayConfig.load()) as orchestrator:
            outcome = run_code("print('Hello')", "Python", orchestrator=orchestrator)
        ```
    """
    request = ExecutionRequest(
        source_code=source_code,
        language_label=language,
        stdin=stdin,
        args=tuple(args),
    )
    return orchestrator.execute(request)
