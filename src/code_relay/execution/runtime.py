from __future__ import annotations

import logging

from ..errors import InvalidRuntimeVersion, LanguageNotSupported, NoRuntimesInstalled
from .engine import ExecutionEngine
from .types import RuntimeDescriptor

logger = logging.getLogger(__name__)

_UNUSABLE_VERSIONS = frozenset({"", "*"})


class RuntimeResolver:
    """Pick the concrete runtime an engine should use for a canonical language id.

    The inventory is queried on every call, so a runtime installed or removed
    on the engine is picked up without a restart. The first match in the
    engine's own order wins; versions are never compared.

    Example:
        ```python
        runtime = RuntimeResolver().resolve(engine, "python")
        ```
    """

    def resolve(self, engine: ExecutionEngine, language_id: str) -> RuntimeDescriptor:
        """Return the runtime for `language_id`, or raise a typed engine error.

        Example:
            ```python
            runtime = resolver.resolve(engine, "cpp")
            runtime.version  # e.g. "10.2.0", never "" or "*"
            ```
        """
        runtimes = engine.list_runtimes()
        if not runtimes:
            raise NoRuntimesInstalled(engine.name, "no runtimes installed")

        matches = [runtime for runtime in runtimes if runtime.matches(language_id)]
        if not matches:
            available = {runtime.engine_language_id for runtime in runtimes}
            raise LanguageNotSupported(engine.name, language_id, available)

        for runtime in matches:
            if runtime.version not in _UNUSABLE_VERSIONS:
                logger.debug(
                    "%s resolved %s to %s %s",
                    engine.name,
                    language_id,
                    runtime.engine_language_id,
                    runtime.version,
                )
                return runtime
        raise InvalidRuntimeVersion(
            engine.name,
            f"language '{language_id}' is installed without a concrete version",
        )
