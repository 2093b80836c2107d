from .config import EngineSettings, RelayConfig
from .engine import ExecutionEngine
from .judge0_engine import Judge0Engine
from .piston_engine import PistonEngine
from .runtime import RuntimeResolver
from .types import EngineRole, ExecutionOutcome, ExecutionRequest, RuntimeDescriptor

__all__ = [
    "EngineRole",
    "EngineSettings",
    "ExecutionEngine",
    "ExecutionOutcome",
    "ExecutionRequest",
    "Judge0Engine",
    "PistonEngine",
    "RelayConfig",
    "RuntimeDescriptor",
    "RuntimeResolver",
]
