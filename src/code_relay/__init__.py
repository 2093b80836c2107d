from .errors import (
    CodeRelayError,
    EngineError,
    EngineFault,
    EngineUnavailable,
    InvalidEngineResponse,
    InvalidRequestError,
    InvalidRuntimeVersion,
    LanguageNotSupported,
    NoRuntimesInstalled,
    TransportError,
)
from .execution.config import EngineSettings, RelayConfig
from .execution.judge0_engine import Judge0Engine
from .execution.piston_engine import PistonEngine
from .execution.types import EngineRole, ExecutionOutcome, ExecutionRequest, RuntimeDescriptor
from .languages import map_language
from .orchestrator import ExecutionOrchestrator, build_engine, run_code

__all__ = [
    "CodeRelayError",
    "EngineError",
    "EngineFault",
    "EngineRole",
    "EngineSettings",
    "EngineUnavailable",
    "ExecutionOrchestrator",
    "ExecutionOutcome",
    "ExecutionRequest",
    "InvalidEngineResponse",
    "InvalidRequestError",
    "InvalidRuntimeVersion",
    "Judge0Engine",
    "LanguageNotSupported",
    "NoRuntimesInstalled",
    "PistonEngine",
    "RelayConfig",
    "RuntimeDescriptor",
    "TransportError",
    "build_engine",
    "map_language",
    "run_code",
]
