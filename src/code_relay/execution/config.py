from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

ENGINE_KINDS = frozenset({"piston", "judge0"})
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_INVENTORY_TIMEOUT_SECONDS = 10.0
ENV_PREFIX = "CODE_RELAY_"

_BUILTIN_DEFAULTS: dict[str, Any] = {
    "engines": {
        "primary": {"kind": "piston", "base_url": "https://emkc.org/api/v2/piston"},
        "secondary": {"kind": "judge0", "base_url": "https://ce.judge0.com"},
    }
}


def _default_config_path() -> Path:
    """Return bundled default config TOML path.

    Example:
        ```python
        path = _default_config_path()
        ```
    """
    return Path(__file__).resolve().parents[1] / "default_config.toml"


def _read_config_toml(path: Path) -> dict[str, Any]:
    """Read a config TOML file, falling back to built-in defaults when it is missing.

    Example:
        ```python
        raw = _read_config_toml(Path("/tmp/code_relay.toml"))
        ```
    """
    if not path.exists():
        return _BUILTIN_DEFAULTS
    raw = tomllib.loads(path.read_text(encoding="utf-8"))
    engines = raw.get("engines")
    if not isinstance(engines, dict):
        raise ValueError("Config must contain an [engines] table")
    return raw


def _parse_bool(value: str | None, default: bool) -> bool:
    """Interpret common truthy strings from the environment.

    Example:
        ```python
        _parse_bool("yes", False)  # True
        ```
    """
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _float_var(environ: Mapping[str, str], name: str) -> float | None:
    """Read an optional float from the environment.

    Example:
        ```python
        _float_var({"CODE_RELAY_TIMEOUT_SECONDS": "12"}, "CODE_RELAY_TIMEOUT_SECONDS")  # 12.0
        ```
    """
    value = environ.get(name)
    if value is None or not value.strip():
        return None
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Invalid number for {name}: {value}") from None


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """Connection settings for one execution engine.

    `timeout_seconds` bounds the execution request and must stay longer than
    the engine's own run limit, so a timeout seen by callers is the engine's.

    Example:
        ```python
        settings = EngineSettings(kind="piston", base_url="http://localhost:2000/api/v2")
        ```
    """

    kind: str
    base_url: str
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    inventory_timeout_seconds: float = DEFAULT_INVENTORY_TIMEOUT_SECONDS
    api_key: str | None = None

    def __post_init__(self) -> None:
        """Validate kind, URL and timeouts after dataclass initialization.

        Example:
            ```python
            EngineSettings(kind="judge0", base_url="https://ce.judge0.com")
            ```
        """
        kind = str(self.kind).strip().lower()
        if kind not in ENGINE_KINDS:
            raise ValueError(f"Engine kind must be one of {sorted(ENGINE_KINDS)}, got '{self.kind}'")
        base_url = str(self.base_url).strip().rstrip("/")
        parsed = urlparse(base_url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(f"Engine base_url must be an http(s) URL, got '{self.base_url}'")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.inventory_timeout_seconds <= 0:
            raise ValueError("inventory_timeout_seconds must be positive")
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "base_url", base_url)
        object.__setattr__(self, "api_key", self.api_key or None)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], *, section: str) -> "EngineSettings":
        """Build settings from one `[engines.<role>]` TOML table.

        Example:
            ```python
            settings = EngineSettings.from_mapping({"kind": "piston", "base_url": "http://x"}, section="primary")
            ```
        """
        if not isinstance(raw, Mapping):
            raise ValueError(f"[engines.{section}] must be a TOML table")
        if "kind" not in raw or "base_url" not in raw:
            raise ValueError(f"[engines.{section}] requires 'kind' and 'base_url'")
        return cls(
            kind=str(raw["kind"]),
            base_url=str(raw["base_url"]),
            timeout_seconds=float(raw.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
            inventory_timeout_seconds=float(
                raw.get("inventory_timeout_seconds", DEFAULT_INVENTORY_TIMEOUT_SECONDS)
            ),
            api_key=raw.get("api_key"),
        )


@dataclass(frozen=True, slots=True)
class RelayConfig:
    """Primary and optional secondary engine settings.

    Example:
        ```python
        config = RelayConfig.load()
        ```
    """

    primary: EngineSettings
    secondary: EngineSettings | None = None

    @classmethod
    def defaults(cls) -> "RelayConfig":
        """Return the bundled default configuration.

        Example:
            ```python
            config = RelayConfig.defaults()
            ```
        """
        return cls._from_raw(_read_config_toml(_default_config_path()))

    @classmethod
    def from_file(cls, config_path: str) -> "RelayConfig":
        """Create a configuration from a TOML file.

        Example:
            ```python
            config = RelayConfig.from_file("/etc/code_relay.toml")
            ```
        """
        path = Path(config_path)
        if not path.exists():
            raise ValueError(f"Config file not found: {config_path}")
        return cls._from_raw(_read_config_toml(path))

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        base: "RelayConfig | None" = None,
    ) -> "RelayConfig":
        """Apply `CODE_RELAY_*` environment overrides on top of a base config.

        Example:
            ```python
            config = RelayConfig.from_env({"CODE_RELAY_PRIMARY_URL": "http://piston:2000/api/v2"})
            ```
        """
        env = os.environ if environ is None else environ
        config = base if base is not None else cls.defaults()
        timeout = _float_var(env, f"{ENV_PREFIX}TIMEOUT_SECONDS")
        inventory_timeout = _float_var(env, f"{ENV_PREFIX}INVENTORY_TIMEOUT_SECONDS")

        primary = _override_engine(config.primary, env, "PRIMARY", timeout, inventory_timeout)
        secondary = config.secondary
        if secondary is None and env.get(f"{ENV_PREFIX}SECONDARY_URL"):
            secondary = EngineSettings(
                kind=env.get(f"{ENV_PREFIX}SECONDARY_KIND", "judge0"),
                base_url=env[f"{ENV_PREFIX}SECONDARY_URL"],
            )
        if secondary is not None:
            secondary = _override_engine(secondary, env, "SECONDARY", timeout, inventory_timeout)
        if _parse_bool(env.get(f"{ENV_PREFIX}DISABLE_SECONDARY"), False):
            secondary = None
        return cls(primary=primary, secondary=secondary)

    @classmethod
    def load(
        cls,
        config_path: str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "RelayConfig":
        """Load a config file (or the defaults) and then apply environment overrides.

        Example:
            ```python
            config = RelayConfig.load("/etc/code_relay.toml")
            ```
        """
        base = cls.from_file(config_path) if config_path is not None else cls.defaults()
        return cls.from_env(environ, base=base)

    @classmethod
    def _from_raw(cls, raw: Mapping[str, Any]) -> "RelayConfig":
        """Build a config from a parsed TOML document.

        Example:
            ```python
            config = RelayConfig._from_raw({"engines": {"primary": {...}}})
            ```
        """
        engines = raw.get("engines", {})
        if "primary" not in engines:
            raise ValueError("Config requires an [engines.primary] table")
        primary = EngineSettings.from_mapping(engines["primary"], section="primary")
        secondary_raw = engines.get("secondary")
        secondary = (
            EngineSettings.from_mapping(secondary_raw, section="secondary")
            if secondary_raw is not None
            else None
        )
        return cls(primary=primary, secondary=secondary)


def _override_engine(
    settings: EngineSettings,
    environ: Mapping[str, str],
    role: str,
    timeout: float | None,
    inventory_timeout: float | None,
) -> EngineSettings:
    """Return settings with any `CODE_RELAY_<ROLE>_*` overrides applied.

    Example:
        ```python
        primary = _override_engine(settings, os.environ, "PRIMARY", None, None)
        ```
    """
    changes: dict[str, Any] = {}
    url = environ.get(f"{ENV_PREFIX}{role}_URL")
    if url:
        changes["base_url"] = url
    kind = environ.get(f"{ENV_PREFIX}{role}_KIND")
    if kind:
        changes["kind"] = kind
    api_key = environ.get(f"{ENV_PREFIX}{role}_API_KEY")
    if api_key:
        changes["api_key"] = api_key
    if timeout is not None:
        changes["timeout_seconds"] = timeout
    if inventory_timeout is not None:
        changes["inventory_timeout_seconds"] = inventory_timeout
    return replace(settings, **changes) if changes else settings
