"""Gateway configuration.

Every setting defaults from an environment variable so the desktop shell
and the dev server can point the gateway at an engine without code changes:

    VIBEMASTER_ENGINE_COMMAND      world-state command (default: node dist/get-world-state.js)
    VIBEMASTER_ENGINE_CWD          engine working directory (default: parent of cwd)
    VIBEMASTER_ENGINE_TIMEOUT      seconds before the engine is killed (default: 10)
    VIBEMASTER_ENGINE_URL          fetch world state over HTTP instead of a process
    VIBEMASTER_FALLBACK_POLICY     "fallback" or "strict"
    VIBEMASTER_VALIDATE_OUTPUT     schema-check live output (default: false)
    VIBEMASTER_SIMULATION_COMMAND  optional long-running simulation process
    VIBEMASTER_API_PORT            HTTP port (default: 8000)
    VIBEMASTER_LOG_LEVEL           DEBUG, INFO, WARNING, ERROR or CRITICAL (default: INFO)
    PRODUCTION                     hide API docs and apply ALLOWED_ORIGINS
    ALLOWED_ORIGINS                comma-separated CORS origins in production
"""

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from gateway.errors import ConfigurationError
from gateway.models import FallbackPolicy

DEFAULT_API_PORT = 8000
DEFAULT_ENGINE_COMMAND = ["node", "dist/get-world-state.js"]
DEFAULT_ENGINE_TIMEOUT = 10.0
DEFAULT_LOG_LEVEL = "INFO"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _env_command(name: str, default: Optional[List[str]]) -> Optional[List[str]]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return list(default) if default is not None else None
    try:
        return shlex.split(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} is not a valid command line: {e}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


def _env_policy(name: str) -> FallbackPolicy:
    raw = os.getenv(name, FallbackPolicy.FALLBACK.value).strip().lower()
    try:
        return FallbackPolicy(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be 'fallback' or 'strict', got {raw!r}") from e


def _env_path(name: str) -> Optional[Path]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return Path(raw).expanduser()


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


@dataclass
class GatewayConfig:
    """Settings for the command gateway and its HTTP surface."""

    engine_command: List[str] = field(
        default_factory=lambda: _env_command("VIBEMASTER_ENGINE_COMMAND", DEFAULT_ENGINE_COMMAND)
    )
    engine_cwd: Optional[Path] = field(default_factory=lambda: _env_path("VIBEMASTER_ENGINE_CWD"))
    engine_timeout: float = field(
        default_factory=lambda: _env_float("VIBEMASTER_ENGINE_TIMEOUT", DEFAULT_ENGINE_TIMEOUT)
    )
    engine_url: Optional[str] = field(default_factory=lambda: _env_str("VIBEMASTER_ENGINE_URL"))
    fallback_policy: FallbackPolicy = field(
        default_factory=lambda: _env_policy("VIBEMASTER_FALLBACK_POLICY")
    )
    validate_output: bool = field(
        default_factory=lambda: _env_bool("VIBEMASTER_VALIDATE_OUTPUT", False)
    )
    simulation_command: Optional[List[str]] = field(
        default_factory=lambda: _env_command("VIBEMASTER_SIMULATION_COMMAND", None)
    )
    api_port: int = field(default_factory=lambda: _env_int("VIBEMASTER_API_PORT", DEFAULT_API_PORT))
    production_mode: bool = field(default_factory=lambda: _env_bool("PRODUCTION", False))
    allowed_origins: List[str] = field(
        default_factory=lambda: os.getenv("ALLOWED_ORIGINS", "*").split(",")
    )
    log_level: str = field(
        default_factory=lambda: _env_str("VIBEMASTER_LOG_LEVEL") or DEFAULT_LOG_LEVEL
    )

    def __post_init__(self) -> None:
        if not self.engine_command:
            raise ConfigurationError("engine_command must not be empty")
        if self.simulation_command is not None and not self.simulation_command:
            raise ConfigurationError("simulation_command must not be empty when set")
        if self.engine_timeout <= 0:
            raise ConfigurationError(
                f"engine_timeout must be positive, got {self.engine_timeout}"
            )
        self.log_level = self.log_level.upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigurationError(
                f"log_level must be one of {', '.join(LOG_LEVELS)}, got {self.log_level!r}"
            )
        if not isinstance(self.fallback_policy, FallbackPolicy):
            try:
                self.fallback_policy = FallbackPolicy(self.fallback_policy)
            except ValueError as e:
                raise ConfigurationError(
                    f"fallback_policy must be 'fallback' or 'strict', got {self.fallback_policy!r}"
                ) from e

    def resolved_engine_cwd(self) -> Path:
        """Working directory for engine processes.

        Without an explicit setting the engine is expected one level above
        the gateway's working directory, where the desktop shell keeps it.
        """
        if self.engine_cwd is not None:
            return self.engine_cwd
        return Path.cwd().parent
