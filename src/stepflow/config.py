"""Configuration schema for stepflow."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from stepflow.exceptions import ConfigError


class _YamlSettings(BaseSettings):
    """Settings base that can also be loaded from a YAML mapping."""

    def to_yaml(self) -> str:
        """Serialize the settings to YAML.

        Returns:
            YAML string representation.
        """
        data = self.model_dump(mode="json")
        return yaml.dump(data, default_flow_style=False, sort_keys=False)

    def save(self, path: Path) -> None:
        """Save the settings to a YAML file."""
        path.write_text(self.to_yaml())

    @classmethod
    def from_yaml(cls, yaml_content: str, *, config_path: Path | None = None) -> Any:
        """Parse settings from YAML content.

        Environment variables still apply to keys the YAML leaves out.

        Args:
            yaml_content: YAML string to parse.
            config_path: Source file, used in error reports.

        Returns:
            Parsed settings instance.

        Raises:
            ConfigError: If the YAML is invalid or fails validation.
        """
        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            msg = f"Invalid YAML: {e}"
            raise ConfigError(msg, config_path=config_path) from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            msg = "Config YAML must be a mapping"
            raise ConfigError(msg, config_path=config_path)

        try:
            return cls(**data)
        except PydanticValidationError as e:
            field = ".".join(str(p) for p in e.errors()[0]["loc"]) if e.errors() else ""
            msg = f"Invalid configuration: {e}"
            raise ConfigError(msg, config_path=config_path, field=field) from e

    @classmethod
    def load(cls, path: Path) -> Any:
        """Load settings from a YAML file.

        Raises:
            ConfigError: If the file doesn't exist or is invalid.
        """
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise ConfigError(msg, config_path=path)
        return cls.from_yaml(path.read_text(), config_path=path)


class EngineConfig(_YamlSettings):
    """Configuration for the execution engine.

    Environment variables (prefix ``STEPFLOW_``):
        STEPFLOW_STEP_DELAY_FACTOR: Fraction of a step's timeout spent as
            simulated work.
        STEPFLOW_MAX_STEP_DELAY_SECONDS: Cap on the simulated step delay.
        STEPFLOW_API_LATENCY_SECONDS: Simulated latency of API call steps.
        STEPFLOW_SIMULATE_LATENCY: Disable to run steps without any delay.
        STEPFLOW_ENFORCE_TIMEOUTS: Treat step timeouts as hard deadlines.
        STEPFLOW_MAX_WORKERS: Worker threads for submitted executions.
        STEPFLOW_LOAD_SAMPLES: Seed the registry with the sample pipelines.
        STEPFLOW_ALLOWED_CALLABLE_PREFIXES: JSON list of module prefixes
            custom steps may import callables from (empty disables them).
    """

    step_delay_factor: float = Field(default=0.1, ge=0)
    max_step_delay_seconds: float = Field(default=1.0, ge=0)
    api_latency_seconds: float = Field(default=0.5, ge=0)
    simulate_latency: bool = True
    enforce_timeouts: bool = True
    max_workers: int = Field(default=4, ge=1, le=64)
    load_samples: bool = True
    allowed_callable_prefixes: list[str] = Field(default_factory=list)

    model_config = SettingsConfigDict(
        env_prefix="STEPFLOW_",
        extra="ignore",
    )

    def step_delay(self, timeout_seconds: float) -> float:
        """Simulated work time for a step with the given timeout."""
        if not self.simulate_latency:
            return 0.0
        return min(timeout_seconds * self.step_delay_factor, self.max_step_delay_seconds)

    def api_delay(self) -> float:
        """Simulated latency of an API call step."""
        return self.api_latency_seconds if self.simulate_latency else 0.0

    def allows_callable(self, module_path: str) -> bool:
        """Whether custom steps may import from ``module_path``.

        A prefix matches the module itself and its submodules.
        """
        return any(
            module_path == prefix or module_path.startswith(f"{prefix}.")
            for prefix in self.allowed_callable_prefixes
            if prefix
        )


class ApiConfig(_YamlSettings):
    """Configuration for the HTTP surface.

    Environment variables:
        STEPFLOW_API_HOST: Host to bind (127.0.0.1 for security)
        STEPFLOW_API_PORT: Port to bind
        STEPFLOW_API_DEBUG: Enable debug logging
    """

    host: str = "127.0.0.1"
    port: int = Field(default=8420, ge=1, le=65535)
    debug: bool = False

    model_config = SettingsConfigDict(
        env_prefix="STEPFLOW_API_",
        extra="ignore",
    )
