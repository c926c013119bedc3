# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Configuration management for ndinfer."""

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Dict, Optional

from ndinfer.logger import set_log_level

REBIND_POLICIES = ("rebind", "strict")


def _parse_bool_env(env_name: str, default: bool) -> bool:
    env_value = os.environ.get(env_name)
    if env_value is None:
        return default
    return env_value.strip().lower() in ("1", "true", "yes", "on")


def _parse_log_level_env(env_name: str, default: int) -> int:
    env_value = os.environ.get(env_name)
    if env_value is None:
        return default
    if env_value.isdigit():
        return int(env_value)
    level = logging.getLevelName(env_value.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"{env_name}: unknown log level '{env_value}'")
    return level


# Each entry maps a config field to a lazily evaluated environment lookup.
environment_variables: Dict[str, Callable[[], Any]] = {
    # Engine implementation used when a context is created implicitly.
    "engine": lambda: os.getenv("NDINFER_ENGINE", "numpy"),
    # Device index models are loaded onto by default.
    "device_id": lambda: int(os.getenv("NDINFER_DEVICE_ID", "0")),
    "log_level": lambda: _parse_log_level_env("NDINFER_LOG_LEVEL", logging.WARNING),
    # When disabled (0), graph execution runs inline on the calling thread.
    "async_exec": lambda: _parse_bool_env("NDINFER_ASYNC_EXEC", True),
    # Worker threads available for in-flight executions.
    "max_inflight": lambda: int(os.getenv("NDINFER_MAX_INFLIGHT", "4")),
    # "rebind" binds a new executor on shape change, "strict" raises.
    "rebind_policy": lambda: os.getenv("NDINFER_REBIND_POLICY", "rebind"),
}


@dataclass(frozen=True)
class NDInferConfig:
    """Global configuration for ndinfer.

    Attributes:
        engine: Name of the engine implementation ("numpy")
        device_id: Default device index
        log_level: Logging level of the ndinfer logger
        async_exec: Execute graphs on worker threads instead of inline
        max_inflight: Number of worker threads for asynchronous execution
        rebind_policy: Behaviour when input shapes change between calls
    """

    engine: str = "numpy"
    device_id: int = 0
    log_level: int = logging.WARNING
    async_exec: bool = True
    max_inflight: int = 4
    rebind_policy: str = "rebind"

    def __post_init__(self):
        if self.device_id < 0:
            raise ValueError(f"device_id must be non-negative, got {self.device_id}")
        if self.max_inflight < 1:
            raise ValueError(f"max_inflight must be positive, got {self.max_inflight}")
        if self.rebind_policy not in REBIND_POLICIES:
            raise ValueError(
                f"Invalid rebind_policy '{self.rebind_policy}'. "
                f"Use one of: {', '.join(REBIND_POLICIES)}"
            )

    @classmethod
    def from_env(cls, **overrides) -> "NDInferConfig":
        """Build a config from NDINFER_* environment variables."""
        values = {name: getter() for name, getter in environment_variables.items()}
        values.update(overrides)
        return cls(**values)

    def with_overrides(self, **overrides) -> "NDInferConfig":
        return replace(self, **overrides)

    def __repr__(self) -> str:
        body = "".join(f"  {f.name}: {getattr(self, f.name)}\n" for f in fields(self))
        return f"\nNDInferConfig:\n{body}"


_NDINFER_CONFIG: Optional[NDInferConfig] = None


def get_config() -> NDInferConfig:
    """Get the process default configuration, reading the environment on first use."""
    global _NDINFER_CONFIG
    if _NDINFER_CONFIG is None:
        _NDINFER_CONFIG = NDInferConfig.from_env()
    return _NDINFER_CONFIG


def set_config(config: NDInferConfig) -> None:
    """Set the process default configuration.

    The log level of the ndinfer logger follows the new configuration.

    Args:
        config: NDInferConfig instance to use as default
    """
    global _NDINFER_CONFIG
    _NDINFER_CONFIG = config
    set_log_level(config.log_level)


def reset_config() -> Optional[NDInferConfig]:
    """Reset the process default configuration.

    Returns:
        Optional[NDInferConfig]: The previous configuration
    """
    global _NDINFER_CONFIG
    old_config = _NDINFER_CONFIG
    _NDINFER_CONFIG = None
    return old_config
