from __future__ import annotations

from hlb.config.models import ConfigError, LoadTestConfig, TargetConfig

__all__ = [
    "ConfigError",
    "LoadTestConfig",
    "TargetConfig",
]
