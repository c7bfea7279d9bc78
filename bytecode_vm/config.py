"""
Runner configuration.

Values come from command-line flags, with environment overrides for the
ones that are handy to flip without editing a command line:

  BVM_TRACE       1/true/yes/on  -> record and log every step
  BVM_MAX_STEPS   integer        -> stop with STEP_LIMIT after N steps
  BVM_LOG_LEVEL   DEBUG/INFO/... -> console log level
"""

from __future__ import annotations
import logging
import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

__all__ = ['RunConfig', 'ConfigError', 'parse_max_steps']

_TRUE = ('1', 'true', 'yes', 'on')
_FALSE = ('0', 'false', 'no', 'off', '')


class ConfigError(ValueError):
    """Raised for malformed configuration values."""


@dataclass(frozen=True)
class RunConfig:
    trace: bool = False
    max_steps: Optional[int] = None
    log_level: int = logging.WARNING
    log_file: Optional[str] = None

    def with_env(self, environ: Optional[Mapping[str, str]] = None) -> 'RunConfig':
        """Return a copy with BVM_* environment variables applied."""
        env = os.environ if environ is None else environ
        cfg = self

        if 'BVM_TRACE' in env:
            raw = env['BVM_TRACE'].strip().lower()
            if raw in _TRUE:
                cfg = replace(cfg, trace=True)
            elif raw in _FALSE:
                cfg = replace(cfg, trace=False)
            else:
                raise ConfigError(f"BVM_TRACE: expected a boolean, got {env['BVM_TRACE']!r}")

        if 'BVM_MAX_STEPS' in env:
            cfg = replace(cfg, max_steps=parse_max_steps(env['BVM_MAX_STEPS'], 'BVM_MAX_STEPS'))

        if 'BVM_LOG_LEVEL' in env:
            name = env['BVM_LOG_LEVEL'].strip().upper()
            level = logging.getLevelName(name)
            if not isinstance(level, int):
                raise ConfigError(f"BVM_LOG_LEVEL: unknown level {env['BVM_LOG_LEVEL']!r}")
            cfg = replace(cfg, log_level=level)

        return cfg


def parse_max_steps(value: str, source: str = "max-steps") -> Optional[int]:
    """Parse a step limit; empty string or 0 means unlimited."""
    value = value.strip()
    if not value:
        return None
    try:
        steps = int(value, 0)
    except ValueError:
        raise ConfigError(f"{source}: expected an integer, got {value!r}") from None
    if steps < 0:
        raise ConfigError(f"{source}: must be >= 0, got {steps}")
    return steps or None
