# transitory/core/config.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from transitory.core.errors import InvalidArgumentError
from transitory.runtime.timers import ThreadingTimerScheduler, TimerScheduler

DEFAULT_HISTORY_SIZE = 5
DEFAULT_EXPIRY = 5.0  # seconds


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_duration(value: Any) -> bool:
    """True for a positive, finite number of seconds."""
    return is_number(value) and value > 0 and math.isfinite(value)


@dataclass(frozen=True)
class MachineConfig:
    """
    Tunables of a :class:`~transitory.core.state_machine.StateMachine`.

    :param history_size: Number of terminated transitions kept, oldest evicted first.
    :param default_expiry: Seconds a pending transition may stay unresolved.
    :param strict: Reject definitions whose triggers lead to undeclared states.
    :param scheduler: Source of expiry timers; threading timers when omitted.
    """

    history_size: int = DEFAULT_HISTORY_SIZE
    default_expiry: float = DEFAULT_EXPIRY
    strict: bool = False
    scheduler: Optional[TimerScheduler] = None

    def __post_init__(self) -> None:
        if not isinstance(self.history_size, int) or isinstance(self.history_size, bool) or self.history_size < 1:
            raise InvalidArgumentError(f"history_size must be a positive integer, got {self.history_size!r}")
        if not is_duration(self.default_expiry):
            raise InvalidArgumentError(f"default_expiry must be a positive finite number, got {self.default_expiry!r}")
        if self.scheduler is not None and not callable(getattr(self.scheduler, "schedule", None)):
            raise InvalidArgumentError("scheduler must provide a schedule(delay, callback) method")
        if self.scheduler is None:
            object.__setattr__(self, "scheduler", ThreadingTimerScheduler())

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "MachineConfig":
        """
        Build a config from a plain mapping, rejecting unknown keys.
        """
        known = {field.name for field in dataclasses.fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise InvalidArgumentError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**values)

    def replace(self, **overrides: Any) -> "MachineConfig":
        if not overrides:
            return self
        current = {field.name: getattr(self, field.name) for field in dataclasses.fields(self)}
        return self.from_mapping({**current, **overrides})


def resolve_config(config: Union[MachineConfig, Mapping[str, Any], None], **overrides: Any) -> MachineConfig:
    """
    Accept a config object, a mapping or nothing, then apply keyword overrides.
    """
    if config is None:
        resolved = MachineConfig()
    elif isinstance(config, MachineConfig):
        resolved = config
    elif isinstance(config, Mapping):
        resolved = MachineConfig.from_mapping(config)
    else:
        raise InvalidArgumentError(f"config must be a MachineConfig or a mapping, got {type(config).__name__}")
    return resolved.replace(**overrides)
