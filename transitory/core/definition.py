# transitory/core/definition.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Union

from transitory.core.errors import InvalidArgumentError

SPEC_KEYS = frozenset({"target", "state", "action", "condition"})

RawSpec = Union[str, Mapping[str, Any]]
RawDefinition = Mapping[str, Mapping[str, RawSpec]]


@dataclass(frozen=True)
class TransitionSpec:
    """
    Normalised form of one trigger entry: the state it leads to, plus an
    optional action run when it fires and an optional condition gating it.
    """

    target: str
    action: Optional[Callable[..., Any]] = None
    condition: Optional[Callable[[], Any]] = None

    @property
    def is_shorthand(self) -> bool:
        """True when the entry can be written as a bare target name."""
        return self.action is None and self.condition is None

    def render(self) -> RawSpec:
        """
        Convert back to the plain form accepted by :func:`validate_definition`.
        """
        if self.is_shorthand:
            return self.target
        rendered: Dict[str, Any] = {"target": self.target}
        if self.action is not None:
            rendered["action"] = self.action
        if self.condition is not None:
            rendered["condition"] = self.condition
        return rendered


Definition = Mapping[str, Mapping[str, TransitionSpec]]


def validate_definition(definition: Any, strict: bool = False) -> Definition:
    """
    Check that ``definition`` is a mapping of state name to a mapping of
    trigger name to transition spec, and return a read-only normalised copy.

    :param definition: The raw definition supplied by the caller.
    :param strict: Also require every target to be a state of the definition.
    :return: Mapping of state to ``{trigger: TransitionSpec}``.
    :raises InvalidArgumentError: If the definition is missing or malformed.
    """
    if definition is None or not isinstance(definition, Mapping):
        raise InvalidArgumentError("Definition must be a mapping of states to triggers")
    if not definition:
        raise InvalidArgumentError("Definition must declare at least one state")

    normalised: Dict[str, Mapping[str, TransitionSpec]] = {}
    for state, triggers in definition.items():
        if not isinstance(state, str) or not state:
            raise InvalidArgumentError(f"State names must be non-empty strings, got {state!r}")
        if triggers is None:
            triggers = {}
        if not isinstance(triggers, Mapping):
            raise InvalidArgumentError(f'Triggers of state "{state}" must be a mapping')
        specs: Dict[str, TransitionSpec] = {}
        for trigger, raw in triggers.items():
            if not isinstance(trigger, str) or not trigger:
                raise InvalidArgumentError(f'Trigger names of state "{state}" must be non-empty strings')
            specs[trigger] = _normalise_spec(state, trigger, raw)
        normalised[state] = MappingProxyType(specs)

    if strict:
        for state, specs in normalised.items():
            for trigger, spec in specs.items():
                if spec.target not in normalised:
                    raise InvalidArgumentError(
                        f'Trigger "{trigger}" of state "{state}" leads to unknown state "{spec.target}"'
                    )

    return MappingProxyType(normalised)


def render_definition(definition: Definition) -> Dict[str, Dict[str, RawSpec]]:
    """
    Produce a detached plain-dict copy of a normalised definition, in the
    shape callers originally supply.
    """
    return {state: {trigger: spec.render() for trigger, spec in specs.items()} for state, specs in definition.items()}


def _normalise_spec(state: str, trigger: str, raw: RawSpec) -> TransitionSpec:
    where = f'trigger "{trigger}" of state "{state}"'
    if isinstance(raw, str):
        if not raw:
            raise InvalidArgumentError(f"Target of {where} must not be empty")
        return TransitionSpec(target=raw)
    if not isinstance(raw, Mapping):
        raise InvalidArgumentError(f"Spec of {where} must be a state name or a mapping")

    unknown = set(raw) - SPEC_KEYS
    if unknown:
        raise InvalidArgumentError(f"Spec of {where} has unknown keys: {sorted(unknown)}")
    if "target" in raw and "state" in raw:
        raise InvalidArgumentError(f'Spec of {where} must use either "target" or "state", not both')
    target = raw.get("target", raw.get("state"))
    if not isinstance(target, str) or not target:
        raise InvalidArgumentError(f"Spec of {where} must name a target state")
    action = raw.get("action")
    if action is not None and not callable(action):
        raise InvalidArgumentError(f"Action of {where} must be callable")
    condition = raw.get("condition")
    if condition is not None and not callable(condition):
        raise InvalidArgumentError(f"Condition of {where} must be callable")
    return TransitionSpec(target=target, action=action, condition=condition)
