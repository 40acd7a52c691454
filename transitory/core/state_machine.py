# transitory/core/state_machine.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Sequence, Union

from transitory.core.config import MachineConfig, is_number, resolve_config
from transitory.core.definition import RawDefinition, RawSpec, TransitionSpec, render_definition, validate_definition
from transitory.core.errors import InvalidArgumentError, WrongStateError
from transitory.core.events import Event, EventEmitter, Handler
from transitory.core.transitions import Transition

logger = logging.getLogger(__name__)

SequenceCallback = Callable[["StateMachine", Sequence[str], List[Transition]], Any]


class StateMachine:
    """
    A finite state machine driven by a declarative table of states and
    triggers.

    At most one transition is in flight at any time; triggering while one is
    pending fails instead of queueing. The current state only changes when a
    transition completes. Terminated transitions are kept in a bounded history,
    oldest first.

    Emitted topics:

    - ``state:<name>`` with the state name, for the initial state and every
      committed change;
    - ``transition:<from>><to>`` with the transition, right before it runs.
    """

    def __init__(
        self,
        definition: RawDefinition,
        initial_state: str,
        config: Union[MachineConfig, Mapping[str, Any], None] = None,
        listeners: Optional[Mapping[str, Handler]] = None,
        **overrides: Any,
    ) -> None:
        """
        :param definition: ``{state: {trigger: target | {"target", "action", "condition"}}}``.
        :param initial_state: State the machine starts in.
        :param config: A :class:`MachineConfig` or a mapping of its fields.
        :param listeners: ``{pattern: handler}`` subscribed before the initial
            ``state:<initial_state>`` event is emitted.
        :param overrides: Individual config fields, e.g. ``history_size=3``.
        :raises InvalidArgumentError: If any argument is missing or malformed.
        """
        self._config = resolve_config(config, **overrides)
        self._definition = validate_definition(definition, strict=self._config.strict)
        if not isinstance(initial_state, str) or initial_state not in self._definition:
            raise InvalidArgumentError(f"Initial state must be one of the defined states, got {initial_state!r}")

        self._lock = threading.RLock()
        self._emitter = EventEmitter(self)
        self._state: Optional[str] = None
        self._transition: Optional[Transition] = None
        self._history: Deque[Transition] = deque(maxlen=self._config.history_size)

        for pattern, handler in (listeners or {}).items():
            self._emitter.on(pattern, handler)
        self._set_state(initial_state)

    @property
    def config(self) -> MachineConfig:
        return self._config

    def get_state(self) -> Optional[str]:
        return self._state

    def get_states(self) -> List[str]:
        """Defined state names, in definition order."""
        return list(self._definition)

    def get_accessible_states(self) -> Dict[str, str]:
        """
        Map each state reachable from the current one to a trigger reaching it.
        When several triggers share a target, the last one declared wins.
        """
        with self._lock:
            if self._state is None:
                return {}
            return {spec.target: trigger for trigger, spec in self._definition[self._state].items()}

    def get_definition(self) -> Dict[str, Dict[str, RawSpec]]:
        """Return a detached copy of the definition."""
        return render_definition(self._definition)

    def get_transition(self) -> Optional[Transition]:
        """The transition currently in flight, if any."""
        return self._transition

    def get_history(self) -> List[Transition]:
        """Terminated transitions, oldest first."""
        with self._lock:
            return list(self._history)

    def get_history_size(self) -> int:
        return self._config.history_size

    def on(self, pattern: str, handler: Handler) -> None:
        """Subscribe to ``state:*`` / ``transition:*`` topics."""
        self._emitter.on(pattern, handler)

    def once(self, pattern: str, handler: Handler) -> None:
        self._emitter.once(pattern, handler)

    def off(self, pattern: str, handler: Optional[Handler] = None) -> None:
        self._emitter.off(pattern, handler)

    def trigger(
        self,
        name: str,
        *args: Any,
        action: Optional[Callable[..., Any]] = None,
        expiry: Optional[float] = None,
    ) -> Transition:
        """
        Fire trigger ``name`` from the current state.

        When the trigger declares no action, ``action`` or else a callable first
        positional argument is used for this call only. When ``expiry`` is not
        given and the last positional argument is a number, it is taken as the
        expiry in seconds. Remaining positional arguments go to the action.

        :return: The transition, completed already if it resolved synchronously.
        :raises WrongStateError: If a transition is in flight, the trigger is
            unknown in the current state, its target is not a defined state or
            its condition does not hold.
        :raises InvalidArgumentError: If ``action`` or ``expiry`` is malformed.
        """
        remaining = list(args)
        if expiry is None and remaining and is_number(remaining[-1]):
            expiry = remaining.pop()
        elif expiry is not None and not is_number(expiry):
            raise InvalidArgumentError(f"expiry must be a number of seconds, got {expiry!r}")
        if action is not None and not callable(action):
            raise InvalidArgumentError("action must be callable")

        with self._lock:
            spec = self._resolve(name, check_condition=True)
            if spec.action is not None:
                if action is not None:
                    raise InvalidArgumentError(f'Trigger "{name}" already declares an action')
                action = spec.action
            elif action is None and remaining and callable(remaining[0]):
                action = remaining.pop(0)
            transition = self._reserve(spec, action)
        return self._dispatch(transition, remaining, expiry)

    def reevaluate(self) -> Optional[Transition]:
        """
        Fire the first trigger of the current state whose condition now holds,
        as if ``trigger(name)`` had been called without arguments.

        :return: The fired transition, or None if a transition is already in
            flight or no condition holds.
        """
        with self._lock:
            if self._transition is not None:
                return None
            for name, spec in self._definition[self._state].items():
                if spec.condition is not None and spec.condition():
                    break
            else:
                return None
            logger.debug('Condition of trigger "%s" holds in state %s', name, self._state)
            transition = self._reserve(self._resolve(name, check_condition=False), spec.action)
        return self._dispatch(transition, [], None)

    tick = reevaluate

    def execute(self, sequence: Sequence[str], callback: Optional[SequenceCallback] = None) -> "StateMachine":
        """
        Fire the triggers of ``sequence`` one after the other, each once the
        previous transition is terminal, then call
        ``callback(machine, sequence, transitions)``.

        Steps do not stop on an expired or interrupted transition; inspect the
        ``status`` of each transition handed to the callback.

        :raises InvalidArgumentError: If ``sequence`` is not a sequence of names.
        :raises WrongStateError: From any step that cannot be triggered.
        """
        if isinstance(sequence, str) or not isinstance(sequence, Sequence):
            raise InvalidArgumentError("sequence must be a list of trigger names")
        if not all(isinstance(name, str) for name in sequence):
            raise InvalidArgumentError("sequence must only contain trigger names")
        if callback is not None and not callable(callback):
            raise InvalidArgumentError("callback must be callable")

        steps = list(sequence)
        results: List[Transition] = []

        def advance(_: Optional[Transition] = None) -> None:
            # Loops over steps that settle synchronously; only a pending step
            # hands control to whichever thread later resolves it.
            while len(results) < len(steps):
                transition = self.trigger(steps[len(results)])
                results.append(transition)
                if transition.defer_until_terminal(advance):
                    return
            if callback is not None:
                callback(self, sequence, list(results))

        advance()
        return self

    def _resolve(self, name: str, check_condition: bool) -> TransitionSpec:
        if self._transition is not None:
            raise WrongStateError(
                f'Cannot trigger "{name}": the machine is already transitioning ("{self._transition.vector}")'
            )
        specs = self._definition[self._state]
        if name not in specs:
            raise WrongStateError(f'Cannot trigger "{name}" when state is "{self._state}"')
        spec = specs[name]
        if spec.target not in self._definition:
            raise WrongStateError(f'Trigger "{name}" leads to unknown state "{spec.target}"')
        if check_condition and spec.condition is not None and not spec.condition():
            raise WrongStateError(f'Condition of trigger "{name}" does not hold in state "{self._state}"')
        return spec

    def _reserve(self, spec: TransitionSpec, action: Optional[Callable[..., Any]]) -> Transition:
        transition = Transition(
            (self._state, spec.target),
            action,
            scheduler=self._config.scheduler,
            default_expiry=self._config.default_expiry,
        )
        self._transition = transition
        transition.on("status:*", self._archive)
        transition.once("status:completed", self._commit)
        return transition

    def _dispatch(self, transition: Transition, args: Sequence[Any], expiry: Optional[float]) -> Transition:
        logger.debug("Dispatching %r", transition)
        try:
            self._emitter.emit(f"transition:{transition.vector}", transition)
        except Exception:
            # The transition never ran; release the slot.
            if transition.is_pending:
                transition.interrupt()
            raise
        transition.perform(*args, expiry=expiry)
        return transition

    def _archive(self, event: Event, *payload: Any) -> bool:
        transition = event.source
        if not transition.is_terminal:
            return False
        with self._lock:
            self._history.append(transition)
            if self._transition is transition:
                self._transition = None
        logger.debug("Archived %r", transition)
        return True

    def _commit(self, event: Event, *payload: Any) -> None:
        self._set_state(event.source.vector.target)

    def _set_state(self, state: str) -> None:
        if state not in self._definition:
            raise WrongStateError(f'Unknown state: "{state}"')
        with self._lock:
            self._state = state
        logger.debug("State is now %s", state)
        self._emitter.emit(f"state:{state}", state)

    def __repr__(self) -> str:
        return f"StateMachine(state={self._state!r}, transition={self._transition!r})"
