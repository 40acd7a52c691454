"""
Core engine: definition handling, transitions, the state machine itself and
the event emitter they publish through.
"""

from .errors import AlreadyResolvedError, InvalidArgumentError, TransitoryError, WrongStateError
from .events import Event, EventEmitter
from .definition import TransitionSpec, validate_definition
from .config import MachineConfig
from .transitions import Transition, TransitionStatus, Vector
from .state_machine import StateMachine

__all__ = [
    "TransitoryError",
    "InvalidArgumentError",
    "WrongStateError",
    "AlreadyResolvedError",
    "Event",
    "EventEmitter",
    "TransitionSpec",
    "validate_definition",
    "MachineConfig",
    "Transition",
    "TransitionStatus",
    "Vector",
    "StateMachine",
]
