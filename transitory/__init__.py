"""transitory: a declarative finite state machine with asynchronous transitions.

A machine is built from a table mapping each state to its triggers. Firing a
trigger creates a Transition which either completes on the spot or stays
pending until its action completes it, interrupts it, or it expires. The
machine commits the new state only when the transition completes, keeps a
bounded history of terminated transitions, and publishes ``state:*`` and
``transition:*`` events along the way.
"""

from transitory.core.config import MachineConfig
from transitory.core.errors import AlreadyResolvedError, InvalidArgumentError, TransitoryError, WrongStateError
from transitory.core.events import Event, EventEmitter
from transitory.core.state_machine import StateMachine
from transitory.core.transitions import Transition, TransitionStatus, Vector
from transitory.runtime.timers import AsyncioTimerScheduler, ThreadingTimerScheduler

__version__ = "0.1.0"

__all__ = [
    "StateMachine",
    "Transition",
    "TransitionStatus",
    "Vector",
    "MachineConfig",
    "Event",
    "EventEmitter",
    "ThreadingTimerScheduler",
    "AsyncioTimerScheduler",
    "TransitoryError",
    "InvalidArgumentError",
    "WrongStateError",
    "AlreadyResolvedError",
]
