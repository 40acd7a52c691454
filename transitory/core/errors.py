# transitory/core/errors.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details


class TransitoryError(Exception):
    """
    Base exception class for errors raised by the state machine engine.
    """


class InvalidArgumentError(TransitoryError, ValueError):
    """
    Raised when a definition, initial state, configuration, vector or action
    handed to a constructor is missing or malformed.
    """


class WrongStateError(TransitoryError):
    """
    Raised when an operation is attempted while the machine is in a state that
    does not allow it: an unknown trigger, an unknown target state, an
    unsatisfied condition, or a transition already in flight.
    """


class AlreadyResolvedError(WrongStateError):
    """
    Raised when completing, interrupting or performing a transition that has
    already reached a terminal status.
    """
