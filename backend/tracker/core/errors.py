"""Errors raised by the tracking engine.

Every error is recoverable: the controller is left exactly as it was
before the failing call, so callers may retry or issue another command.
"""


class TrackingError(Exception):
    """Base class for tracking engine errors."""


class InvalidState(TrackingError):
    """Operation is not possible with the session in its current state."""


class InvalidTransition(InvalidState):
    """Command is not legal for the current session state."""

    def __init__(self, command: str, state):
        self.command = command
        self.state = state
        super().__init__(f"cannot {command} while {state.value}")


class ProducerUnavailable(TrackingError):
    """Clock or position source failed to start."""


class SubscriptionClosed(TrackingError):
    """Observer subscription was detached, or dropped for lagging behind."""

    def __init__(self, lagged: bool = False):
        self.lagged = lagged
        super().__init__("subscription lagged" if lagged else "subscription closed")
