"""Exception taxonomy for route generation."""
from __future__ import annotations


class StepLoopError(Exception):
    """Base class for every error raised by step_loop."""


class RoutingError(StepLoopError):
    """The routing engine did not produce a usable path."""


class TransportFailure(RoutingError):
    """Network error, HTTP error, or an unreadable response body."""


class NoRouteFound(RoutingError):
    """The routing engine answered but reported no usable route."""


class InvalidInput(StepLoopError, ValueError):
    """Caller-level coordinate or parameter validation failed."""


class GenerationCancelled(StepLoopError):
    """The invoking context cancelled the search before it finished."""
