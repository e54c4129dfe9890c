"""Exceptions raised by the routing pipeline and its callers."""


class RoutingError(Exception):
    """Base class for route resolution errors."""


class InvalidInput(RoutingError, ValueError):
    """A location record whose coordinates cannot be used.

    The waypoint validator catches this and drops the record; it only
    escapes when a caller converts a single record directly.
    """


class UpstreamUnavailable(RoutingError):
    """A routing backend call failed, timed out, or returned garbage."""


class ResolutionExhausted(RoutingError):
    """Every routing strategy failed. Shown to the user with a retry action."""

    retryable = True

    def __init__(self, attempts=()):
        self.attempts = tuple(attempts)
        super().__init__("Routing is unavailable right now. Please retry.")


class ResolutionCancelled(RoutingError):
    """The resolution was superseded by newer input or torn down."""


class AuthorizationDenied(Exception):
    """The signed-in user does not own the requested trip or location."""

    def __init__(self, message: str = "Not authorized to access this resource"):
        self.message = message
        super().__init__(message)
