"""Exceptions raised while building a session configuration."""


class OmpingError(Exception):
    """Base class for every fatal configuration error."""


class UsageError(OmpingError):
    """Malformed or missing command-line value."""


class UnreachableConfigurationError(OmpingError):
    """Participants can't agree on an address family, or the group is unusable."""


class LoopbackRejectedError(OmpingError):
    """A remote address resolved to loopback."""


class ResolveError(OmpingError):
    """Hostname resolution failed."""


class LocalAddressNotFoundError(OmpingError):
    """None of the given addresses belongs to a local interface."""


class AllocationError(OmpingError):
    """Out of memory while building the session."""


class InternalInvariantError(OmpingError):
    """The resolver returned something the session builder can't handle."""

    def __init__(self, message: str = "Internal program error"):
        super().__init__(message)
