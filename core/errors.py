"""Exceptions raised by the bridge-facing core.

Discovery never raises for "not found" (it returns an empty list). The CLI
layer catches these and renders the matching remediation step.
"""


class BridgeError(Exception):
    """Base class for all bridge errors."""


class TransportError(BridgeError):
    """Timeout, connection failure or an unreadable response body."""


class ProtocolError(BridgeError):
    """Structured error reported by the bridge itself."""

    def __init__(self, description: str, error_type: int | None = None):
        super().__init__(description)
        self.description = description
        self.error_type = error_type


class NeedsPhysicalConfirmation(ProtocolError):
    """The bridge wants its link button pressed (error type 101)."""


class LinkButtonNotPressed(NeedsPhysicalConfirmation):
    """Pairing gave up waiting for the link button.

    Raised when the retry ceiling, the overall deadline or a cancellation is
    reached. The user has to press the button and start pairing again.
    """


class StaleDataError(BridgeError):
    """A registry refresh failed; the previously cached lights are kept."""
