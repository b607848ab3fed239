"""External message bridge – error taxonomy.

Every error carries the HTTP status the ingestion handler answers with.
All of them are terminal for the request; none are retried.
"""


class BridgeError(Exception):
    """Base class for bridge request failures."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class TransportError(BridgeError):
    """Wrong method for the bridge route."""

    status_code = 405


class AuthError(BridgeError):
    """Missing, invalid or misplaced credential."""

    status_code = 401


class ValidationError(BridgeError):
    """Malformed or oversized request body."""

    status_code = 400


class UnavailableError(BridgeError):
    """No live session for the target account (retry once it is up)."""

    status_code = 503


class DispatchError(BridgeError):
    """The session failed while processing the injected update."""

    status_code = 500


class SyntheticEventError(ValidationError):
    """The payload passed validation but cannot be shaped into an update."""
