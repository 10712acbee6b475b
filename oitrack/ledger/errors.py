# oitrack/ledger/errors.py


class LedgerError(Exception):
    """Base class for errors raised by a ledger session."""


class ValidationError(LedgerError):
    """A required field is empty; raised before any network call."""


class PersistenceError(LedgerError):
    """Saving failed at the transport or server; local state is unchanged."""


class LedgerStateError(LedgerError):
    """The operation is not allowed in the session's current mode or state."""


class FetchDegradation(LedgerError):
    """A read failed where a safe default exists; the default is used instead."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class StaleResponse(LedgerError):
    """A response arrived after a newer navigation superseded it."""


class GatewayError(Exception):
    """Transport or server failure reported by a task gateway."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code
