"""Error taxonomy shared by the gate, the ledger and the HTTP layer."""

from flask_babel import lazy_gettext as _l


class TrackerError(Exception):
    """Base class for errors surfaced to the caller.

    ``code`` is the stable machine-readable identifier, ``status`` the HTTP
    status the web layer answers with.
    """

    code = "internal_error"
    status = 500
    default_message = _l("Internal error")

    def __init__(self, message=None, **details):
        self.message = message if message is not None else self.default_message
        self.details = details
        super().__init__(str(self.message))

    def to_dict(self):
        return {"ok": False, "error": self.code, "message": str(self.message)}


class InvalidInput(TrackerError):
    code = "invalid_input"
    status = 400
    default_message = _l("Tracking ID and status are required")


class Unauthorized(TrackerError):
    code = "unauthorized"
    status = 401
    default_message = _l("Not authorized")


class NotFound(TrackerError):
    code = "not_found"
    status = 404
    default_message = _l("Tracking ID not found")


class Conflict(TrackerError):
    code = "conflict"
    status = 409
    default_message = _l("Tracking ID already exists")


class AdminDisabled(TrackerError):
    code = "admin_disabled"
    status = 503
    default_message = _l("Admin access is not configured")


class StoreError(TrackerError):
    """Underlying storage failure. Never retried."""

    def __init__(self, operation, cause=None):
        super().__init__(operation=operation)
        self.operation = operation
        self.cause = cause

    def __str__(self):
        if self.cause is not None:
            return f"{self.operation}: {self.cause}"
        return self.operation


class ConfigurationError(Exception):
    """Raised at startup when configuration cannot serve a component."""
