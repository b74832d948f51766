"""Error hierarchy for makeup booking operations.

Every core operation raises one of these before changing state (or after
rolling its transaction back). The API layer maps them onto HTTP status codes
with a machine-readable ``reason`` so the UI can show a specific message.
"""


class MakeupError(Exception):
    """Base exception for all makeup booking errors."""

    status_code = 400
    default_reason = "makeup_error"

    def __init__(self, message: str, reason: str | None = None):
        super().__init__(message)
        self.message = message
        self.reason = reason or self.default_reason


class ValidationFailed(MakeupError):
    """Malformed input, class band mismatch or a missing required field."""

    status_code = 422
    default_reason = "validation_failed"


class NotFound(MakeupError):
    """Unknown slot id, decline token, resume token or holiday."""

    status_code = 404
    default_reason = "not_found"


class Conflict(MakeupError):
    """The request is well formed but the current state does not allow it."""

    status_code = 409
    default_reason = "conflict"


class CapacityExhausted(Conflict):
    """Immediate booking attempted with no remaining makeup capacity."""

    default_reason = "capacity_exhausted"


class InvalidStatusTransition(Conflict):
    """A request or notice is not in a state that allows the transition.

    Declining an already declined/expired booking ends up here.
    """

    default_reason = "invalid_status_transition"


class WaitlistCloseTooEarly(Conflict):
    """Manual waitlist close attempted before the lesson's close window."""

    default_reason = "waitlist_close_too_early"
