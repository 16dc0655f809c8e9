"""Error taxonomy for the event lifecycle engine.

Every failure the engine reports to a caller is a ``PlannerError`` subclass
carrying a stable ``code`` (what API clients switch on), a human readable
``message`` and the HTTP status the API layer should use. The FastAPI app
registers a single handler that renders these as ``{"code", "message"}``.
"""


class PlannerError(Exception):
    """Base class for errors surfaced to API callers."""

    code = "INTERNAL_ERROR"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(PlannerError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Event not found"


class PastDateError(PlannerError):
    code = "PAST_DATE"
    status_code = 400
    default_message = "Cannot schedule events before today"


class ScheduleOffsetError(PlannerError):
    code = "SCHED_MIN_OFFSET"
    status_code = 400
    default_message = "Event is scheduled too close to now"


class AmbiguousRecurrenceError(PlannerError):
    code = "MUST_SPECIFY_TEMPLATE_OR_MATERIALIZE"
    status_code = 400
    default_message = (
        "Repeating schedules must either set isTemplate=true or request "
        "materialization (materialize, materializeCount or materializeUntil)"
    )


class InvalidTemplateError(PlannerError):
    code = "INVALID_TEMPLATE"
    status_code = 400
    default_message = "Template payload missing or invalid (expected a list of modules)"


class SchemaMismatchError(PlannerError):
    code = "SCHEMA_MISMATCH"
    status_code = 500
    default_message = "Storage rejected fields not supported by this deployment"


class TransactionFailedError(PlannerError):
    code = "TRANSACTION_FAILED"
    status_code = 500
    default_message = "Operation could not be applied atomically; nothing was changed"
