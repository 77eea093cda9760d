"""Error taxonomy shared by the record store, services and HTTP layer."""


class ApprovalDeskError(Exception):
    """Base exception for approval desk operations."""

    error_code = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def details(self) -> dict:
        return {}


class MissingRequiredField(ApprovalDeskError):
    """A precondition field is absent on the subject record."""

    error_code = "missing_required_field"

    def __init__(self, record_id: str, field: str):
        super().__init__(f"Record {record_id} is missing required field: {field}")
        self.record_id = record_id
        self.field = field

    def details(self) -> dict:
        return {"record_id": self.record_id, "field": self.field}


class NotFound(ApprovalDeskError):
    """Referenced record does not exist."""

    error_code = "not_found"

    def __init__(self, collection: str, record_id: str):
        super().__init__(f"{collection} record not found: {record_id}")
        self.collection = collection
        self.record_id = record_id

    def details(self) -> dict:
        return {"collection": self.collection, "record_id": self.record_id}


class UpstreamUnavailable(ApprovalDeskError):
    """A record store or notifier call failed. Safe to retry the operation."""

    error_code = "upstream_unavailable"

    def __init__(
        self,
        service: str,
        step: str,
        detail: str,
        recipient: str | None = None,
    ):
        message = f"{service} failed during {step}: {detail}"
        if recipient:
            message = f"{message} (recipient {recipient})"
        super().__init__(message)
        self.service = service
        self.step = step
        self.detail = detail
        self.recipient = recipient

    def details(self) -> dict:
        return {
            "service": self.service,
            "step": self.step,
            "recipient": self.recipient,
            "retryable": True,
        }


class InvalidDecision(ApprovalDeskError):
    """Decision value is neither approve nor deny."""

    error_code = "invalid_decision"

    def __init__(self, value: object):
        super().__init__(f"Invalid decision: {value!r}. Must be: approve or deny")
        self.value = value


class ConfigurationError(ApprovalDeskError):
    """A required setting is not configured."""

    error_code = "configuration_error"
