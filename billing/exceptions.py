"""
Billing error taxonomy.

Every error raised to a caller on the request path derives from BillingError
and carries an error code, an HTTP status for the API layer and a context dict
with whatever ids or amounts the caller needs to render a message.
"""

from typing import Any, Dict, Optional


class BillingError(Exception):
    http_status = 400
    error_code = "BILLING_ERROR"
    message = "A billing error occurred"

    def __init__(self, message: Optional[str] = None, **context: Any):
        self.message = message or self.message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "code": self.error_code,
            "message": self.message,
        }
        if self.context:
            result["context"] = {k: str(v) if v is not None else None for k, v in self.context.items()}
        return result


class NotFoundError(BillingError):
    http_status = 404
    error_code = "RESOURCE_NOT_FOUND"
    message = "Resource not found"

    def __init__(self, resource: str = "Resource", resource_id: Any = None, **context: Any):
        message = f"{resource} not found" if resource_id is None else f"{resource} {resource_id} not found"
        super().__init__(message, resource=resource, resource_id=resource_id, **context)


class InvalidStateError(BillingError):
    http_status = 409
    error_code = "INVALID_STATE_TRANSITION"
    message = "Operation not allowed in the current state"


class ValidationError(BillingError):
    http_status = 400
    error_code = "VALIDATION_ERROR"
    message = "Validation failed"

    def __init__(self, message: Optional[str] = None, fields: Optional[Dict[str, str]] = None, **context: Any):
        self.fields = fields or {}
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        if self.fields:
            result["fields"] = [
                {"field": name, "code": "FIELD_INVALID", "message": msg}
                for name, msg in self.fields.items()
            ]
        return result


class InsufficientCreditError(BillingError):
    http_status = 409
    error_code = "INSUFFICIENT_CREDIT"
    message = "Insufficient deposit credit"

    def __init__(self, available, requested=None, **context: Any):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Credit amount exceeds available deposit. Available: {available}",
            available=available,
            requested=requested,
            **context,
        )


class AlreadyAppliedError(BillingError):
    http_status = 409
    error_code = "ALREADY_APPLIED"
    message = "Late fee already applied to this invoice"
