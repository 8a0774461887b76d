"""
Django REST Framework Exception Handler

Renders billing errors and DRF's own exceptions in one envelope:
{ success: false, error: { code, message, fields?, context? }, request_id }
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from rest_framework.exceptions import (
    APIException,
    NotFound,
    ValidationError as DRFValidationError,
)
from rest_framework.response import Response
from rest_framework.views import exception_handler

from billing.exceptions import BillingError

logger = logging.getLogger(__name__)


def _request_id(context: Dict[str, Any]) -> str:
    request = context.get("request")
    request_id = getattr(request, "request_id", None) if request else None
    return request_id or str(uuid.uuid4())


def billing_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    request_id = _request_id(context)

    if isinstance(exc, BillingError):
        if exc.http_status >= 500:
            logger.error(f"Billing error: {exc.message}")
        else:
            logger.info(f"Billing request rejected ({exc.error_code}): {exc.message}")
        return Response(
            {"success": False, "error": exc.to_dict(), "request_id": request_id},
            status=exc.http_status,
        )

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, DRFValidationError):
        error = {
            "code": "VALIDATION_ERROR",
            "message": "Validation failed. Please check your input.",
            "fields": _extract_field_errors(exc.detail),
        }
    elif isinstance(exc, NotFound):
        error = {"code": "RESOURCE_NOT_FOUND", "message": str(exc.detail) if exc.detail else "Resource not found."}
    elif isinstance(exc, APIException):
        code = exc.get_codes() if isinstance(exc.get_codes(), str) else "API_ERROR"
        error = {"code": code.upper(), "message": str(exc.detail) if exc.detail else "An error occurred."}
    else:
        error = {"code": "INTERNAL_ERROR", "message": "An error occurred."}

    return Response({"success": False, "error": error, "request_id": request_id}, status=response.status_code)


def _extract_field_errors(detail: Any, prefix: str = "") -> List[Dict[str, str]]:
    errors: List[Dict[str, str]] = []
    if isinstance(detail, dict):
        for field_name, value in detail.items():
            name = f"{prefix}.{field_name}" if prefix else str(field_name)
            errors.extend(_extract_field_errors(value, name))
    elif isinstance(detail, list):
        for index, value in enumerate(detail):
            if isinstance(value, (dict, list)):
                errors.extend(_extract_field_errors(value, f"{prefix}.{index}" if prefix else str(index)))
            else:
                errors.append({
                    "field": prefix or "non_field_errors",
                    "code": getattr(value, "code", "invalid").upper(),
                    "message": str(value),
                })
    else:
        errors.append({"field": prefix or "non_field_errors", "code": "INVALID", "message": str(detail)})
    return errors
