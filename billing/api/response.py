from typing import Any, Optional

from rest_framework import status
from rest_framework.response import Response


class APIResponse:
    """Success envelopes for the billing API; errors come from billing_exception_handler."""

    @staticmethod
    def success(
        data: Any = None,
        message: str = "Success",
        status_code: int = status.HTTP_200_OK,
        meta: Optional[dict] = None,
    ) -> Response:
        body = {"success": True, "message": message}
        if data is not None:
            body["data"] = data
        if meta:
            body["meta"] = meta
        return Response(body, status=status_code)

    @classmethod
    def created(cls, data: Any, message: str = "Created") -> Response:
        return cls.success(data, message=message, status_code=status.HTTP_201_CREATED)

    @staticmethod
    def paginated(data: Any, total: int, limit: int, offset: int, message: str = "Success") -> Response:
        """One limit/offset window of a search; has_more tells the caller to fetch offset + limit next."""
        return Response({
            "success": True,
            "message": message,
            "data": data,
            "meta": {
                "pagination": {
                    "total": total,
                    "limit": limit,
                    "offset": offset,
                    "has_more": offset + len(data) < total,
                }
            },
        })
