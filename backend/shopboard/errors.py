from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, status


class ShopboardError(HTTPException):
    """Base class for errors raised by the service layer."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal error"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class ValidationError(ShopboardError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input"


class NotFoundError(ShopboardError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class StorageError(ShopboardError):
    # The caller only ever sees the generic message; the cause is logged.
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Storage failure"
