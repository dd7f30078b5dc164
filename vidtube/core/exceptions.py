"""
Vidtube error taxonomy.

Every client-visible failure is one of these kinds; the handlers in
``vidtube.main`` render them into the uniform response envelope.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status


class VidtubeError(HTTPException):
    kind: str = "internal"
    default_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Something went wrong"

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Optional[List[Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(status_code=self.default_status, detail=self.message, headers=headers)


class InvalidArgument(VidtubeError):
    kind = "invalid_argument"
    default_status = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class Unauthenticated(VidtubeError):
    kind = "unauthenticated"
    default_status = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized request"


class Forbidden(VidtubeError):
    kind = "forbidden"
    default_status = status.HTTP_403_FORBIDDEN
    default_message = "You are not allowed to modify this resource"


class NotFound(VidtubeError):
    kind = "not_found"
    default_status = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class Conflict(VidtubeError):
    kind = "conflict"
    default_status = status.HTTP_409_CONFLICT
    default_message = "Resource already exists"


class Internal(VidtubeError):
    pass


class MediaStorageError(Internal):
    kind = "media_storage"
    default_message = "Media storage operation failed"
