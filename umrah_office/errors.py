from __future__ import annotations

from typing import Dict, Optional


class UmrahError(Exception):
    """Base class for every error surfaced to the back-office user."""

    status_code = 400

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message or self.__class__.__name__
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict:
        return {"status": "error", "error": self.message}


class ValidationError(UmrahError):
    status_code = 422

    def __init__(self, errors: Dict[str, str], message: str = "Invalid data"):
        super().__init__(message)
        self.errors = dict(errors or {})

    def to_dict(self) -> Dict:
        payload = super().to_dict()
        payload["errors"] = self.errors
        return payload


class AuthenticationError(UmrahError):
    status_code = 401


class NotFoundError(UmrahError):
    status_code = 404


class CapacityExceeded(UmrahError):
    status_code = 409


class RoomNotEmpty(UmrahError):
    status_code = 409


class InvalidTransition(UmrahError):
    status_code = 409


class ImportParseError(UmrahError):
    status_code = 400


class StoreError(UmrahError):
    """Generic backend failure (network, auth, quota, constraint)."""

    status_code = 502

    def __init__(self, message: str = "", status_code: Optional[int] = None, upstream_status: Optional[int] = None):
        super().__init__(message, status_code)
        self.upstream_status = upstream_status


class Forbidden(UmrahError):
    status_code = 403
