from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class TransportError(AppError):
    """The backend could not be reached or answered with garbage."""


class BackendError(AppError):
    """The backend answered with ``success: false`` or an HTTP error status."""

    def __init__(self, detail: str = "", status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(detail)


class StorageError(AppError):
    pass


class ForbiddenError(AppError):
    pass


class ValidationError(AppError):
    pass
