"""Exceptions raised by the deskpy client."""

from typing import Any, Optional


class DeskError(Exception):
    """Base exception for all deskpy errors."""


class DeskClientError(DeskError):
    """The client was used incorrectly (no open session, bad HTTP method)."""


class ConfigError(DeskError):
    """Invalid client configuration."""


class AuthError(DeskError):
    """Invalid auth strategy or missing auth options."""


class ApiResponseError(DeskError):
    """The API answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.details = details

    def __str__(self) -> str:
        base = super().__str__()
        if self.status is None:
            return base
        return f"[{self.status}] {base}"
