"""Async client for a ticketing-platform REST API."""

__version__ = "0.1.0"

from .client import DeskClient  # noqa: E402
from .config import DEFAULT_PAGE_SIZE, ClientConfig  # noqa: E402
from .exceptions import (  # noqa: E402
    ApiResponseError,
    AuthError,
    ConfigError,
    DeskClientError,
    DeskError,
)
from .pagination import (  # noqa: E402
    CappedPaginationStrategy,
    CursorPaginationStrategy,
    OffsetPaginationStrategy,
    PageNumberPaginationStrategy,
    PaginationStrategy,
    SinglePageStrategy,
)

__all__ = [
    "__version__",
    "ApiResponseError",
    "AuthError",
    "CappedPaginationStrategy",
    "ClientConfig",
    "ConfigError",
    "CursorPaginationStrategy",
    "DEFAULT_PAGE_SIZE",
    "DeskClient",
    "DeskClientError",
    "DeskError",
    "OffsetPaginationStrategy",
    "PageNumberPaginationStrategy",
    "PaginationStrategy",
    "SinglePageStrategy",
]
