"""Process-wide defaults and connection settings."""

import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from .exceptions import ConfigError

DEFAULT_HOSTNAME = "zendesk.com"
DEFAULT_SCHEME = "https"
DEFAULT_PORT = 443
DEFAULT_API_VERSION = "v2"
DEFAULT_TIMEOUT = 60
PAGE_SIZE_ENV_VAR = "DESKPY_DEFAULT_PAGE_SIZE"


def _read_default_page_size(fallback: int = 100) -> int:
    """Read the default page size from the environment, once, at import."""
    raw = os.getenv(PAGE_SIZE_ENV_VAR)
    if raw is None or raw.strip() == "":
        return fallback
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{PAGE_SIZE_ENV_VAR} must be an integer, got {raw!r}") from None


# Used whenever a caller supplies neither ``page[size]`` nor ``per_page``.
DEFAULT_PAGE_SIZE = _read_default_page_size()


class ClientConfig(BaseModel):
    """Connection settings for one API account."""

    subdomain: Optional[str] = None
    username: Optional[str] = None
    scheme: str = DEFAULT_SCHEME
    hostname: str = DEFAULT_HOSTNAME
    port: int = DEFAULT_PORT
    api_version: str = DEFAULT_API_VERSION
    timeout: float = DEFAULT_TIMEOUT

    model_config = ConfigDict(frozen=True)

    @field_validator("scheme")
    @classmethod
    def _check_scheme(cls, value: str) -> str:
        value = value.lower()
        if value not in {"http", "https"}:
            raise ValueError(f"Unsupported scheme: {value}")
        return value

    @field_validator("port")
    @classmethod
    def _check_port(cls, value: int) -> int:
        if not 0 < value < 65536:
            raise ValueError("Port must be between 1 and 65535")
        return value

    @field_validator("timeout")
    @classmethod
    def _check_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Timeout must be a positive number")
        return value

    @property
    def api_url(self) -> str:
        """Base URL every endpoint path is appended to."""
        if self.subdomain:
            host = f"{self.subdomain}.{self.hostname}"
        else:
            host = self.hostname
        return f"{self.scheme}://{host}:{self.port}/api/{self.api_version}/"
