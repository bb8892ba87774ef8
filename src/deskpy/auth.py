"""Authentication strategies for the API."""

from typing import Any, Dict, Mapping

from aiohttp import BasicAuth

from .exceptions import AuthError

BASIC = "basic"
OAUTH = "oauth"
VALID_STRATEGIES = (BASIC, OAUTH)


class Auth:
    """A validated auth strategy and the options it needs.

    ``basic`` authenticates an API token on behalf of a user and requires
    ``username`` and ``token``. ``oauth`` sends a bearer ``token``.
    """

    def __init__(self, strategy: str, options: Mapping[str, Any]):
        if strategy not in VALID_STRATEGIES:
            raise AuthError(
                "Invalid auth strategy set, please use `"
                + "` or `".join(VALID_STRATEGIES)
                + "`"
            )

        if strategy == BASIC:
            if "username" not in options or "token" not in options:
                raise AuthError("Please supply `username` and `token` for basic auth.")
        elif "token" not in options:
            raise AuthError("Please supply `token` for oauth.")

        self.strategy = strategy
        self.options = dict(options)

    def headers(self) -> Dict[str, str]:
        """Return the ``Authorization`` header for this strategy."""
        if self.strategy == BASIC:
            credentials = BasicAuth(
                login=f"{self.options['username']}/token",
                password=str(self.options["token"]),
            )
            return {"Authorization": credentials.encode()}
        return {"Authorization": f"Bearer {self.options['token']}"}

    def __repr__(self) -> str:
        return f"Auth(strategy={self.strategy!r})"
