from typing import Any, Dict, List
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp import ClientSession

from deskpy.logging import Logger
from deskpy.pagination_manager import PaginationManager


@pytest.fixture
def logger():
    """Mock logger so tests stay quiet and can assert on log calls."""
    return MagicMock(spec=Logger)


@pytest.fixture
def make_items():
    """Build ``count`` ticket payloads with consecutive ids."""

    def _make(count: int, start: int = 1) -> List[Dict[str, Any]]:
        return [{"id": i, "subject": f"Ticket {i}"} for i in range(start, start + count)]

    return _make


@pytest.fixture
def page_fetcher():
    """
    Factory for an async page-fetch callable that serves canned results.

    Every request it receives is recorded on ``fetch.requests``. A canned
    result that is an exception instance is raised instead of returned.
    """

    def _create(results):
        queue = list(results)
        requests = []

        async def fetch(params):
            requests.append(dict(params))
            result = queue.pop(0)
            if isinstance(result, BaseException):
                raise result
            return result

        fetch.requests = requests
        return fetch

    return _create


@pytest.fixture
def drive():
    """Run a strategy the way a resource accessor does and return all items."""

    async def _drive(strategy, fetch):
        items = []
        position = 0
        while strategy.should_get_page(position):
            items.extend(await strategy.page(fetch))
            position += 1
        return items

    return _drive


class FakeClient:
    """Stands in for DeskClient: serves canned pages from ``get``."""

    def __init__(self, results, logger):
        self.results = list(results)
        self.requests = []
        self.logger = logger
        self.sideload = None
        self._pagination_manager = PaginationManager(logger=logger)
        self._pagination_manager.register_builtin_strategies()
        self.get = AsyncMock(side_effect=self._get)
        self.post = AsyncMock(return_value={"ok": True})
        self.put = AsyncMock(return_value={"ok": True})
        self.delete = AsyncMock(return_value=None)

    def get_pagination_manager(self):
        return self._pagination_manager

    def get_sideload(self, params=None):
        if params and isinstance(params.get("sideload"), list):
            return params["sideload"]
        return self.sideload

    async def _get(self, endpoint, query_params=None):
        self.requests.append((endpoint, dict(query_params or {})))
        result = self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def fake_client_factory(logger):
    def _create(results=()):
        return FakeClient(results, logger)

    return _create


@pytest.fixture
def mock_response_factory():
    """
    Factory for mock aiohttp responses.
    """

    def _create_response(status=200, json_data=None, headers=None, text=None):
        mock_response = MagicMock()
        mock_response.status = status
        mock_response.headers = headers or {}
        mock_response.json = AsyncMock(return_value=json_data)
        mock_response.text = AsyncMock(return_value=text or "")
        mock_response.release = AsyncMock()
        return mock_response

    return _create_response


@pytest.fixture
def mock_client_session():
    def _create_session(response=None, side_effect=None):
        mock_session = MagicMock(spec=ClientSession)
        mock_session.closed = False

        if side_effect is not None:
            mock_session.request = AsyncMock(side_effect=side_effect)
        else:
            mock_session.request = AsyncMock(return_value=response)

        return mock_session

    return _create_session
