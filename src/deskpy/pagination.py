"""Pagination strategies for collection endpoints."""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional

from . import config
from .logging import DefaultLogger, Logger

PageRequest = Dict[str, Any]
PageResult = Dict[str, Any]
GetPageFn = Callable[[PageRequest], Awaitable[Optional[PageResult]]]

_UNSET = object()


class PaginationStrategy(ABC):
    """Base class for pagination strategies.

    A strategy owns the state of exactly one traversal of a collection. The
    resource accessor calls :meth:`should_get_page` with the index of the next
    page and, while it returns True, awaits :meth:`page` with a callable that
    performs one fetch. Strategies never catch errors raised by that callable.

    Subclasses decide which query parameters select a page and when the
    traversal is over. A finished strategy is not reused.
    """

    # Page-size keys that must not be sent alongside this strategy's own.
    excluded_params: tuple = ()

    def __init__(
        self,
        resources_key: str,
        params: Optional[Dict[str, Any]] = None,
        logger: Optional[Logger] = None,
    ):
        """
        Args:
            resources_key: Response field holding the item list
            params: Caller-supplied query parameters, never modified
            logger: Optional logger instance
        """
        self.resources_key = resources_key
        self._params = params if params is not None else {}
        self._page_size: Any = _UNSET
        self._pages_fetched = 0
        self.logger = logger or DefaultLogger(name="deskpy-pagination")

    def params(self) -> Dict[str, Any]:
        """Return the caller's parameters exactly as supplied."""
        return self._params

    def page_size(self) -> Any:
        """Resolve the page size once and keep it for the whole traversal.

        ``page[size]`` wins over ``per_page``, and both win over
        :data:`deskpy.config.DEFAULT_PAGE_SIZE`. The value is passed through
        without validation.
        """
        if self._page_size is not _UNSET:
            return self._page_size

        if self._params.get("page[size]") is not None:
            self._page_size = self._params["page[size]"]
        elif self._params.get("per_page") is not None:
            self._page_size = self._params["per_page"]
        else:
            self._page_size = config.DEFAULT_PAGE_SIZE

        self.logger.debug(f"Resolved page size: {self._page_size}")
        return self._page_size

    @property
    def pages_fetched(self) -> int:
        return self._pages_fetched

    def page_request(self, page_params: Dict[str, Any]) -> PageRequest:
        """Overlay this strategy's positional parameters on the caller's."""
        request = {k: v for k, v in self._params.items() if k not in self.excluded_params}
        request.update(page_params)
        return request

    def extract_items(self, result: Optional[PageResult]) -> List[Any]:
        """Items under :attr:`resources_key`, or ``[]`` when absent."""
        if not isinstance(result, dict):
            return []
        items = result.get(self.resources_key)
        if items is None:
            self.logger.warning(f"Key '{self.resources_key}' not found in page result")
            return []
        return list(items)

    async def _fetch(self, get_page_fn: GetPageFn, page_params: Dict[str, Any]) -> Optional[PageResult]:
        request = self.page_request(page_params)
        self.logger.debug(f"Fetching page {self._pages_fetched + 1}", params=request)
        result = await get_page_fn(request)
        self._pages_fetched += 1
        return result

    @abstractmethod
    async def page(self, get_page_fn: GetPageFn) -> List[Any]:
        """Fetch the current page, advance the position and return its items."""

    @abstractmethod
    def should_get_page(self, position: int) -> bool:
        """Whether the page at zero-based ``position`` should be fetched."""


def _as_count(value: Any) -> Optional[int]:
    """Interpret a page size for comparison with an item count."""
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _start_page(params: Dict[str, Any]) -> int:
    try:
        return max(int(params.get("page", 1)), 1)
    except (TypeError, ValueError):
        return 1


class OffsetPaginationStrategy(PaginationStrategy):
    """Offset pagination with ``page`` and ``per_page``.

    A page holding fewer items than the page size is the last one.
    """

    excluded_params = ("page[size]", "page[after]")

    def __init__(
        self,
        resources_key: str,
        params: Optional[Dict[str, Any]] = None,
        logger: Optional[Logger] = None,
    ):
        super().__init__(resources_key, params, logger)
        self._page_number = _start_page(self._params)
        self._last_count: Optional[int] = None

    @property
    def page_number(self) -> int:
        """Number of the page the next call to :meth:`page` requests."""
        return self._page_number

    async def page(self, get_page_fn: GetPageFn) -> List[Any]:
        result = await self._fetch(
            get_page_fn, {"page": self._page_number, "per_page": self.page_size()}
        )
        self._page_number += 1
        items = self.extract_items(result)
        self._last_count = len(items)
        return items

    def should_get_page(self, position: int) -> bool:
        if self._last_count is None:
            return True
        if self._last_count == 0:
            return False

        size = _as_count(self.page_size())
        if size is None:
            # Uninterpretable size: the short-page rule cannot apply
            return False
        return self._last_count >= size


class PageNumberPaginationStrategy(PaginationStrategy):
    """Page-number pagination driven by the ``next_page`` envelope field."""

    excluded_params = ("page[size]", "page[after]")

    def __init__(
        self,
        resources_key: str,
        params: Optional[Dict[str, Any]] = None,
        logger: Optional[Logger] = None,
    ):
        super().__init__(resources_key, params, logger)
        self._page_number = _start_page(self._params)
        self._has_next = True

    @property
    def page_number(self) -> int:
        return self._page_number

    async def page(self, get_page_fn: GetPageFn) -> List[Any]:
        result = await self._fetch(
            get_page_fn, {"page": self._page_number, "per_page": self.page_size()}
        )
        self._page_number += 1
        self._has_next = isinstance(result, dict) and bool(result.get("next_page"))
        self.logger.debug(f"Has more pages: {self._has_next}")
        return self.extract_items(result)

    def should_get_page(self, position: int) -> bool:
        return self._pages_fetched == 0 or self._has_next


class CursorPaginationStrategy(PaginationStrategy):
    """Cursor pagination with ``page[size]`` and ``page[after]``.

    The traversal continues only while the last envelope carried a
    continuation cursor (``meta.has_more`` with ``meta.after_cursor``).
    """

    excluded_params = ("per_page", "page")

    def __init__(
        self,
        resources_key: str,
        params: Optional[Dict[str, Any]] = None,
        logger: Optional[Logger] = None,
    ):
        super().__init__(resources_key, params, logger)
        self._after_cursor: Optional[str] = self._params.get("page[after]")

    @property
    def after_cursor(self) -> Optional[str]:
        return self._after_cursor

    async def page(self, get_page_fn: GetPageFn) -> List[Any]:
        page_params: Dict[str, Any] = {"page[size]": self.page_size()}
        if self._after_cursor:
            page_params["page[after]"] = self._after_cursor

        result = await self._fetch(get_page_fn, page_params)
        self._after_cursor = self._next_cursor(result)
        self.logger.debug(f"Next cursor: {self._after_cursor}")
        return self.extract_items(result)

    @staticmethod
    def _next_cursor(result: Optional[PageResult]) -> Optional[str]:
        if not isinstance(result, dict):
            return None
        meta = result.get("meta") or {}
        if not meta.get("has_more"):
            return None
        return meta.get("after_cursor") or None

    def should_get_page(self, position: int) -> bool:
        return self._pages_fetched == 0 or self._after_cursor is not None


class SinglePageStrategy(PaginationStrategy):
    """Fetch one page with the caller's parameters and stop."""

    async def page(self, get_page_fn: GetPageFn) -> List[Any]:
        return self.extract_items(await self._fetch(get_page_fn, {}))

    def should_get_page(self, position: int) -> bool:
        return self._pages_fetched == 0


class CappedPaginationStrategy(PaginationStrategy):
    """Stop a wrapped strategy after ``max_pages`` pages."""

    def __init__(self, strategy: PaginationStrategy, max_pages: int):
        super().__init__(strategy.resources_key, strategy.params(), strategy.logger)
        self.strategy = strategy
        self.max_pages = max_pages

    def page_size(self) -> Any:
        return self.strategy.page_size()

    @property
    def pages_fetched(self) -> int:
        return self.strategy.pages_fetched

    async def page(self, get_page_fn: GetPageFn) -> List[Any]:
        return await self.strategy.page(get_page_fn)

    def should_get_page(self, position: int) -> bool:
        if max(position, self.strategy.pages_fetched) >= self.max_pages:
            self.logger.info(f"Reached maximum page count: {self.max_pages}")
            return False
        return self.strategy.should_get_page(position)
