"""Registry and selection of pagination strategies."""

from typing import Any, Dict, Optional, Type

from .logging import DefaultLogger, Logger
from .pagination import (
    CappedPaginationStrategy,
    CursorPaginationStrategy,
    OffsetPaginationStrategy,
    PageNumberPaginationStrategy,
    PaginationStrategy,
    SinglePageStrategy,
)

CURSOR_PARAMS = ("page[size]", "page[after]")
OFFSET_PARAMS = ("page", "per_page")


class PaginationManager:
    """
    Manager for pagination strategies.

    Strategy classes are registered by name. Since a strategy holds the state
    of a single traversal, :meth:`get_strategy` builds a new instance on every
    call.
    """

    def __init__(self, logger: Optional[Logger] = None):
        """
        Args:
            logger: Optional logger instance, also handed to created strategies
        """
        self._strategies: Dict[str, Type[PaginationStrategy]] = {}
        self._default_strategy: Optional[str] = None
        self.logger = logger or DefaultLogger(name="deskpy-pagination-manager")

    def register_strategy(self, name: str, strategy_cls: Type[PaginationStrategy]) -> None:
        """
        Raises:
            TypeError: If strategy_cls is not a PaginationStrategy subclass
        """
        if not isinstance(strategy_cls, type) or not issubclass(strategy_cls, PaginationStrategy):
            raise TypeError(f"Expected a PaginationStrategy subclass, got {strategy_cls!r}")

        self._strategies[name] = strategy_cls
        self.logger.debug(f"Registered pagination strategy: {name}")

    def unregister_strategy(self, name: str) -> None:
        """
        Raises:
            KeyError: If the strategy is not registered
        """
        if name not in self._strategies:
            raise KeyError(f"Strategy '{name}' not registered")

        del self._strategies[name]

        if self._default_strategy == name:
            self._default_strategy = None
            self.logger.debug(f"Cleared default strategy (was: {name})")

        self.logger.debug(f"Unregistered pagination strategy: {name}")

    def set_default_strategy(self, name: str) -> None:
        """
        Raises:
            ValueError: If the strategy is not registered
        """
        if name not in self._strategies:
            raise ValueError(f"Strategy '{name}' not registered")

        self._default_strategy = name
        self.logger.debug(f"Set default pagination strategy to: {name}")

    def get_default_strategy_name(self) -> Optional[str]:
        return self._default_strategy

    def list_strategies(self) -> Dict[str, Type[PaginationStrategy]]:
        return self._strategies.copy()

    def select_strategy(self, params: Optional[Dict[str, Any]] = None) -> str:
        """Pick a strategy name from the pagination parameters a caller sent.

        Cursor parameters win over offset ones; with neither, the default
        strategy is used.

        Raises:
            ValueError: If no parameter matches and no default is set
        """
        params = params or {}
        if any(params.get(key) is not None for key in CURSOR_PARAMS) and "cursor" in self._strategies:
            return "cursor"
        if any(params.get(key) is not None for key in OFFSET_PARAMS) and "offset" in self._strategies:
            return "offset"
        if self._default_strategy is None:
            raise ValueError("No default strategy set")
        return self._default_strategy

    def get_strategy(
        self,
        resources_key: str,
        params: Optional[Dict[str, Any]] = None,
        name: Optional[str] = None,
        max_pages: Optional[int] = None,
    ) -> PaginationStrategy:
        """
        Build a fresh strategy for one traversal.

        Args:
            resources_key: Response field holding the item list
            params: Caller-supplied query parameters
            name: Registered strategy name, or None to use the default
            max_pages: Stop after this many pages when given

        Raises:
            ValueError: If no name is provided and no default is set, or if the
                       requested strategy is not registered
        """
        if name is None:
            if self._default_strategy is None:
                raise ValueError("No default strategy set")
            name = self._default_strategy

        if name not in self._strategies:
            raise ValueError(f"Strategy '{name}' not registered")

        strategy = self._strategies[name](resources_key, params, logger=self.logger)
        if max_pages is not None:
            strategy = CappedPaginationStrategy(strategy, max_pages)

        self.logger.debug(f"Using pagination strategy: {name}", resources_key=resources_key)
        return strategy

    def register_builtin_strategies(self) -> None:
        self.register_strategy("cursor", CursorPaginationStrategy)
        self.register_strategy("offset", OffsetPaginationStrategy)
        self.register_strategy("page_number", PageNumberPaginationStrategy)
        self.register_strategy("single_page", SinglePageStrategy)

        if self._default_strategy is None:
            self.set_default_strategy("cursor")
