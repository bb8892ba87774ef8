"""Retry policies applied by the request dispatcher."""

import asyncio
import random
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, TypeVar

import aiohttp

from .logging import DefaultLogger, Logger

T = TypeVar("T")

RETRYABLE_EXCEPTIONS = (
    aiohttp.ClientConnectionError,
    aiohttp.ServerTimeoutError,
    asyncio.TimeoutError,
    ConnectionError,
)


class RetryPolicy:
    """
    Decide whether a request is retried and how long to wait in between.

    A response with a retryable status is retried while attempts remain. Once
    they run out the last response is handed back unchanged, so the caller can
    turn it into an API error with the server's message.
    """

    def __init__(
        self,
        max_retries: int = 3,
        retry_codes: Optional[List[int]] = None,
        logger: Optional[Logger] = None,
    ):
        """
        Args:
            max_retries: Maximum number of retry attempts
            retry_codes: HTTP status codes that should trigger a retry
            logger: Optional logger instance
        """
        self.max_retries = max_retries
        self.retry_codes = retry_codes or [429, 500, 502, 503, 504]
        self.logger = logger or DefaultLogger(name="deskpy-retry")

    def set_logger(self, logger: Logger) -> None:
        self.logger = logger

    def should_retry(
        self, attempt: int, status: Optional[int], exception: Optional[BaseException] = None
    ) -> bool:
        """
        Args:
            attempt: Current attempt number (0-based)
            status: HTTP status code from the response, if available
            exception: Exception that occurred, if any

        Returns:
            True if the request should be retried, False otherwise
        """
        if attempt >= self.max_retries:
            return False

        if status is not None and status in self.retry_codes:
            self.logger.debug(f"Will retry due to status code {status}")
            return True

        if exception is not None and isinstance(exception, RETRYABLE_EXCEPTIONS):
            self.logger.debug(f"Will retry due to exception: {type(exception).__name__}")
            return True

        return False

    def compute_delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """Seconds to wait before the next attempt. Retry-After always wins."""
        if retry_after is not None:
            return retry_after
        return float(2**attempt)

    async def wait_before_retry(self, attempt: int, retry_after: Optional[float] = None) -> None:
        delay = self.compute_delay(attempt, retry_after)
        self.logger.info(f"Retrying in {delay:.2f} seconds...")
        await asyncio.sleep(delay)

    @staticmethod
    def _retry_after(response: Any) -> Optional[float]:
        headers = getattr(response, "headers", None) or {}
        value = headers.get("Retry-After")
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    async def execute_with_retry(
        self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        """
        Await ``func`` until it succeeds, returns a non-retryable response or
        attempts run out.

        Raises:
            The last exception if the final attempt raised
        """
        attempt = 0

        while True:
            try:
                self.logger.debug(f"Executing attempt {attempt + 1}/{self.max_retries + 1}")
                result = await func(*args, **kwargs)
            except Exception as e:
                if not self.should_retry(attempt, None, e):
                    self.logger.error(f"Not retrying after exception: {e}")
                    raise
                self.logger.warning(
                    f"Retry attempt {attempt + 1}/{self.max_retries + 1} failed: {e}"
                )
                await self.wait_before_retry(attempt)
                attempt += 1
                continue

            status = getattr(result, "status", None)
            if status is None or not self.should_retry(attempt, status):
                return result

            self.logger.warning(f"Received retryable status code {status} on attempt {attempt + 1}")
            retry_after = self._retry_after(result)
            release = getattr(result, "release", None)
            if release is not None:
                await release()
            await self.wait_before_retry(attempt, retry_after)
            attempt += 1


class ExponentialBackoffRetryPolicy(RetryPolicy):
    """Exponential backoff with optional jitter, capped at ``max_delay``."""

    def __init__(
        self,
        max_retries: int = 3,
        retry_codes: Optional[List[int]] = None,
        initial_delay: float = 0.5,
        max_delay: float = 30.0,
        backoff_factor: float = 2.0,
        jitter: bool = True,
        logger: Optional[Logger] = None,
    ):
        super().__init__(max_retries, retry_codes, logger)
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.jitter = jitter

    def compute_delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        if retry_after is not None:
            return retry_after

        delay = min(self.max_delay, self.initial_delay * (self.backoff_factor**attempt))
        if self.jitter:
            # Spread between 0.5x and 1.5x
            delay *= 0.5 + random.random()
        return delay


class FixedDelayRetryPolicy(RetryPolicy):
    """Wait the same ``delay`` between every attempt."""

    def __init__(
        self,
        max_retries: int = 3,
        retry_codes: Optional[List[int]] = None,
        delay: float = 2.0,
        logger: Optional[Logger] = None,
    ):
        super().__init__(max_retries, retry_codes, logger)
        self.delay = delay

    def compute_delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        if retry_after is not None:
            return retry_after
        return self.delay


class NoRetryPolicy(RetryPolicy):
    """Send each request exactly once."""

    def __init__(self, logger: Optional[Logger] = None, **kwargs: Any):
        super().__init__(max_retries=0, logger=logger)


class RetryManager:
    """Registry of retry policies by name."""

    def __init__(self, logger: Optional[Logger] = None):
        self._policies: Dict[str, Type[RetryPolicy]] = {}
        self._default_policy: Optional[str] = None
        self.logger = logger or DefaultLogger(name="deskpy-retry-manager")

    def register_policy(self, name: str, policy_cls: Type[RetryPolicy]) -> None:
        """
        Raises:
            TypeError: If policy_cls is not a subclass of RetryPolicy
        """
        if not isinstance(policy_cls, type) or not issubclass(policy_cls, RetryPolicy):
            raise TypeError(f"Expected a RetryPolicy subclass, got {policy_cls}")

        self._policies[name] = policy_cls
        self.logger.debug(f"Registered retry policy: {name}")

    def unregister_policy(self, name: str) -> None:
        if name not in self._policies:
            raise KeyError(f"Policy '{name}' not registered")

        del self._policies[name]
        if self._default_policy == name:
            self._default_policy = None
            self.logger.debug(f"Cleared default policy (was: {name})")

        self.logger.debug(f"Unregistered retry policy: {name}")

    def set_default_policy(self, name: str) -> None:
        if name not in self._policies:
            raise ValueError(f"Policy '{name}' not registered")

        self._default_policy = name
        self.logger.debug(f"Set default retry policy to: {name}")

    def get_policy(self, name: Optional[str] = None, **kwargs: Any) -> RetryPolicy:
        """
        Instantiate a registered policy.

        Args:
            name: Name of the policy to get, or None to use the default
            **kwargs: Passed to the policy constructor

        Raises:
            ValueError: If no name is provided and no default is set, or if the
                       requested policy is not registered
        """
        if name is None:
            if self._default_policy is None:
                raise ValueError("No default policy set")
            name = self._default_policy

        if name not in self._policies:
            raise ValueError(f"Policy '{name}' not registered")

        kwargs.setdefault("logger", self.logger)
        return self._policies[name](**kwargs)

    def list_policies(self) -> Dict[str, Type[RetryPolicy]]:
        return self._policies.copy()

    def get_default_policy_name(self) -> Optional[str]:
        return self._default_policy

    def register_builtin_policies(self) -> None:
        self.register_policy("exponential_backoff", ExponentialBackoffRetryPolicy)
        self.register_policy("fixed_delay", FixedDelayRetryPolicy)
        self.register_policy("none", NoRetryPolicy)

        if self._default_policy is None:
            self.set_default_policy("exponential_backoff")
