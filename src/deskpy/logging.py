import logging
import sys
from typing import Any, Optional

# Context keys whose values never reach a log record.
SENSITIVE_KEYS = frozenset(
    {
        "authorization",
        "password",
        "token",
        "oauth_token",
        "api_token",
        "secret",
    }
)
REDACTED = "[REDACTED]"


class Logger:
    """Base logger class for deskpy.

    Wraps a standard library logger and appends ``key=value`` context to
    each message. Context values whose key names a credential are replaced
    with ``[REDACTED]``.
    """

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    def __init__(
        self,
        name: str = "deskpy",
        level: int = logging.INFO,
        format_string: Optional[str] = None,
        log_to_console: bool = True,
        log_file: Optional[str] = None,
    ):
        """Initialize the logger.

        Args:
            name: Logger name
            level: Minimum logging level
            format_string: Custom format string for log messages
            log_to_console: Whether to log to stdout
            log_file: Optional file path to log to
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        # Re-creating a logger with the same name must not duplicate output
        if self.logger.handlers:
            self.logger.handlers.clear()

        if format_string is None:
            format_string = "[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s"

        formatter = logging.Formatter(format_string)

        if log_to_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(self.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(self.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(self.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(self.ERROR, message, **kwargs)

    def critical(self, message: str, **kwargs: Any) -> None:
        self._log(self.CRITICAL, message, **kwargs)

    @staticmethod
    def redact(value: Any) -> Any:
        """Return a copy of ``value`` with credential entries masked.

        Dicts are walked recursively; keys are matched case-insensitively.
        """
        if isinstance(value, dict):
            return {
                key: REDACTED
                if isinstance(key, str) and key.lower() in SENSITIVE_KEYS
                else Logger.redact(item)
                for key, item in value.items()
            }
        if isinstance(value, list):
            return [Logger.redact(item) for item in value]
        return value

    def _log(self, level: int, message: str, **kwargs: Any) -> None:
        if kwargs:
            context = self.redact(kwargs)
            context_str = " ".join(f"{k}={v}" for k, v in context.items())
            message = f"{message} - {context_str}"
        self.logger.log(level, message)


class DefaultLogger(Logger):
    """Pre-configured console logger used when a component gets no logger."""

    def __init__(
        self,
        name: str = "deskpy",
        level: int = logging.INFO,
        log_file: Optional[str] = None,
    ):
        super().__init__(
            name=name,
            level=level,
            format_string="[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s",
            log_to_console=True,
            log_file=log_file,
        )
