# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Logging configuration with credential redaction.

Secret access keys and session tokens are registered with
``SecretFilter`` when credentials are loaded, so they never reach log
output even if a request dump or exception message contains them.

Usage:
    # In entry points
    from s3vectors.logging import configure_logging
    configure_logging(level=logging.INFO)

    # In library modules
    import logging
    logger = logging.getLogger(__name__)
    logger.info("Creating bucket: %s", name)
"""

import logging
import re
from typing import ClassVar


#: Replacement text for redacted secrets.
REDACTED = "[REDACTED]"


class SecretFilter(logging.Filter):
    """Logging filter that redacts registered secrets from log output.

    Example:
        SecretFilter.register_secret("wJalrXUtnFEMI/K7MDENG")
        handler.addFilter(SecretFilter())
        logger.info("secret=%s", "wJalrXUtnFEMI/K7MDENG")
        # Output: "secret=[REDACTED]"
    """

    _secrets: ClassVar[set[str]] = set()
    _pattern: ClassVar[re.Pattern[str] | None] = None

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact registered secrets in the record message and arguments.

        Args:
            record: The log record to filter.

        Returns:
            Always True (records are modified, never dropped).
        """
        if self._pattern is not None:
            record.msg = self._pattern.sub(REDACTED, str(record.msg))
            if record.args:
                record.args = tuple(
                    self._pattern.sub(REDACTED, arg)
                    if isinstance(arg, str)
                    else arg
                    for arg in record.args
                )
        return True

    @classmethod
    def register_secret(cls, secret: str | None) -> None:
        """Register a secret to be redacted from all log output.

        Args:
            secret: Secret string. Empty and None values are ignored.
        """
        if secret:
            cls._secrets.add(secret)
            cls._rebuild_pattern()

    @classmethod
    def clear_secrets(cls) -> None:
        """Clear all registered secrets. Primarily for testing."""
        cls._secrets.clear()
        cls._pattern = None

    @classmethod
    def _rebuild_pattern(cls) -> None:
        # Longest first so a secret containing another is redacted whole.
        escaped = [
            re.escape(s) for s in sorted(cls._secrets, key=len, reverse=True)
        ]
        cls._pattern = re.compile("|".join(escaped)) if escaped else None


def configure_logging(
    level: int = logging.INFO,
    format_string: str | None = None,
    add_secret_filter: bool = True,
) -> None:
    """Configure the root logger for CLI use.

    Args:
        level: Logging level (e.g. ``logging.DEBUG`` for ``--verbose``).
        format_string: Custom format string. If None, uses default format.
        add_secret_filter: Whether to attach ``SecretFilter`` to the handler.
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(format_string))

    if add_secret_filter:
        handler.addFilter(SecretFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for existing_handler in root_logger.handlers[:]:
        root_logger.removeHandler(existing_handler)

    root_logger.addHandler(handler)

    # httpx logs every request at INFO; keep that behind --verbose.
    logging.getLogger("httpx").setLevel(
        logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    )
