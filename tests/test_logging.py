# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for s3vectors/logging.py."""

import logging
from collections.abc import Iterator

import pytest

from s3vectors.logging import REDACTED, SecretFilter, configure_logging


def _record(msg: str, *args: object) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=args,
        exc_info=None,
    )


@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    httpx_level = logging.getLogger("httpx").level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("httpx").setLevel(httpx_level)


class TestSecretFilter:
    def test_redacts_message(self) -> None:
        SecretFilter.register_secret("hunter2")
        record = _record("password is hunter2")

        assert SecretFilter().filter(record) is True
        assert record.msg == f"password is {REDACTED}"

    def test_redacts_string_args(self) -> None:
        SecretFilter.register_secret("hunter2")
        record = _record("secret=%s count=%d", "hunter2", 3)

        SecretFilter().filter(record)

        assert record.args == (REDACTED, 3)
        assert record.getMessage() == f"secret={REDACTED} count=3"

    def test_longest_secret_redacted_whole(self) -> None:
        SecretFilter.register_secret("abc")
        SecretFilter.register_secret("abcdef")
        record = _record("value abcdef")

        SecretFilter().filter(record)

        assert record.msg == f"value {REDACTED}"

    def test_empty_and_none_ignored(self) -> None:
        SecretFilter.register_secret("")
        SecretFilter.register_secret(None)
        record = _record("nothing to hide")

        SecretFilter().filter(record)

        assert record.msg == "nothing to hide"

    def test_clear(self) -> None:
        SecretFilter.register_secret("hunter2")
        SecretFilter.clear_secrets()
        record = _record("hunter2")
        SecretFilter().filter(record)
        assert record.msg == "hunter2"

    def test_regex_characters_escaped(self) -> None:
        SecretFilter.register_secret("a+b/c")
        record = _record("key a+b/c aab/c")
        SecretFilter().filter(record)
        assert record.msg == f"key {REDACTED} aab/c"


@pytest.mark.usefixtures("restore_root_logger")
class TestConfigureLogging:
    def test_replaces_handlers(self) -> None:
        configure_logging(level=logging.DEBUG)
        configure_logging(level=logging.INFO)

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.INFO
        assert any(
            isinstance(f, SecretFilter) for f in root.handlers[0].filters
        )

    def test_without_secret_filter(self) -> None:
        configure_logging(add_secret_filter=False)
        assert logging.getLogger().handlers[0].filters == []

    def test_httpx_quiet_unless_debug(self) -> None:
        configure_logging(level=logging.INFO)
        assert logging.getLogger("httpx").level == logging.WARNING

        configure_logging(level=logging.DEBUG)
        assert logging.getLogger("httpx").level == logging.DEBUG
