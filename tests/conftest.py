# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared pytest fixtures used across multiple test modules."""

import json
from collections.abc import AsyncIterator, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import httpx
import pytest

from s3vectors.client import S3VectorsClient
from s3vectors.config import ClientConfig
from s3vectors.dotenv_loader import reset_dotenv_state
from s3vectors.logging import SecretFilter
from s3vectors.signing import Credentials


#: Fixed signing time used by the fake clock.
START_TIME = datetime(2025, 7, 15, 12, 30, 45, tzinfo=UTC)

_ENV_VARS = (
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_SESSION_TOKEN",
    "AWS_REGION",
    "AWS_DEFAULT_REGION",
    "AWS_PROFILE",
    "S3VECTORS_ENDPOINT_URL",
    "NO_COLOR",
)


def reply(
    status: int = 200,
    body: Any = None,
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    """Build a canned service response with an optional JSON body."""
    if body is None:
        return httpx.Response(status, headers=headers)
    return httpx.Response(status, json=body, headers=headers)


class FakeService:
    """Scripted S3 Vectors endpoint for ``httpx.MockTransport``.

    Each request pops the next queued item: an ``httpx.Response`` is
    returned, an exception is raised from the transport.
    """

    def __init__(self, *items: httpx.Response | Exception) -> None:
        self._queue: list[httpx.Response | Exception] = list(items)
        self.requests: list[httpx.Request] = []

    def add(self, *items: httpx.Response | Exception) -> None:
        self._queue.extend(items)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._queue:
            raise AssertionError(
                f"Unexpected request: {request.method} {request.url}"
            )
        item = self._queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def json(self, n: int = -1) -> Any:
        """Decoded JSON body of the n-th request."""
        return json.loads(self.requests[n].content)

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    @property
    def pending(self) -> int:
        return len(self._queue)

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


class Sleeper:
    """Records requested sleeps instead of sleeping."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class TickingClock:
    """Returns ``START_TIME`` advanced by one second per call."""

    def __init__(self, start: datetime = START_TIME) -> None:
        self._now = start

    def __call__(self) -> datetime:
        now = self._now
        self._now += timedelta(seconds=1)
        return now


@pytest.fixture(autouse=True)
def isolated_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Iterator[None]:
    """Keep tests away from the user's AWS setup and config files."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.setenv(
        "AWS_SHARED_CREDENTIALS_FILE", str(tmp_path / "aws" / "credentials")
    )
    monkeypatch.chdir(tmp_path)
    SecretFilter.clear_secrets()
    reset_dotenv_state()
    yield
    SecretFilter.clear_secrets()
    reset_dotenv_state()


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(
        access_key_id="AKIDEXAMPLE",
        secret_access_key="wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY",
        region="us-east-1",
    )


@pytest.fixture
def service() -> FakeService:
    return FakeService()


@pytest.fixture
def sleeper() -> Sleeper:
    return Sleeper()


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
async def client(
    service: FakeService,
    credentials: Credentials,
    sleeper: Sleeper,
    clock: TickingClock,
) -> AsyncIterator[S3VectorsClient]:
    """Client wired to ``service`` with instant backoff."""
    http = service.http_client()
    config = ClientConfig(region="us-east-1", credentials=credentials)
    async with S3VectorsClient(
        config, http_client=http, sleep=sleeper, clock=clock
    ) as c:
        yield c
    await http.aclose()
