"""Shared fixtures: an in-memory remote engine behind httpx.MockTransport."""

import json
import os
from pathlib import Path

import httpx
import pytest

from pybuildsync.api import BuildEngineClient

API_URL = "http://engine.test/api/v1"


class FakeRemoteEngine:
    """Records every request and answers like a remote build engine."""

    def __init__(self, project_id: str = "proj-1"):
        self.project_id = project_id
        self.requests: list[tuple[str, str, object]] = []
        self._failures: dict[str, list[int]] = {}

    def fail_next(self, path_suffix: str, status_code: int, times: int = 1) -> None:
        """Fail the next ``times`` requests whose path ends in ``path_suffix``."""
        self._failures.setdefault(path_suffix, []).extend([status_code] * times)

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        path = request.url.path
        self.requests.append((request.method, path, body))

        for suffix, statuses in self._failures.items():
            if path.endswith(suffix) and statuses:
                return httpx.Response(statuses.pop(0), json={"message": "boom"})

        if path.endswith("/projects/remote-bind/start"):
            return httpx.Response(
                202, json={"projectID": self.project_id, "name": body["name"]}
            )
        return httpx.Response(200)

    @property
    def calls(self) -> list[tuple[str, str]]:
        """(method, path relative to the API root) of every request."""
        prefix = httpx.URL(API_URL).path
        return [(m, p[len(prefix) :]) for m, p, _ in self.requests]

    def bodies(self, path_suffix: str) -> list[object]:
        return [b for _, p, b in self.requests if p.endswith(path_suffix)]


@pytest.fixture
def fake_engine():
    return FakeRemoteEngine()


@pytest.fixture
def client(fake_engine):
    """Client wired to the fake engine, with no delay between retries."""
    client = BuildEngineClient(
        API_URL,
        token="test-token",
        retry_delay=0,
        transport=httpx.MockTransport(fake_engine.handler),
    )
    yield client
    client.close()


def write_file(root: Path, relative_path: str, content: bytes, mtime_ms: int) -> Path:
    """Create a file with an exact modification time in milliseconds."""
    path = root / relative_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    ns = mtime_ms * 1_000_000
    os.utime(path, ns=(ns, ns))
    return path


@pytest.fixture
def make_file():
    return write_file
