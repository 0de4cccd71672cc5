"""Unit tests for the remote engine API client."""

from pathlib import Path

import httpx
import pytest

from pybuildsync.api import BuildEngineClient
from pybuildsync.exceptions import (
    AuthenticationError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    ProtocolError,
    TransportError,
)
from pybuildsync.models import ProjectIdentity
from pybuildsync.sync.envelope import TransferEnvelope

API_URL = "http://engine.test/api/v1"


def _client(handler, **kwargs) -> BuildEngineClient:
    kwargs.setdefault("retry_delay", 0)
    return BuildEngineClient(API_URL, transport=httpx.MockTransport(handler), **kwargs)


@pytest.fixture
def identity():
    return ProjectIdentity(
        name="myapp",
        language="java",
        build_type="liberty",
        local_path=Path("/home/dev/myapp"),
    )


class TestBuildEngineClient:
    """Tests for client initialization."""

    def test_base_url_normalized(self):
        client = BuildEngineClient("http://engine.test/api/v1")
        assert client.api_url == "http://engine.test/api/v1/"

    def test_empty_url_rejected(self):
        with pytest.raises(ValueError):
            BuildEngineClient("")

    def test_bearer_token_sent(self):
        """The token is sent as a bearer Authorization header."""
        seen = []

        def handler(request):
            seen.append(request.headers.get("Authorization"))
            return httpx.Response(200)

        _client(handler, token="secret").end_bind("p1")

        assert seen == ["Bearer secret"]

    def test_no_token_no_header(self):
        seen = []

        def handler(request):
            seen.append(request.headers.get("Authorization"))
            return httpx.Response(200)

        _client(handler).end_bind("p1")

        assert seen == [None]

    def test_context_manager_closes(self):
        with _client(lambda request: httpx.Response(200)) as client:
            client.end_bind("p1")
            http_client = client._client
        assert http_client is not None and http_client.is_closed


class TestWireCalls:
    """Each call hits the documented method, path and body."""

    def test_begin_bind(self, fake_engine, client, identity):
        response = client.begin_bind(identity)

        assert response.project_id == "proj-1"
        assert fake_engine.calls == [("POST", "/projects/remote-bind/start")]
        assert fake_engine.requests[0][2] == {
            "language": "java",
            "projectType": "liberty",
            "name": "myapp",
            "path": "/home/dev/myapp",
        }

    def test_upload_bind_file(self, fake_engine, client):
        envelope = TransferEnvelope(relative_path="src/a.js", encoded_content="eJw=")

        client.upload_bind_file("p1", envelope)

        assert fake_engine.calls == [("PUT", "/projects/p1/remote-bind/upload")]
        assert fake_engine.requests[0][2] == {
            "isDirectory": False,
            "path": "src/a.js",
            "msg": "eJw=",
        }

    def test_end_bind(self, fake_engine, client):
        client.end_bind("p1")

        assert fake_engine.calls == [("POST", "/projects/p1/remote-bind/end")]
        assert fake_engine.requests[0][2] == {"id": "p1"}

    def test_upload_sync_file(self, fake_engine, client):
        client.upload_sync_file("p1", TransferEnvelope(relative_path="a"))

        assert fake_engine.calls == [("PUT", "/projects/p1/upload")]
        assert fake_engine.requests[0][2]["msg"] == ""

    def test_end_sync(self, fake_engine, client):
        client.end_sync("p1", ["a", "b"], ["b"], 1_700_000_000_000)

        assert fake_engine.calls == [("POST", "/projects/p1/upload/end")]
        assert fake_engine.requests[0][2] == {
            "fileList": ["a", "b"],
            "modifiedList": ["b"],
            "timeStamp": 1_700_000_000_000,
        }


class TestResponses:
    """Tests for response parsing."""

    def test_bind_start_without_project_id(self, identity):
        client = _client(lambda request: httpx.Response(202, json={"status": "ok"}))
        with pytest.raises(ProtocolError, match="projectID"):
            client.begin_bind(identity)

    def test_bind_start_plain_text(self, identity):
        client = _client(lambda request: httpx.Response(202, text="Accepted"))
        with pytest.raises(ProtocolError):
            client.begin_bind(identity)

    def test_invalid_json_body(self, identity):
        client = _client(
            lambda request: httpx.Response(
                202,
                content=b"{not json",
                headers={"Content-Type": "application/json"},
            )
        )
        with pytest.raises(ProtocolError, match="Invalid JSON"):
            client.begin_bind(identity)

    def test_bind_start_not_an_object(self, identity):
        client = _client(lambda request: httpx.Response(202, json=["proj-1"]))
        with pytest.raises(ProtocolError, match="JSON object"):
            client.begin_bind(identity)

    def test_plain_text_acknowledgement(self):
        """Upload calls only need a success status."""
        client = _client(lambda request: httpx.Response(200, text="OK"))
        client.upload_sync_file("p1", TransferEnvelope(relative_path="a"))

    def test_broken_json_acknowledgement_ignored(self):
        """A success status with a malformed JSON body still counts for
        uploads and end calls."""
        client = _client(
            lambda request: httpx.Response(
                200,
                content=b"{not json",
                headers={"Content-Type": "application/json"},
            )
        )

        client.upload_bind_file("p1", TransferEnvelope(relative_path="a"))
        client.end_bind("p1")
        client.upload_sync_file("p1", TransferEnvelope(relative_path="a"))
        client.end_sync("p1", ["a"], ["a"], 5)


class TestErrors:
    """Tests for status handling and retries."""

    @pytest.mark.parametrize(
        "status_code, error_class",
        [
            (401, AuthenticationError),
            (403, PermissionDeniedError),
            (404, NotFoundError),
            (400, TransportError),
        ],
    )
    def test_client_errors_not_retried(
        self, fake_engine, client, status_code, error_class
    ):
        fake_engine.fail_next("/upload/end", status_code, times=5)

        with pytest.raises(error_class) as exc_info:
            client.end_sync("p1", [], [], 0)

        assert exc_info.value.status_code == status_code
        assert len(fake_engine.requests) == 1

    def test_error_message_from_body(self, fake_engine, client):
        fake_engine.fail_next("/upload/end", 400)
        with pytest.raises(TransportError, match="status 400: boom"):
            client.end_sync("p1", [], [], 0)

    def test_server_error_retried_then_succeeds(self, fake_engine, client):
        fake_engine.fail_next("/remote-bind/end", 503, times=2)

        client.end_bind("p1")

        assert len(fake_engine.requests) == 3

    def test_server_error_exhausts_retries(self, fake_engine, client):
        fake_engine.fail_next("/remote-bind/end", 500, times=10)

        with pytest.raises(TransportError) as exc_info:
            client.end_bind("p1")

        assert exc_info.value.status_code == 500
        assert len(fake_engine.requests) == client.max_retries + 1

    def test_rate_limit_retried(self):
        responses = [
            httpx.Response(429, headers={"Retry-After": "0"}),
            httpx.Response(200),
        ]
        client = _client(lambda request: responses.pop(0))

        client.end_bind("p1")

        assert responses == []

    def test_network_error(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler, max_retries=2)

        with pytest.raises(NetworkError, match="connection refused"):
            client.end_bind("p1")
        assert len(attempts) == 3
