"""API client for the remote build engine."""

from __future__ import annotations

import logging
import random
import time
from typing import TYPE_CHECKING, Any

import httpx

from .exceptions import (
    AuthenticationError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    ProtocolError,
    RateLimitError,
    TransportError,
)
from .models import BindStartResponse, ProjectIdentity
from .utils import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TIMEOUT,
    normalize_base_url,
)

if TYPE_CHECKING:
    from .sync.envelope import TransferEnvelope

logger = logging.getLogger(__name__)


class BuildEngineClient:
    """Client for the project endpoints of a remote build engine."""

    def __init__(
        self,
        api_url: str,
        token: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
        verify: bool = True,
        transport: httpx.BaseTransport | None = None,
        http_client: httpx.Client | None = None,
    ):
        """Initialize the client.

        Args:
            api_url: Base URL of the remote engine API
            token: Optional bearer token
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
            verify: Whether to verify TLS certificates
            transport: Optional httpx transport (e.g. ``httpx.MockTransport``)
            http_client: Optional ready-made httpx client; takes precedence
                over ``transport``, ``token``, ``timeout`` and ``verify``
        """
        if not api_url:
            raise ValueError("The remote engine URL must not be empty")

        self.api_url = normalize_base_url(api_url)
        self.token = token
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.verify = verify
        self._transport = transport
        self._client: httpx.Client | None = http_client

    def __enter__(self) -> BuildEngineClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.Client(
                headers=headers,
                timeout=httpx.Timeout(self.timeout),
                verify=self.verify,
                transport=self._transport,
                follow_redirects=True,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Exponential backoff with +/- 25% jitter."""
        base_delay = self.retry_delay * (2**attempt)
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _error_for_status(self, response: httpx.Response) -> TransportError:
        status_code = response.status_code

        if status_code == 401:
            return AuthenticationError(
                "Missing or invalid access token", status_code=status_code
            )
        if status_code == 403:
            return PermissionDeniedError(
                "Access forbidden - check your permissions", status_code=status_code
            )
        if status_code == 404:
            return NotFoundError(
                f"Not found: {response.request.url}", status_code=status_code
            )
        if status_code == 429:
            return RateLimitError(
                "Rate limit exceeded - please try again later", status_code=status_code
            )

        error_msg = f"Request failed with status {status_code}"
        # Try to extract more details from the response body
        try:
            if response.content:
                error_data = response.json()
                if isinstance(error_data, dict):
                    msg = (
                        error_data.get("message")
                        or error_data.get("error")
                        or error_data.get("detail")
                    )
                    if msg:
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            pass
        return TransportError(error_msg, status_code=status_code)

    def _should_retry(self, error: TransportError, attempt: int) -> bool:
        if attempt >= self.max_retries:
            return False
        if isinstance(error, (NetworkError, RateLimitError)):
            return True
        return error.status_code is not None and 500 <= error.status_code < 600

    def _retry_delay_for(
        self, error: TransportError, response: httpx.Response | None, attempt: int
    ) -> float:
        if isinstance(error, RateLimitError) and response is not None:
            retry_after = response.headers.get("Retry-After")
            if retry_after and retry_after.isdigit():
                return float(retry_after)
        return self._calculate_retry_delay(attempt)

    def _request(
        self,
        method: str,
        endpoint: str,
        parse_response: bool = False,
        **kwargs: Any,
    ) -> Any:
        """Make an API request with retry logic.

        Args:
            method: HTTP method
            endpoint: API endpoint path, relative to the base URL
            parse_response: Parse the body as JSON. Calls that only need an
                acknowledgement leave this off and ignore the body.
            **kwargs: Additional arguments passed to httpx

        Returns:
            Parsed JSON body (``{}`` for an empty body), or None when
            ``parse_response`` is off

        Raises:
            TransportError: If the request fails after all retries
            ProtocolError: If a body that must be parsed is not JSON
        """
        url = f"{self.api_url}{endpoint.lstrip('/')}"
        client = self._get_client()

        for attempt in range(self.max_retries + 1):
            response: httpx.Response | None = None
            try:
                response = client.request(method, url, **kwargs)
            except httpx.RequestError as e:
                error: TransportError = NetworkError(f"Network error: {e}")
                if not self._should_retry(error, attempt):
                    raise error from e
            else:
                if response.is_success:
                    if not parse_response:
                        return None
                    return self._parse_body(response)
                error = self._error_for_status(response)
                if not self._should_retry(error, attempt):
                    raise error

            delay = self._retry_delay_for(error, response, attempt)
            logger.debug(f"{method} {url} failed ({error}), retrying in {delay:.1f}s")
            time.sleep(delay)

        raise TransportError(f"{method} {url} failed after all retry attempts")

    def _parse_body(self, response: httpx.Response) -> Any:
        if not response.content:
            return {}

        content_type = response.headers.get("Content-Type", "")
        if "application/json" not in content_type:
            # Acknowledgements may come back as plain text
            logger.debug(f"Non-JSON response ({content_type}): {response.text[:200]}")
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise ProtocolError("Invalid JSON response from the remote engine") from e

    # =========================
    # Bind Operations
    # =========================

    def begin_bind(self, identity: ProjectIdentity) -> BindStartResponse:
        """Register a project and open its bind.

        Raises:
            ProtocolError: If the response carries no project ID
        """
        data = self._request(
            "POST",
            "projects/remote-bind/start",
            parse_response=True,
            json=identity.to_bind_request(),
        )
        return BindStartResponse.from_dict(data)

    def upload_bind_file(self, project_id: str, envelope: TransferEnvelope) -> None:
        """Upload one file of a bind."""
        self._request(
            "PUT", f"projects/{project_id}/remote-bind/upload", json=envelope.to_dict()
        )

    def end_bind(self, project_id: str) -> None:
        """Close a bind so the remote engine starts building."""
        self._request(
            "POST", f"projects/{project_id}/remote-bind/end", json={"id": project_id}
        )

    # =========================
    # Sync Operations
    # =========================

    def upload_sync_file(self, project_id: str, envelope: TransferEnvelope) -> None:
        """Upload one changed file of an incremental sync."""
        self._request("PUT", f"projects/{project_id}/upload", json=envelope.to_dict())

    def end_sync(
        self,
        project_id: str,
        file_list: list[str],
        modified_list: list[str],
        timestamp: int,
    ) -> None:
        """Close an incremental sync.

        Args:
            project_id: Project being synced
            file_list: Every path in the project
            modified_list: Paths uploaded in this sync
            timestamp: Cursor the remote engine records, in ms since epoch
        """
        self._request(
            "POST",
            f"projects/{project_id}/upload/end",
            json={
                "fileList": file_list,
                "modifiedList": modified_list,
                "timeStamp": timestamp,
            },
        )
