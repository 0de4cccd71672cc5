"""Exceptions raised by pybuildsync."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .sync.engine import SyncResult
    from .sync.session import SyncSession


class BuildSyncError(Exception):
    """Base exception for all pybuildsync errors."""


class ConfigError(BuildSyncError):
    """Configuration or connection profile problem."""


class RootPathError(BuildSyncError):
    """The project root is missing, not a directory or unreadable."""

    def __init__(self, path: Any, message: str):
        super().__init__(f"{message}: {path}")
        self.path = path


class FilesystemReadError(BuildSyncError):
    """A single file under the project root could not be read."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot read {path}: {reason}")
        self.path = path
        self.reason = reason


class EncodingError(BuildSyncError):
    """File content could not be encoded or decoded for transport."""


class ContentDecodeError(EncodingError):
    """Decoding failed at a specific step of the content codec.

    ``step`` is one of ``"base64"``, ``"decompress"`` or ``"json"``.
    """

    def __init__(self, step: str, message: str):
        super().__init__(f"{step}: {message}")
        self.step = step


class TransportError(BuildSyncError):
    """Network failure or non-success response from the remote engine."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NetworkError(TransportError):
    """The remote engine could not be reached."""


class AuthenticationError(TransportError):
    """The remote engine rejected our credentials."""


class PermissionDeniedError(TransportError):
    """The remote engine refused access to the resource."""


class NotFoundError(TransportError):
    """The requested project or endpoint does not exist."""


class RateLimitError(TransportError):
    """Too many requests."""


class CompletionError(TransportError):
    """The end-of-transfer call failed after every upload was acknowledged.

    The session is kept so the end call can be retried on its own with
    :meth:`SyncSession.retry_complete` without walking or uploading again.
    ``result`` is what the run returns once the end call goes through.
    """

    def __init__(
        self,
        message: str,
        session: SyncSession,
        cause: TransportError,
        result: SyncResult,
    ):
        super().__init__(message, status_code=cause.status_code)
        self.session = session
        self.cause = cause
        self.result = result


class ProtocolError(BuildSyncError):
    """The remote engine answered with a body we cannot interpret."""


class InvalidSessionStateError(BuildSyncError):
    """A session operation was attempted from the wrong phase."""
