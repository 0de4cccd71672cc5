"""pybuildsync - bind and sync local projects with a remote build engine."""

from .api import BuildEngineClient
from .exceptions import (
    AuthenticationError,
    BuildSyncError,
    CompletionError,
    ConfigError,
    ContentDecodeError,
    EncodingError,
    FilesystemReadError,
    InvalidSessionStateError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    ProtocolError,
    RateLimitError,
    RootPathError,
    TransportError,
)
from .models import ProjectIdentity
from .sync import SyncEngine, SyncResult, decode_content, encode_content

__all__ = [
    "BuildEngineClient",
    "ProjectIdentity",
    "SyncEngine",
    "SyncResult",
    "encode_content",
    "decode_content",
    "BuildSyncError",
    "AuthenticationError",
    "CompletionError",
    "ConfigError",
    "ContentDecodeError",
    "EncodingError",
    "FilesystemReadError",
    "InvalidSessionStateError",
    "NetworkError",
    "NotFoundError",
    "PermissionDeniedError",
    "ProtocolError",
    "RateLimitError",
    "RootPathError",
    "TransportError",
]
