"""Project synchronization: walk, diff, encode and transfer to the remote engine."""

from .changes import NO_CURSOR, ChangeSet, compute_change_set, is_modified_since
from .codec import decode_content, encode_content, encode_file
from .engine import SyncEngine, SyncResult
from .envelope import TransferEnvelope, build_envelope
from .scanner import DirectoryScanner, FileRecord, SkippedFile
from .session import SessionMode, SessionPhase, SyncSession

__all__ = [
    "SyncEngine",
    "SyncResult",
    "SyncSession",
    "SessionMode",
    "SessionPhase",
    "DirectoryScanner",
    "FileRecord",
    "SkippedFile",
    "ChangeSet",
    "NO_CURSOR",
    "compute_change_set",
    "is_modified_since",
    "TransferEnvelope",
    "build_envelope",
    "encode_content",
    "decode_content",
    "encode_file",
]
