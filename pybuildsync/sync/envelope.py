"""Per-file unit of transfer."""

from dataclasses import dataclass
from pathlib import Path

from .codec import encode_file
from .scanner import FileRecord


@dataclass(frozen=True)
class TransferEnvelope:
    """One file (or directory) sent to the remote engine in a single upload."""

    relative_path: str
    is_directory: bool = False
    encoded_content: str = ""
    """Codec output; empty for directories"""

    def to_dict(self) -> dict:
        """Wire representation of the envelope."""
        return {
            "isDirectory": self.is_directory,
            "path": self.relative_path,
            "msg": self.encoded_content,
        }


def build_envelope(record: FileRecord, root: Path) -> TransferEnvelope:
    """Read, encode and wrap the file behind ``record``.

    Raises:
        FilesystemReadError: If the file cannot be read
        EncodingError: If the content cannot be encoded
    """
    if record.is_directory:
        return TransferEnvelope(relative_path=record.relative_path, is_directory=True)
    return TransferEnvelope(
        relative_path=record.relative_path,
        encoded_content=encode_file(root / record.relative_path, record.relative_path),
    )
