"""Transport encoding of file content.

Content travels inside a JSON envelope, so it is first written as a JSON
string literal, then zlib-compressed, then base64-encoded. Decoding runs
the steps backwards and reports which one rejected the input.

Raw bytes that are not valid UTF-8 are carried through the JSON step as
lone surrogate escapes (``surrogateescape``), so any byte sequence
survives a round trip.
"""

import base64
import binascii
import json
import logging
import zlib
from pathlib import Path

from ..exceptions import ContentDecodeError, EncodingError, FilesystemReadError

logger = logging.getLogger(__name__)

_TEXT_ERRORS = "surrogateescape"


def encode_content(raw: bytes) -> str:
    """Encode raw file bytes into a transport-safe string.

    Examples:
        >>> decode_content(encode_content(b"hello"))
        b'hello'
    """
    try:
        as_json = json.dumps(raw.decode("utf-8", _TEXT_ERRORS))
        compressed = zlib.compress(as_json.encode("ascii"))
    except (UnicodeError, zlib.error) as e:
        raise EncodingError(f"Cannot encode content: {e}") from e
    return base64.b64encode(compressed).decode("ascii")


def decode_content(encoded: str) -> bytes:
    """Reverse :func:`encode_content`.

    Raises:
        ContentDecodeError: With ``step`` set to ``"base64"``,
            ``"decompress"`` or ``"json"``
    """
    try:
        compressed = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ContentDecodeError("base64", str(e)) from e

    try:
        as_json = zlib.decompress(compressed)
    except zlib.error as e:
        raise ContentDecodeError("decompress", str(e)) from e

    try:
        text = json.loads(as_json)
    except (ValueError, UnicodeDecodeError) as e:
        raise ContentDecodeError("json", str(e)) from e
    if not isinstance(text, str):
        raise ContentDecodeError(
            "json", f"expected a JSON string, got {type(text).__name__}"
        )

    try:
        return text.encode("utf-8", _TEXT_ERRORS)
    except UnicodeEncodeError as e:
        raise ContentDecodeError("json", str(e)) from e


def encode_file(path: Path, relative_path: str) -> str:
    """Read and encode one file.

    Raises:
        FilesystemReadError: If the file cannot be read
        EncodingError: If the content cannot be encoded
    """
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise FilesystemReadError(relative_path, e.strerror or str(e)) from e
    encoded = encode_content(raw)
    logger.debug(f"Encoded {relative_path}: {len(raw)} -> {len(encoded)} bytes")
    return encoded
