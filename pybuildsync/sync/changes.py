"""Split walked files into "all" and "modified since the cursor"."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from .scanner import FileRecord

# Cursor value meaning "never synchronized": every file is transferred.
NO_CURSOR: int = 0


@dataclass
class ChangeSet:
    """Files of one sync run.

    ``modified_files`` is always a subset of ``all_files`` and both keep
    the order in which the records were walked.
    """

    all_files: list[str] = field(default_factory=list)
    modified_files: list[str] = field(default_factory=list)


def is_modified_since(record: FileRecord, cursor: int) -> bool:
    """Whether a file must be transferred for the given cursor.

    The comparison is strict: a file modified exactly at the cursor was
    covered by the previous run.
    """
    return cursor == NO_CURSOR or record.modified_at_millis > cursor


def compute_change_set(
    records: Iterable[FileRecord], cursor: int = NO_CURSOR
) -> ChangeSet:
    """Partition walked records by the sync cursor.

    Args:
        records: Records from :meth:`DirectoryScanner.walk`
        cursor: Milliseconds since epoch of the last successful sync, or 0

    Returns:
        ChangeSet with every path and the paths modified after ``cursor``

    Examples:
        >>> records = [FileRecord("a", 100), FileRecord("b", 300)]
        >>> compute_change_set(records, 200).modified_files
        ['b']
        >>> compute_change_set(records).modified_files
        ['a', 'b']
    """
    if cursor < 0:
        raise ValueError(f"Sync cursor cannot be negative: {cursor}")

    all_files: list[str] = []
    modified_files: list[str] = []
    for record in records:
        all_files.append(record.relative_path)
        if is_modified_since(record, cursor):
            modified_files.append(record.relative_path)
    return ChangeSet(all_files=all_files, modified_files=modified_files)
