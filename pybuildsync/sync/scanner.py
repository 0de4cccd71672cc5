"""Directory walking for project synchronization."""

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..exceptions import FilesystemReadError, RootPathError
from ..utils import ns_to_millis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileRecord:
    """Metadata of one regular file found under the project root."""

    relative_path: str
    """Relative path (using forward slashes for cross-platform compatibility)"""

    modified_at_millis: int
    """Last modification time in milliseconds since epoch"""

    is_directory: bool = False
    """Always False for walked records; kept for envelope construction"""

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "FileRecord":
        """Create a FileRecord from a path.

        Args:
            file_path: Absolute path to the file
            base_path: Project root for calculating relative paths

        Returns:
            FileRecord instance
        """
        stat = file_path.stat()
        # Use as_posix() to ensure forward slashes on all platforms
        relative_path = file_path.relative_to(base_path).as_posix()
        return cls(
            relative_path=relative_path,
            modified_at_millis=ns_to_millis(stat.st_mtime_ns),
        )


@dataclass(frozen=True)
class SkippedFile:
    """A path left out of a sync run and why."""

    relative_path: str
    reason: str


@dataclass
class DirectoryScanner:
    """Walks a project tree and yields one FileRecord per regular file.

    Directories are descended into but never emitted. Symbolic links to
    directories are not followed, so the walk stays inside the root and
    always ends. Entries are visited in name order so two walks of an
    unchanged tree give the same sequence.
    Files or subdirectories that cannot be read are logged, recorded in
    ``skipped`` and left out; only a bad root aborts the walk.

    Examples:
        >>> scanner = DirectoryScanner()
        >>> paths = [r.relative_path for r in scanner.walk(Path("/my/project"))]
        >>> scanner.skipped
        []
    """

    skipped: list[SkippedFile] = field(default_factory=list)

    def walk(self, root: Path) -> Iterator[FileRecord]:
        """Lazily walk ``root``.

        The root is checked before the first record is produced, so a
        missing root raises on the first ``next()``.

        Raises:
            RootPathError: If the root does not exist, is not a directory,
                or cannot be listed
        """
        if not root.exists():
            raise RootPathError(root, "Project path does not exist")
        if not root.is_dir():
            raise RootPathError(root, "Project path is not a directory")
        try:
            entries = self._list_dir(root)
        except OSError as e:
            raise RootPathError(root, f"Cannot read project path ({e})") from e

        self.skipped = []
        yield from self._walk_entries(entries, root)

    def _list_dir(self, directory: Path) -> list[os.DirEntry]:
        with os.scandir(directory) as it:
            return sorted(it, key=lambda entry: entry.name)

    def _walk_entries(
        self, entries: list[os.DirEntry], root: Path
    ) -> Iterator[FileRecord]:
        for entry in entries:
            path = Path(entry.path)
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_link = entry.is_symlink()
            except OSError as e:
                self._skip(path, root, e)
                continue

            if is_dir:
                try:
                    children = self._list_dir(path)
                except OSError as e:
                    self._skip(path, root, e)
                    continue
                yield from self._walk_entries(children, root)
                continue

            if is_link and path.is_dir():
                logger.debug(f"Not following directory symlink: {path}")
                continue

            record = self._record_for(path, root)
            if record is not None:
                yield record

    def _record_for(self, path: Path, root: Path) -> Optional[FileRecord]:
        try:
            if not path.is_file():
                # Sockets, fifos, dangling symlinks
                logger.debug(f"Skipping non-regular file: {path}")
                return None
            return FileRecord.from_path(path, root)
        except OSError as e:
            self._skip(path, root, e)
            return None

    def _skip(self, path: Path, root: Path, error: OSError) -> None:
        relative_path = path.relative_to(root).as_posix()
        err = FilesystemReadError(relative_path, error.strerror or str(error))
        logger.warning(str(err))
        self.skipped.append(SkippedFile(relative_path, err.reason))
