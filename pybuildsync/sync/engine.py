"""Core sync engine: walk, diff, upload and complete one project transfer."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from ..api import BuildEngineClient
from ..exceptions import (
    CompletionError,
    EncodingError,
    FilesystemReadError,
    ProtocolError,
    TransportError,
)
from ..models import ProjectIdentity
from ..utils import current_millis
from .changes import NO_CURSOR, ChangeSet, compute_change_set
from .envelope import build_envelope
from .scanner import DirectoryScanner, FileRecord, SkippedFile
from .session import SessionMode, SyncSession

logger = logging.getLogger(__name__)

# Called after each modified file with (files_done, files_total, relative_path)
ProgressCallback = Callable[[int, int, str], None]


@dataclass
class SyncResult:
    """Outcome of a bind or sync run."""

    project_id: str
    all_files: list[str] = field(default_factory=list)
    modified_files: list[str] = field(default_factory=list)
    """Modified paths that were transferred (skipped files excluded)"""

    skipped: list[SkippedFile] = field(default_factory=list)
    """Paths left out of the run and why"""

    started_at: int = 0
    """Wall clock (ms since epoch) before the walk; the next run's cursor"""


class SyncEngine:
    """Drives one transfer of a local project to the remote engine.

    Examples:
        >>> engine = SyncEngine(BuildEngineClient("http://localhost:9090/api/v1"))
        >>> result = engine.run_bind(identity)
        >>> later = engine.run_sync(result.project_id, path, result.started_at)
    """

    def __init__(
        self,
        client: BuildEngineClient,
        scanner: Optional[DirectoryScanner] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """Initialize sync engine.

        Args:
            client: Remote engine client
            scanner: Directory scanner (a fresh one by default)
            progress_callback: Optional callback for per-file progress
        """
        self.client = client
        self.scanner = scanner or DirectoryScanner()
        self.progress_callback = progress_callback

    def run_bind(self, identity: ProjectIdentity) -> SyncResult:
        """Register a project with the remote engine and transfer every file.

        Raises:
            RootPathError: If the project path cannot be walked
            TransportError: If the start call or an upload fails
            CompletionError: If only the end call failed
            ProtocolError: If the remote engine answers with an unusable body
        """
        session = SyncSession(self.client, SessionMode.BIND)
        return self._run(session, identity.local_path, NO_CURSOR, identity)

    def run_sync(self, project_id: str, path: Path, cursor: int) -> SyncResult:
        """Transfer files changed since ``cursor`` for a bound project.

        The end call carries ``cursor`` unchanged; persist
        :attr:`SyncResult.started_at` as the next cursor.

        Raises:
            RootPathError: If the project path cannot be walked
            TransportError: If an upload fails
            CompletionError: If only the end call failed
        """
        session = SyncSession(self.client, SessionMode.SYNC, project_id=project_id)
        return self._run(session, path, cursor, None)

    def _run(
        self,
        session: SyncSession,
        root: Path,
        cursor: int,
        identity: Optional[ProjectIdentity],
    ) -> SyncResult:
        started_at = current_millis()

        # Step 1: Walk the tree; a bad root fails before any network call
        records = list(self.scanner.walk(root))
        skipped = list(self.scanner.skipped)
        by_path = {record.relative_path: record for record in records}

        # Step 2: Compute the change set
        changes = compute_change_set(records, cursor)
        logger.info(
            f"{session.mode.value}: {len(changes.modified_files)} of "
            f"{len(changes.all_files)} file(s) to transfer (cursor={cursor})"
        )

        # Step 3: Handshake and uploads
        project_id = session.begin(identity)
        self._upload_modified(session, root, changes, by_path, skipped)

        # Step 4: Complete
        result = SyncResult(
            project_id=project_id,
            all_files=changes.all_files,
            skipped=skipped,
            started_at=started_at,
        )
        try:
            result.modified_files = session.complete(
                changes.all_files, changes.modified_files, cursor
            )
        except (TransportError, ProtocolError) as e:
            result.modified_files = session.transferred
            cause = e if isinstance(e, TransportError) else TransportError(str(e))
            raise CompletionError(
                f"Files were transferred but the end call for {project_id} "
                f"failed: {e}",
                session=session,
                cause=cause,
                result=result,
            ) from e
        return result

    def _upload_modified(
        self,
        session: SyncSession,
        root: Path,
        changes: ChangeSet,
        by_path: dict[str, FileRecord],
        skipped: list[SkippedFile],
    ) -> None:
        total = len(changes.modified_files)
        for done, relative_path in enumerate(changes.modified_files, start=1):
            try:
                envelope = build_envelope(by_path[relative_path], root)
            except FilesystemReadError as e:
                self._skip(session, skipped, relative_path, e.reason)
            except EncodingError as e:
                self._skip(session, skipped, relative_path, str(e))
            else:
                session.upload(envelope)

            if self.progress_callback:
                self.progress_callback(done, total, relative_path)

    def _skip(
        self,
        session: SyncSession,
        skipped: list[SkippedFile],
        relative_path: str,
        reason: str,
    ) -> None:
        logger.warning(f"Skipping {relative_path}: {reason}")
        session.record_skip(relative_path, reason)
        skipped.append(SkippedFile(relative_path, reason))
