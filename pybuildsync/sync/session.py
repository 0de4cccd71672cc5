"""Three-phase transfer handshake with the remote engine.

A session is begun, receives zero or more file uploads and is completed:

    UNBOUND -> STARTED -> TRANSFERRING -> COMPLETED

Any transport or protocol failure moves it to FAILED. The only call allowed
from FAILED is :meth:`SyncSession.retry_complete`, and only when the failure
happened in the end call; uploads already acknowledged are not repeated.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional

from ..exceptions import (
    BuildSyncError,
    InvalidSessionStateError,
    ProtocolError,
    TransportError,
)
from ..models import ProjectIdentity
from .envelope import TransferEnvelope

if TYPE_CHECKING:
    from ..api import BuildEngineClient

logger = logging.getLogger(__name__)


class SessionMode(str, Enum):
    """Kind of transfer a session performs."""

    BIND = "bind"
    """First transfer of a project unknown to the remote engine"""

    SYNC = "sync"
    """Incremental transfer of an already bound project"""


class SessionPhase(str, Enum):
    UNBOUND = "unbound"
    STARTED = "started"
    TRANSFERRING = "transferring"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncSession:
    """One synchronization run against the remote engine.

    A session is owned by a single run and is not safe to share between
    concurrent runs for the same project.
    """

    def __init__(
        self,
        client: BuildEngineClient,
        mode: SessionMode,
        project_id: Optional[str] = None,
    ):
        """Initialize a session.

        Args:
            client: Transport to the remote engine
            mode: BIND or SYNC
            project_id: Existing project ID; required for SYNC, assigned by
                the remote engine for BIND
        """
        if mode is SessionMode.SYNC and not project_id:
            raise ValueError("An incremental sync needs an existing project ID")
        if mode is SessionMode.BIND and project_id:
            raise ValueError("A bind receives its project ID from the remote engine")

        self.client = client
        self.mode = mode
        self.project_id = project_id
        self.phase = SessionPhase.UNBOUND
        self.error: Optional[BuildSyncError] = None
        self.failed_operation: Optional[str] = None
        self.uploaded: list[str] = []
        self.skipped: dict[str, str] = {}
        self.transferred: list[str] = []
        self._completion: Optional[tuple[list[str], list[str], int]] = None

    def _require(self, operation: str, *phases: SessionPhase) -> None:
        if self.phase not in phases:
            allowed = ", ".join(p.value for p in phases)
            raise InvalidSessionStateError(
                f"Cannot {operation} in phase '{self.phase.value}' "
                f"(allowed: {allowed})"
            )

    def _require_project_id(self) -> str:
        if not self.project_id:
            raise InvalidSessionStateError(
                f"Session in phase '{self.phase.value}' has no project ID"
            )
        return self.project_id

    def _fail(self, operation: str, error: BuildSyncError) -> None:
        logger.error(f"Session {operation} failed: {error}")
        self.phase = SessionPhase.FAILED
        self.error = error
        self.failed_operation = operation

    def begin(self, identity: Optional[ProjectIdentity] = None) -> str:
        """Start the session.

        For a bind this sends the project identity and stores the project ID
        the remote engine allocates. For a sync no call is made.

        Returns:
            The project ID
        """
        self._require("begin", SessionPhase.UNBOUND)

        if self.mode is SessionMode.BIND:
            if identity is None:
                raise ValueError("A bind needs the project identity")
            try:
                response = self.client.begin_bind(identity)
            except (TransportError, ProtocolError) as e:
                self._fail("begin", e)
                raise
            self.project_id = response.project_id
            logger.info(f"Bind started for '{identity.name}' as {self.project_id}")

        project_id = self._require_project_id()
        self.phase = SessionPhase.STARTED
        return project_id

    def upload(self, envelope: TransferEnvelope) -> None:
        """Send one envelope and wait for the acknowledgement."""
        self._require("upload", SessionPhase.STARTED, SessionPhase.TRANSFERRING)
        project_id = self._require_project_id()
        self.phase = SessionPhase.TRANSFERRING

        try:
            if self.mode is SessionMode.BIND:
                self.client.upload_bind_file(project_id, envelope)
            else:
                self.client.upload_sync_file(project_id, envelope)
        except (TransportError, ProtocolError) as e:
            self._fail("upload", e)
            raise

        self.uploaded.append(envelope.relative_path)
        logger.debug(f"Uploaded {envelope.relative_path}")

    def record_skip(self, relative_path: str, reason: str) -> None:
        """Record that a modified file will not be uploaded."""
        self._require(
            "record a skip", SessionPhase.STARTED, SessionPhase.TRANSFERRING
        )
        self.skipped[relative_path] = reason

    def complete(
        self, all_files: list[str], modified_files: list[str], timestamp: int
    ) -> list[str]:
        """Finish the session.

        Every path in ``modified_files`` must have been uploaded or recorded
        as skipped. Skipped paths are left out of the modified list sent to
        the remote engine.

        Args:
            all_files: Every path in the project
            modified_files: Paths the change set marked as modified
            timestamp: Cursor value the remote engine records (sync only)

        Returns:
            The modified paths that were actually transferred
        """
        self._require("complete", SessionPhase.STARTED, SessionPhase.TRANSFERRING)

        uploaded = set(self.uploaded)
        pending = [
            p for p in modified_files if p not in uploaded and p not in self.skipped
        ]
        if pending:
            raise InvalidSessionStateError(
                f"Cannot complete with {len(pending)} modified file(s) neither "
                f"uploaded nor skipped, first: {pending[0]}"
            )

        transferred = [p for p in modified_files if p in uploaded]
        self.transferred = transferred
        self._completion = (list(all_files), transferred, timestamp)
        self._send_completion()
        return transferred

    def retry_complete(self) -> None:
        """Resend the end call after it failed."""
        if (
            self.phase is not SessionPhase.FAILED
            or self.failed_operation != "complete"
        ):
            raise InvalidSessionStateError(
                "Only a session whose end call failed can retry completion"
            )
        self._send_completion()

    def _send_completion(self) -> None:
        project_id = self._require_project_id()
        if self._completion is None:
            raise InvalidSessionStateError("No end call has been prepared")
        all_files, transferred, timestamp = self._completion

        try:
            if self.mode is SessionMode.BIND:
                self.client.end_bind(project_id)
            else:
                self.client.end_sync(project_id, all_files, transferred, timestamp)
        except (TransportError, ProtocolError) as e:
            self._fail("complete", e)
            raise

        self.phase = SessionPhase.COMPLETED
        self.error = None
        self.failed_operation = None
        logger.info(
            f"{self.mode.value} of {self.project_id} completed: "
            f"{len(transferred)}/{len(all_files)} file(s) transferred"
        )
