"""Data models for requests to and responses from the remote engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from .exceptions import ProtocolError


@dataclass(frozen=True)
class ProjectType:
    """Language and build type the remote engine needs to build a project."""

    language: str
    build_type: str

    def to_dict(self) -> dict[str, str]:
        return {"language": self.language, "projectType": self.build_type}


@dataclass(frozen=True)
class ProjectIdentity:
    """Identity of a local project, validated before any sync runs."""

    name: str
    """Project name shown by the remote engine"""

    language: str
    """Project language (e.g. "java", "nodejs")"""

    build_type: str
    """Build type understood by the remote engine (e.g. "docker", "liberty")"""

    local_path: Path
    """Root directory of the project on this machine"""

    @property
    def project_type(self) -> ProjectType:
        return ProjectType(language=self.language, build_type=self.build_type)

    def to_bind_request(self) -> dict[str, str]:
        """Body of the bind start call."""
        return {
            **self.project_type.to_dict(),
            "name": self.name,
            "path": self.local_path.as_posix(),
        }


@dataclass
class BindStartResponse:
    """Response of the bind start call."""

    project_id: str
    raw: dict[str, Any]

    @classmethod
    def from_dict(cls, data: Any) -> BindStartResponse:
        """Parse the bind start response.

        Raises:
            ProtocolError: If the response carries no usable project ID
        """
        if not isinstance(data, dict):
            raise ProtocolError(
                f"Expected a JSON object from bind start, got {type(data).__name__}"
            )
        project_id = data.get("projectID")
        if not isinstance(project_id, str) or not project_id:
            raise ProtocolError("Bind start response is missing 'projectID'")
        return cls(project_id=project_id, raw=data)


class ValidationStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of checking a local project before it is bound.

    A successful result carries the ``project_type``; a failed one carries
    the ``message`` explaining why. Exactly one of the two is set.
    """

    status: ValidationStatus
    project_path: Path
    project_type: Optional[ProjectType] = None
    message: Optional[str] = None

    def __post_init__(self) -> None:
        if self.status is ValidationStatus.SUCCESS:
            if self.project_type is None or self.message is not None:
                raise ValueError("A successful validation carries a project type")
        elif self.message is None or self.project_type is not None:
            raise ValueError("A failed validation carries a message")

    @classmethod
    def success(
        cls, project_path: Path, project_type: ProjectType
    ) -> ValidationResult:
        return cls(ValidationStatus.SUCCESS, project_path, project_type=project_type)

    @classmethod
    def failure(cls, project_path: Path, message: str) -> ValidationResult:
        return cls(ValidationStatus.FAILED, project_path, message=message)

    @property
    def ok(self) -> bool:
        return self.status is ValidationStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        """``{status, projectPath, result}``, where result is the project
        type on success and the message on failure."""
        result: Any = (
            self.project_type.to_dict() if self.project_type else self.message
        )
        return {
            "status": self.status.value,
            "projectPath": self.project_path.as_posix(),
            "result": result,
        }


def validate_project(path: str, language: str, build_type: str) -> ValidationResult:
    """Check that a project can be bound with the given language and type.

    Examples:
        >>> validate_project("/tmp", "go", "docker").ok
        True
        >>> validate_project("/tmp", "go", " ").message
        'Project type must not be empty'
    """
    project_path = Path(path).expanduser()
    if not language.strip():
        return ValidationResult.failure(project_path, "Language must not be empty")
    if not build_type.strip():
        return ValidationResult.failure(
            project_path, "Project type must not be empty"
        )
    if not project_path.is_dir():
        return ValidationResult.failure(project_path, f"Not a directory: {path}")

    return ValidationResult.success(
        project_path.resolve(),
        ProjectType(language=language.strip(), build_type=build_type.strip()),
    )
