from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from zz.constants import SESSION_PREFIX


class RepoId(BaseModel):
    """Repository identifier relative to the bare repos root, e.g. github.com/acme/widgets."""

    model_config = ConfigDict(frozen=True)

    segments: tuple[str, ...]

    @field_validator("segments")
    @classmethod
    def _check_segments(cls, segments: tuple[str, ...]) -> tuple[str, ...]:
        if not segments:
            raise ValueError("repository identifier needs at least one segment")
        for segment in segments:
            if not segment or segment in (".", ".."):
                raise ValueError(f"invalid path segment: {segment!r}")
            if ":" in segment:
                raise ValueError(f"segment may not contain ':': {segment!r}")
        return segments

    @classmethod
    def parse(cls, path: str) -> "RepoId":
        return cls(segments=tuple(path.strip("/").split("/")))

    @property
    def path(self) -> str:
        return "/".join(self.segments)

    def __str__(self) -> str:
        return self.path


class SessionStatus(Enum):
    ACTIVE = "active"
    EXITED = "exited"


class SessionInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    status: SessionStatus = SessionStatus.ACTIVE

    @property
    def managed(self) -> bool:
        return self.name.startswith(f"{SESSION_PREFIX}:")


class WorktreeEntry(BaseModel):
    path: str
    branch: str = ""
    bare: bool = False


class BulkResult(BaseModel):
    """Outcome of a best-effort fan-out over several items."""

    succeeded: list[str] = Field(default_factory=list)
    failed: list[tuple[str, str]] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class FrecencyEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    visits: int = 0
    last_visit: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class FrecencyDB(BaseModel):
    model_config = ConfigDict(extra="ignore")

    entries: dict[str, FrecencyEntry] = Field(default_factory=dict)


class Target(BaseModel):
    """A resolved (repository, branch) pair and where it lives."""

    repo: RepoId
    branch: str
    worktree: Path
    session_id: str
    created: bool = False
