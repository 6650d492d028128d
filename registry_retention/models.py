"""Value types shared by the planner and the orchestrator."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


def shorten_digest(digest: str) -> str:
    """First 12 hex characters of a digest, without the algorithm prefix."""
    _, _, hex_part = digest.rpartition(":")
    return hex_part[:12]


@dataclass(frozen=True)
class ImageInfo:
    """One tagged manifest in a repository.

    ``created`` is a ranking signal only: when no manifest schema yields a
    creation time it holds the moment the tag was resolved.
    """

    repository: str
    tag: str
    digest: str
    created: datetime


class RepositoryStatus(str, Enum):
    CLEANED = "cleaned"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class RepositoryResult:
    """Outcome of processing one repository."""

    repository: str
    status: RepositoryStatus
    kept: list[ImageInfo] = field(default_factory=list)
    deleted: list[ImageInfo] = field(default_factory=list)
    failed: list[ImageInfo] = field(default_factory=list)
    skipped_tags: list[str] = field(default_factory=list)


@dataclass
class RunSummary:
    """Aggregated outcome of a whole run."""

    repositories: list[RepositoryResult] = field(default_factory=list)

    @property
    def kept(self) -> int:
        return sum(len(r.kept) for r in self.repositories)

    @property
    def deleted(self) -> int:
        return sum(len(r.deleted) for r in self.repositories)

    @property
    def failed(self) -> int:
        return sum(len(r.failed) for r in self.repositories)

    @property
    def skipped_tags(self) -> int:
        return sum(len(r.skipped_tags) for r in self.repositories)

    @property
    def failed_repositories(self) -> list[str]:
        return [
            r.repository
            for r in self.repositories
            if r.status is RepositoryStatus.FAILED
        ]

    @property
    def has_failures(self) -> bool:
        """True when any deletion or any repository failed."""
        return self.failed > 0 or bool(self.failed_repositories)
