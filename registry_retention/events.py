"""Structured progress events and the sinks that receive them.

The retention logic only reports what happened; turning that into log
lines (or anything else) is the sink's job.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import ClassVar, Iterable, Optional, Protocol

import structlog

from .models import ImageInfo, shorten_digest
from .timestamps import format_timestamp


@dataclass(frozen=True)
class Event:
    """Base class for progress events."""

    event: ClassVar[str] = "event"
    level: ClassVar[str] = "info"

    def fields(self) -> dict:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, datetime):
                data[key] = format_timestamp(value)
        return data


@dataclass(frozen=True)
class RunStarted(Event):
    event: ClassVar[str] = "run_started"

    registry_url: str
    keep_last: int
    dry_run: bool = False


@dataclass(frozen=True)
class RepositoriesListed(Event):
    event: ClassVar[str] = "repositories_listed"

    count: int
    selected: int


@dataclass(frozen=True)
class RepositoryStarted(Event):
    event: ClassVar[str] = "repository_started"

    repository: str


@dataclass(frozen=True)
class RepositoryFailed(Event):
    event: ClassVar[str] = "repository_failed"
    level: ClassVar[str] = "error"

    repository: str
    error: str


@dataclass(frozen=True)
class RepositorySkipped(Event):
    event: ClassVar[str] = "repository_skipped"

    repository: str
    tag_count: int
    keep_last: int


@dataclass(frozen=True)
class TagSkipped(Event):
    event: ClassVar[str] = "tag_skipped"
    level: ClassVar[str] = "warning"

    repository: str
    tag: str
    error: str


@dataclass(frozen=True)
class ImageResolved(Event):
    event: ClassVar[str] = "image_resolved"
    level: ClassVar[str] = "debug"

    repository: str
    tag: str
    digest: str
    created: datetime

    @classmethod
    def of(cls, image: ImageInfo) -> ImageResolved:
        return cls(image.repository, image.tag, image.digest, image.created)


@dataclass(frozen=True)
class TimestampEstimated(Event):
    """No manifest schema produced a creation time; ``created`` is synthetic."""

    event: ClassVar[str] = "timestamp_estimated"
    level: ClassVar[str] = "warning"

    repository: str
    tag: str
    created: datetime


@dataclass(frozen=True)
class ImageKept(Event):
    event: ClassVar[str] = "image_kept"

    repository: str
    tag: str
    digest: str
    created: datetime
    rank: int

    def fields(self) -> dict:
        return {**super().fields(), "digest": shorten_digest(self.digest)}


@dataclass(frozen=True)
class ImageDeleted(Event):
    event: ClassVar[str] = "image_deleted"

    repository: str
    tag: str
    digest: str
    created: datetime
    dry_run: bool = False

    def fields(self) -> dict:
        return {**super().fields(), "digest": shorten_digest(self.digest)}


@dataclass(frozen=True)
class ImageDeleteFailed(Event):
    event: ClassVar[str] = "image_delete_failed"
    level: ClassVar[str] = "error"

    repository: str
    tag: str
    digest: str
    error: str
    status_code: Optional[int] = None
    body: str = ""
    remediation: Optional[str] = None


@dataclass(frozen=True)
class DeletesHalted(Event):
    event: ClassVar[str] = "deletes_halted"
    level: ClassVar[str] = "error"

    reason: str
    remediation: str


@dataclass(frozen=True)
class RepositoryCompleted(Event):
    event: ClassVar[str] = "repository_completed"

    repository: str
    kept: int
    deleted: int
    failed: int
    skipped_tags: int


@dataclass(frozen=True)
class RunCompleted(Event):
    event: ClassVar[str] = "run_completed"

    repositories: int
    kept: int
    deleted: int
    failed: int
    failed_repositories: list[str] = field(default_factory=list)
    gc_hint: str = (
        "docker exec <registry-container> registry garbage-collect "
        "/etc/docker/registry/config.yml"
    )


class EventSink(Protocol):
    def emit(self, event: Event) -> None: ...


class LogSink:
    """Write every event through a structlog logger."""

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self._logger = logger or structlog.get_logger("registry_retention")

    def emit(self, event: Event) -> None:
        log = getattr(self._logger, event.level)
        log(event.event, **event.fields())


class RecordingSink:
    """Keep events in memory, in emission order."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def emit(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, event_type: type[Event]) -> list[Event]:
        return [e for e in self.events if isinstance(e, event_type)]

    def names(self) -> list[str]:
        return [e.event for e in self.events]


class MultiSink:
    """Fan events out to several sinks."""

    def __init__(self, sinks: Iterable[EventSink]) -> None:
        self._sinks = list(sinks)

    def emit(self, event: Event) -> None:
        for sink in self._sinks:
            sink.emit(event)
