"""Cleanup orchestration across repositories.

Failures are scoped as narrowly as possible:

- catalog listing failure aborts the run (the error propagates)
- tag listing failure skips the repository
- digest lookup failure skips the tag
- delete failure is reported for that image only

Everything except the catalog failure is reported to the event sink and
processing continues.
"""

from __future__ import annotations

from typing import Optional

from .client import RegistryClient
from .config import Config
from .errors import DeleteUnsupportedError, RegistryError
from .events import (
    DeletesHalted,
    EventSink,
    ImageDeleted,
    ImageDeleteFailed,
    ImageKept,
    ImageResolved,
    RepositoriesListed,
    RepositoryCompleted,
    RepositoryFailed,
    RepositorySkipped,
    RepositoryStarted,
    RunCompleted,
    RunStarted,
    TagSkipped,
)
from .models import ImageInfo, RepositoryResult, RepositoryStatus, RunSummary
from .planner import plan_retention
from .resolver import TimestampResolver


class Cleaner:
    """Keep the newest ``config.keep_last`` images of every repository."""

    def __init__(
        self,
        client: RegistryClient,
        config: Config,
        sink: EventSink,
        resolver: Optional[TimestampResolver] = None,
    ) -> None:
        self._client = client
        self._config = config
        self._sink = sink
        self._resolver = resolver or TimestampResolver(client, sink)
        self._halted: Optional[DeleteUnsupportedError] = None

    @property
    def keep_last(self) -> int:
        return self._config.keep_last

    def run(self) -> RunSummary:
        """Clean every repository in the catalog.

        Raises:
            RegistryError: The catalog could not be listed.
        """
        self._halted = None
        self._sink.emit(
            RunStarted(self._config.registry_url, self.keep_last, self._config.dry_run)
        )
        repositories = self._client.list_repositories()
        selected = self._select(repositories)
        self._sink.emit(RepositoriesListed(len(repositories), len(selected)))

        summary = RunSummary()
        for repository in selected:
            summary.repositories.append(self.cleanup_repository(repository))

        self._sink.emit(
            RunCompleted(
                repositories=len(summary.repositories),
                kept=summary.kept,
                deleted=summary.deleted,
                failed=summary.failed,
                failed_repositories=summary.failed_repositories,
            )
        )
        return summary

    def _select(self, repositories: list[str]) -> list[str]:
        wanted = self._config.repositories
        if not wanted:
            return list(repositories)
        return [r for r in repositories if r in wanted]

    def cleanup_repository(self, repository: str) -> RepositoryResult:
        """Apply retention to a single repository."""
        self._sink.emit(RepositoryStarted(repository))

        try:
            tags = self._client.list_tags(repository)
        except RegistryError as e:
            self._sink.emit(RepositoryFailed(repository, str(e)))
            return RepositoryResult(repository, RepositoryStatus.FAILED)

        if len(tags) <= self.keep_last:
            self._sink.emit(RepositorySkipped(repository, len(tags), self.keep_last))
            return RepositoryResult(repository, RepositoryStatus.SKIPPED)

        result = RepositoryResult(repository, RepositoryStatus.CLEANED)
        images = self._resolve_images(repository, tags, result)

        plan = plan_retention(images, self.keep_last)
        for rank, image in enumerate(plan.keep, start=1):
            self._sink.emit(
                ImageKept(image.repository, image.tag, image.digest, image.created, rank)
            )
        result.kept.extend(plan.keep)

        for image in plan.delete:
            self._delete(image, result)

        self._sink.emit(
            RepositoryCompleted(
                repository,
                kept=len(result.kept),
                deleted=len(result.deleted),
                failed=len(result.failed),
                skipped_tags=len(result.skipped_tags),
            )
        )
        return result

    def _resolve_images(
        self, repository: str, tags: list[str], result: RepositoryResult
    ) -> list[ImageInfo]:
        images = []
        for tag in tags:
            try:
                digest = self._client.head_manifest_digest(repository, tag)
            except RegistryError as e:
                self._sink.emit(TagSkipped(repository, tag, str(e)))
                result.skipped_tags.append(tag)
                continue

            created = self._resolver.resolve(repository, tag)
            image = ImageInfo(repository, tag, digest, created)
            self._sink.emit(ImageResolved.of(image))
            images.append(image)
        return images

    def _delete(self, image: ImageInfo, result: RepositoryResult) -> None:
        if self._config.dry_run:
            self._sink.emit(
                ImageDeleted(image.repository, image.tag, image.digest, image.created, dry_run=True)
            )
            result.deleted.append(image)
            return

        if self._halted is not None:
            self._report_failure(image, self._halted)
            result.failed.append(image)
            return

        try:
            self._client.delete_manifest(image.repository, image.digest)
        except RegistryError as e:
            self._report_failure(image, e)
            result.failed.append(image)
            if isinstance(e, DeleteUnsupportedError) and self._config.halt_on_delete_unsupported:
                self._halted = e
                self._sink.emit(DeletesHalted(str(e), e.remediation))
            return

        self._sink.emit(ImageDeleted(image.repository, image.tag, image.digest, image.created))
        result.deleted.append(image)

    def _report_failure(self, image: ImageInfo, error: RegistryError) -> None:
        self._sink.emit(
            ImageDeleteFailed(
                image.repository,
                image.tag,
                image.digest,
                error=str(error),
                status_code=error.status_code,
                body=error.body,
                remediation=getattr(error, "remediation", None),
            )
        )
