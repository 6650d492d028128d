"""Resolve the creation time of a tagged image.

Registries serve schema 1 or schema 2 manifests depending on their age and
configuration, so the creation time is looked up through an ordered list of
strategies. The first one to produce a timestamp wins; when all of them
fail the current time is used instead, flagged as an estimate. Resolution
never fails: one unreadable manifest must not block the cleanup of every
other tag in the repository.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

import structlog

from .client import MANIFEST_V1, MANIFEST_V2, RawResponse, RegistryClient
from .errors import InvalidTimestampError, RegistryError
from .events import EventSink, TimestampEstimated
from .timestamps import parse_timestamp, utc_now

logger = structlog.get_logger(__name__)

ESTIMATED = "estimated"


class TimestampUnavailable(Exception):
    """A strategy could not produce a creation time."""


@dataclass(frozen=True)
class Resolution:
    created: datetime
    source: str
    estimated: bool = False


def _decode_object(response: RawResponse, what: str) -> dict[str, Any]:
    if not response.ok:
        raise TimestampUnavailable(f"{what} returned status {response.status_code}")
    try:
        data = response.json()
    except (ValueError, RecursionError) as e:
        raise TimestampUnavailable(f"{what} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise TimestampUnavailable(f"{what} is not a JSON object")
    return data


def _created_field(data: dict[str, Any], what: str) -> datetime:
    try:
        return parse_timestamp(data.get("created"))
    except InvalidTimestampError as e:
        raise TimestampUnavailable(f"{what}: {e}") from e


class SchemaV1Strategy:
    """Read ``created`` from the first v1Compatibility entry of a schema 1 manifest."""

    name = "schema-v1"

    def created(self, client: RegistryClient, repository: str, tag: str) -> datetime:
        manifest = _decode_object(
            client.get_manifest(repository, tag, MANIFEST_V1), "v1 manifest"
        )
        history = manifest.get("history")
        if not isinstance(history, list) or not history:
            raise TimestampUnavailable("v1 manifest has no history")

        entry = history[0]
        compat = entry.get("v1Compatibility") if isinstance(entry, dict) else None
        if not isinstance(compat, str):
            raise TimestampUnavailable("v1 manifest history has no v1Compatibility")
        try:
            compat_data = json.loads(compat)
        except (ValueError, RecursionError) as e:
            raise TimestampUnavailable(f"v1Compatibility is not valid JSON: {e}") from e
        if not isinstance(compat_data, dict):
            raise TimestampUnavailable("v1Compatibility is not a JSON object")
        return _created_field(compat_data, "v1Compatibility")


class SchemaV2Strategy:
    """Read ``created`` from the config blob referenced by a schema 2 manifest."""

    name = "schema-v2"

    def created(self, client: RegistryClient, repository: str, tag: str) -> datetime:
        manifest = _decode_object(
            client.get_manifest(repository, tag, MANIFEST_V2), "v2 manifest"
        )
        config = manifest.get("config")
        digest = config.get("digest") if isinstance(config, dict) else None
        if not digest:
            raise TimestampUnavailable("v2 manifest has no config digest")

        blob = _decode_object(client.get_blob(repository, digest), "config blob")
        return _created_field(blob, "config blob")


DEFAULT_STRATEGIES = (SchemaV1Strategy(), SchemaV2Strategy())


class TimestampResolver:
    """Run the strategy cascade for one tag at a time."""

    def __init__(
        self,
        client: RegistryClient,
        sink: EventSink,
        strategies: Optional[Sequence[Any]] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._client = client
        self._sink = sink
        self._strategies = tuple(DEFAULT_STRATEGIES if strategies is None else strategies)
        self._clock = clock

    @property
    def strategies(self) -> tuple:
        return self._strategies

    def resolve_detailed(self, repository: str, tag: str) -> Resolution:
        log = logger.bind(repository=repository, tag=tag)
        for strategy in self._strategies:
            try:
                created = strategy.created(self._client, repository, tag)
            except (TimestampUnavailable, RegistryError) as e:
                log.debug("timestamp_strategy_failed", strategy=strategy.name, reason=str(e))
                continue
            return Resolution(created, strategy.name)

        created = self._clock()
        self._sink.emit(TimestampEstimated(repository, tag, created))
        return Resolution(created, ESTIMATED, estimated=True)

    def resolve(self, repository: str, tag: str) -> datetime:
        """Return the creation time of ``repository:tag``, possibly estimated."""
        return self.resolve_detailed(repository, tag).created
