"""Retention cleanup for Docker registries: keep the newest N images per repository."""

from .client import (
    MANIFEST_V1,
    MANIFEST_V2,
    RawResponse,
    RegistryClient,
    RegistryEndpoint,
)
from .config import Config, ConfigError
from .errors import (
    RegistryError,
    NotFoundError,
    UnauthorizedError,
    ForbiddenError,
    DeleteUnsupportedError,
    UnexpectedStatusError,
    TransportError,
    DigestNotFoundError,
    ResponseDecodeError,
    InvalidTimestampError,
)
from .events import (
    Event,
    EventSink,
    LogSink,
    RecordingSink,
    MultiSink,
)
from .models import ImageInfo, RepositoryResult, RepositoryStatus, RunSummary
from .orchestrator import Cleaner
from .planner import RetentionPlan, plan_retention, rank_images
from .resolver import (
    Resolution,
    SchemaV1Strategy,
    SchemaV2Strategy,
    TimestampResolver,
    TimestampUnavailable,
)
from .timestamps import parse_timestamp, utc_now

__version__ = "0.1.0"
