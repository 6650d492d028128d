"""Registry v2 HTTP API client.

Registry API v2 endpoints used:
  GET    /v2/_catalog                  - list repositories
  GET    /v2/{repo}/tags/list          - list tags
  HEAD   /v2/{repo}/manifests/{tag}    - manifest digest (Docker-Content-Digest)
  GET    /v2/{repo}/manifests/{tag}    - manifest body, schema chosen by Accept
  GET    /v2/{repo}/blobs/{digest}     - image config blob
  DELETE /v2/{repo}/manifests/{digest} - delete manifest
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional

import httpx
import structlog

from .errors import (
    DigestNotFoundError,
    ResponseDecodeError,
    TransportError,
    classify_response,
)

MANIFEST_V1 = "application/vnd.docker.distribution.manifest.v1+json"
MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
DIGEST_HEADER = "Docker-Content-Digest"
REQUEST_TIMEOUT = 30.0

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RegistryEndpoint:
    """Connection identity of a registry, fixed for the lifetime of a run."""

    base_url: str
    username: str = ""
    password: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @property
    def has_credentials(self) -> bool:
        return bool(self.username) and bool(self.password)

    def __repr__(self) -> str:
        return f"RegistryEndpoint(base_url={self.base_url!r}, username={self.username!r})"


@dataclass(frozen=True)
class RawResponse:
    """Undecoded response handed to callers that interpret status themselves."""

    status_code: int
    body: bytes
    headers: httpx.Headers

    @property
    def ok(self) -> bool:
        return self.status_code == 200

    def json(self) -> Any:
        return json.loads(self.body)


class RegistryClient:
    """Authenticated client for a single registry.

    One ``httpx.Client`` is kept open for the whole run so connections are
    reused. Requests are never retried.
    """

    def __init__(
        self,
        endpoint: RegistryEndpoint,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self._endpoint = endpoint
        auth = (endpoint.username, endpoint.password) if endpoint.has_credentials else None
        self._http = httpx.Client(
            base_url=endpoint.base_url,
            auth=auth,
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    @property
    def endpoint(self) -> RegistryEndpoint:
        return self._endpoint

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> RegistryClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        what: str,
        accept: Optional[str] = None,
    ) -> httpx.Response:
        headers = {"Accept": accept} if accept else None
        try:
            response = self._http.request(method, path, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(what, e) from e
        logger.debug(
            "registry_request",
            method=method,
            path=path,
            status=response.status_code,
        )
        return response

    def _get_json(self, path: str, what: str) -> dict[str, Any]:
        response = self._request("GET", path, what)
        if response.status_code != 200:
            raise classify_response(response, what)
        try:
            data = response.json()
        except (ValueError, RecursionError) as e:
            raise ResponseDecodeError(what, e) from e
        if not isinstance(data, dict):
            raise ResponseDecodeError(what, TypeError(f"expected object, got {type(data).__name__}"))
        return data

    def list_repositories(self) -> list[str]:
        """List all repositories in the registry."""
        data = self._get_json("/v2/_catalog", "catalog")
        return list(data.get("repositories") or [])

    def list_tags(self, repository: str) -> list[str]:
        """List all tags for a repository."""
        data = self._get_json(f"/v2/{repository}/tags/list", f"tags of {repository}")
        return list(data.get("tags") or [])

    def head_manifest_digest(self, repository: str, tag: str) -> str:
        """Get the digest for a manifest by tag."""
        what = f"manifest {repository}:{tag}"
        response = self._request(
            "HEAD", f"/v2/{repository}/manifests/{tag}", what, accept=MANIFEST_V2
        )
        if response.status_code != 200:
            raise classify_response(response, what)
        digest = response.headers.get(DIGEST_HEADER)
        if not digest:
            raise DigestNotFoundError(what)
        return digest

    def get_manifest(self, repository: str, tag: str, media_type: str) -> RawResponse:
        """Fetch a manifest in the requested schema without judging the status."""
        response = self._request(
            "GET",
            f"/v2/{repository}/manifests/{tag}",
            f"manifest {repository}:{tag}",
            accept=media_type,
        )
        return RawResponse(response.status_code, response.content, response.headers)

    def get_blob(self, repository: str, digest: str) -> RawResponse:
        """Fetch a content blob without judging the status."""
        response = self._request(
            "GET", f"/v2/{repository}/blobs/{digest}", f"blob {repository}@{digest}"
        )
        return RawResponse(response.status_code, response.content, response.headers)

    def delete_manifest(self, repository: str, digest: str) -> None:
        """Delete a manifest by digest.

        Raises:
            DeleteUnsupportedError: The registry answered 405.
            RegistryError: Any other failure.
        """
        what = f"manifest {repository}@{digest}"
        response = self._request(
            "DELETE", f"/v2/{repository}/manifests/{digest}", what, accept=MANIFEST_V2
        )
        if response.status_code in (200, 202):
            return
        raise classify_response(response, what, deleting=True)
