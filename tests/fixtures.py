"""In-memory registry served through httpx.MockTransport.

Images are registered per repository and tag with the manifest schemas the
fake should serve for them:

- schema 1: only the v1 manifest (history/v1Compatibility) is available
- schema 2: only the v2 manifest plus its config blob is available
- schema 0: no manifest body is available, only the HEAD digest
"""

import base64
import hashlib
import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import httpx

from registry_retention.client import MANIFEST_V1, MANIFEST_V2, RegistryClient, RegistryEndpoint

BASE_URL = "http://registry.test:5000"

_PATH = re.compile(r"^/v2/(?P<repo>.+)/(?P<kind>tags|manifests|blobs)/(?P<ref>[^/]+)$")


def digest_of(text: str) -> str:
    return "sha256:" + hashlib.sha256(text.encode()).hexdigest()


@dataclass
class FakeImage:
    digest: str
    created: Optional[str] = None
    schema: int = 2
    v1_created: Optional[str] = None

    @property
    def config_digest(self) -> str:
        return digest_of("config:" + self.digest)


@dataclass
class FakeRegistry:
    """Registry double recording every request it receives."""

    username: str = ""
    password: str = ""
    repositories: dict = field(default_factory=dict)
    requests: list = field(default_factory=list)
    deleted: list = field(default_factory=list)
    catalog_status: int = 200
    tags_status: dict = field(default_factory=dict)
    head_status: dict = field(default_factory=dict)
    head_without_digest: set = field(default_factory=set)
    delete_status: dict = field(default_factory=dict)
    default_delete_status: int = 202
    blob_status: int = 200

    def add(
        self,
        repository: str,
        tag: str,
        created: Optional[str] = None,
        schema: int = 2,
        digest: Optional[str] = None,
        v1_created: Optional[str] = None,
    ) -> FakeImage:
        image = FakeImage(
            digest=digest or digest_of(f"{repository}:{tag}"),
            created=created,
            schema=schema,
            v1_created=v1_created,
        )
        self.repositories.setdefault(repository, {})[tag] = image
        return image

    def add_repository(self, repository: str) -> None:
        self.repositories.setdefault(repository, {})

    def client(self, **kwargs) -> RegistryClient:
        endpoint = RegistryEndpoint(BASE_URL, kwargs.pop("username", ""), kwargs.pop("password", ""))
        return RegistryClient(endpoint, transport=httpx.MockTransport(self.handler), **kwargs)

    def requests_for(self, method: str) -> list:
        return [r for r in self.requests if r.method == method]

    def _authorized(self, request: httpx.Request) -> bool:
        if not self.username:
            return True
        token = base64.b64encode(f"{self.username}:{self.password}".encode()).decode()
        return request.headers.get("Authorization") == f"Basic {token}"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._authorized(request):
            return httpx.Response(401, text="authentication required")

        path = request.url.path
        if path == "/v2/_catalog":
            if self.catalog_status != 200:
                return httpx.Response(self.catalog_status, text="catalog unavailable")
            return httpx.Response(200, json={"repositories": list(self.repositories)})

        match = _PATH.match(path)
        if not match:
            return httpx.Response(404, text="unknown path")
        repo, kind, ref = match["repo"], match["kind"], match["ref"]
        tags = self.repositories.get(repo)

        if kind == "tags":
            status = self.tags_status.get(repo, 200 if tags is not None else 404)
            if status != 200:
                return httpx.Response(status, text="NAME_UNKNOWN")
            return httpx.Response(200, json={"name": repo, "tags": list(tags) or None})

        if kind == "blobs":
            return self._blob(tags or {}, ref)

        if request.method == "DELETE":
            return self._delete(repo, ref)

        image = (tags or {}).get(ref)
        if image is None:
            return httpx.Response(404, text="MANIFEST_UNKNOWN")

        if request.method == "HEAD":
            status = self.head_status.get((repo, ref), 200)
            if status != 200:
                return httpx.Response(status)
            if (repo, ref) in self.head_without_digest:
                return httpx.Response(200)
            return httpx.Response(200, headers={"Docker-Content-Digest": image.digest})

        return self._manifest(image, request.headers.get("Accept"))

    def _manifest(self, image: FakeImage, accept: Optional[str]) -> httpx.Response:
        if accept == MANIFEST_V1 and (image.schema == 1 or image.v1_created):
            compat = {"id": "abc", "created": image.v1_created or image.created}
            body = {
                "schemaVersion": 1,
                "history": [{"v1Compatibility": json.dumps(compat)}],
            }
            return httpx.Response(200, json=body)
        if accept == MANIFEST_V2 and image.schema == 2:
            body = {
                "schemaVersion": 2,
                "mediaType": MANIFEST_V2,
                "config": {"digest": image.config_digest},
            }
            return httpx.Response(200, json=body)
        return httpx.Response(404, text="MANIFEST_UNKNOWN")

    def _blob(self, tags: dict, digest: str) -> httpx.Response:
        if self.blob_status != 200:
            return httpx.Response(self.blob_status, text="BLOB_UNKNOWN")
        for image in tags.values():
            if image.config_digest == digest:
                return httpx.Response(
                    200,
                    json={"created": image.created, "config": {"Labels": {}}},
                )
        return httpx.Response(404, text="BLOB_UNKNOWN")

    def _delete(self, repo: str, digest: str) -> httpx.Response:
        status = self.delete_status.get(digest, self.default_delete_status)
        if status not in (200, 202):
            return httpx.Response(status, text=f"delete refused ({status})")
        self.deleted.append((repo, digest))
        return httpx.Response(status)


def at(value: str) -> datetime:
    """Aware UTC datetime from an RFC3339 string."""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
