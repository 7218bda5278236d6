import hashlib
import json

import httpx
import pytest

from imgpull.modules.keepers import RegistryClient

REGISTRY = "https://registry-1.docker.io"
REALM = "https://auth.docker.io/token"
CHALLENGE = (
    f'Bearer realm="{REALM}",service="registry.docker.io",'
    'scope="repository:library/nginx:pull"'
)


def digest_of(data: bytes) -> str:
    return "sha256:" + hashlib.sha256(data).hexdigest()


class FakeRegistry:
    """
    Scripted registry behind httpx.MockTransport.

    Each URL (query string ignored) holds a queue of responses; the last one
    repeats once the queue is drained. Unknown URLs answer 404.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, url, status=200, headers=None, content=None, json_body=None):
        self.routes.setdefault(url, []).append((status, headers or {}, content, json_body))
        return self

    def add_unauthorized(self, url, challenge=CHALLENGE):
        return self.add(url, 401, headers={"WWW-Authenticate": challenge})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = str(request.url).split("?", 1)[0]
        queue = self.routes.get(key)
        if not queue:
            return httpx.Response(404)
        status, headers, content, json_body = queue.pop(0) if len(queue) > 1 else queue[0]
        if json_body is not None:
            return httpx.Response(status, headers=headers, json=json_body)
        return httpx.Response(status, headers=headers, content=content or b"")

    def urls(self):
        return [str(r.url).split("?", 1)[0] for r in self.requests]

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def registry_client(self, username=None, password=None) -> RegistryClient:
        return RegistryClient(username, password, http_client=self.http_client())


@pytest.fixture
def fake_registry():
    return FakeRegistry()


@pytest.fixture(autouse=True)
def no_env_credentials(monkeypatch):
    """Keep IMGPULL_USERNAME / IMGPULL_PASSWORD from leaking into tests."""
    monkeypatch.setattr("imgpull.modules.auth.auth.REGISTRY_USERNAME", None)
    monkeypatch.setattr("imgpull.modules.auth.auth.REGISTRY_PASSWORD", None)


@pytest.fixture
def image_blobs():
    """Config and two layers plus a schema-2 manifest describing them."""
    config = json.dumps({"architecture": "amd64", "os": "linux"}).encode()
    layers = [b"layer-one-bytes", b"layer-two-bytes"]
    manifest = {
        "schemaVersion": 2,
        "mediaType": "application/vnd.docker.distribution.manifest.v2+json",
        "config": {
            "mediaType": "application/vnd.docker.container.image.v1+json",
            "digest": digest_of(config),
            "size": len(config),
        },
        "layers": [
            {
                "mediaType": "application/vnd.docker.image.rootfs.diff.tar.gzip",
                "digest": digest_of(layer),
                "size": len(layer),
            }
            for layer in layers
        ],
    }
    return {
        "config": config,
        "layers": layers,
        "manifest": manifest,
        "manifest_bytes": json.dumps(manifest).encode(),
    }
