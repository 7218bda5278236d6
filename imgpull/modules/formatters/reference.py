# reference.py
# Image reference parsing: "nginx", "docker://quay.io/org/app:1.2",
# "docker.io/library/nginx@sha256:..." all normalize to an ImageReference.

import re
from dataclasses import dataclass

from imgpull.config import (
    DEFAULT_NAMESPACE,
    DEFAULT_REGISTRY,
    DEFAULT_SCHEME,
    DEFAULT_TAG,
    DOCKERHUB_ALIAS,
)
from imgpull.modules.errors import InvalidReference

SCHEME_SEPARATOR = "://"

DIGEST_PATTERN = re.compile(r"^[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[a-fA-F0-9]{32,}$")
TAG_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$")
NAME_COMPONENT_PATTERN = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")
PORT_PATTERN = re.compile(r"[0-9]{1,5}")

# Ports that are implied by https and never shown
IMPLIED_PORTS = (80, 443)


@dataclass(frozen=True)
class ImageReference:
    """Canonical identity of an image: registry host, repository, tag or digest."""
    scheme: str
    host: str
    name: str
    tag: str = ""
    digest: str = ""

    @property
    def reference(self) -> str:
        """Tag or digest, whichever addresses the manifest."""
        return self.digest or self.tag

    @property
    def base_url(self) -> str:
        return f"https://{self.host}/v2/{self.name}"

    def manifest_url(self) -> str:
        return f"{self.base_url}/manifests/{self.reference}"

    def blob_url(self, digest: str) -> str:
        return f"{self.base_url}/blobs/{digest}"

    def repo_string(self) -> str:
        """
        Display form used for RepoTags in saved archives.

        Docker Hub is shown under its public alias so that `docker load`
        tags the image the way `docker pull` would.
        """
        host = DOCKERHUB_ALIAS if self.host == DEFAULT_REGISTRY else self.host
        if self.digest:
            return f"{host}/{self.name}@{self.digest}"
        return f"{host}/{self.name}:{self.tag}"

    def __str__(self) -> str:
        if self.digest:
            return f"{self.scheme}://{self.host}/{self.name}@{self.digest}"
        return f"{self.scheme}://{self.host}/{self.name}:{self.tag}"


def _split_scheme(image_ref: str, raw: str) -> tuple[str, str]:
    secs = raw.split(SCHEME_SEPARATOR)
    if len(secs) == 1:
        return DEFAULT_SCHEME, secs[0]
    if len(secs) > 2:
        raise InvalidReference(image_ref, "more than one scheme separator")
    scheme = secs[0].lower()
    if scheme != DEFAULT_SCHEME:
        raise InvalidReference(image_ref, f"unsupported scheme {scheme!r}, only {DEFAULT_SCHEME}:// is supported")
    return scheme, secs[1]


def _split_host(image_ref: str, segment: str) -> str:
    """Validate a host[:port] segment and return it lower-cased, minus implied ports."""
    parts = segment.lower().split(":")
    if len(parts) > 2:
        raise InvalidReference(image_ref, f"malformed registry host {segment!r}")

    host = parts[0]
    if not host or any(label == "" for label in host.split(".")):
        raise InvalidReference(image_ref, f"malformed registry host {segment!r}")

    if host == DOCKERHUB_ALIAS:
        host = DEFAULT_REGISTRY

    if len(parts) == 1:
        return host

    port_str = parts[1]
    # ASCII digits only
    if not PORT_PATTERN.fullmatch(port_str) or not 0 < int(port_str) <= 65535:
        raise InvalidReference(image_ref, f"invalid registry port {port_str!r}")
    port = int(port_str)
    if port in IMPLIED_PORTS:
        return host
    return f"{host}:{port}"


def _split_tag_or_digest(image_ref: str, last: str) -> tuple[str, str, str]:
    """
    Split the trailing path segment into (name, tag, digest).

    '@' wins over ':'; a segment carrying both a tag and a digest is rejected
    because only one of them can address the manifest.
    """
    if "@" in last:
        name, digest = last.split("@", 1)
        if ":" in name:
            raise InvalidReference(image_ref, "reference carries both a tag and a digest")
        if not DIGEST_PATTERN.match(digest):
            raise InvalidReference(image_ref, f"malformed digest {digest!r}, expected algorithm:hex")
        return name, "", digest

    if ":" in last:
        name, tag = last.split(":", 1)
        if not TAG_PATTERN.match(tag):
            raise InvalidReference(image_ref, f"malformed tag {tag!r}")
        return name, tag, ""

    return last, DEFAULT_TAG, ""


def parse_image_ref(image_ref: str) -> ImageReference:
    """
    Parse an image reference into an ImageReference.

    Accepted forms include:
        nginx                               -> registry-1.docker.io/library/nginx:latest
        user/app:1.0                        -> registry-1.docker.io/user/app:1.0
        docker://quay.io/org/app:1.2        -> quay.io/org/app:1.2
        localhost:5000/app@sha256:<hex>     -> localhost:5000/app@sha256:<hex>
        docker.io/nginx                     -> registry-1.docker.io/library/nginx:latest

    Raises:
        InvalidReference: for any malformed input.
    """
    raw = (image_ref or "").strip()
    if not raw:
        raise InvalidReference(image_ref, "empty image reference")

    scheme, full_path = _split_scheme(image_ref, raw)

    # Docker Hub convention: bare names live under library/
    if "/" not in full_path:
        full_path = f"{DEFAULT_NAMESPACE}/{full_path}"

    fields = full_path.split("/")
    last, tag, digest = _split_tag_or_digest(image_ref, fields[-1])
    fields[-1] = last

    if any(field == "" for field in fields):
        raise InvalidReference(image_ref, "empty path segment")

    first = fields[0]
    if "." in first or ":" in first:
        host = _split_host(image_ref, first)
        name_fields = fields[1:]
        if host == DEFAULT_REGISTRY and len(name_fields) == 1:
            name_fields = [DEFAULT_NAMESPACE] + name_fields
    else:
        # image format: username/image/extra has no registry to resolve against
        if len(fields) > 2:
            raise InvalidReference(image_ref, "too many path segments for the default registry")
        host = DEFAULT_REGISTRY
        name_fields = fields

    name_fields = [field.lower() for field in name_fields]
    for field in name_fields:
        if not NAME_COMPONENT_PATTERN.match(field):
            raise InvalidReference(image_ref, f"invalid repository path component {field!r}")

    return ImageReference(
        scheme=scheme,
        host=host,
        name="/".join(name_fields),
        tag=tag,
        digest=digest,
    )
