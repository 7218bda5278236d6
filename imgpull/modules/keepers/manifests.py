# manifests.py - Manifest media types and data classes
#
# Only the fields the fetcher needs are modeled: the config descriptor,
# the ordered layer descriptors and the media type.

import json
from dataclasses import dataclass, field

# =============================================================================
# Media Types
# =============================================================================

OCI_IMAGE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
OCI_IMAGE_INDEX = "application/vnd.oci.image.index.v1+json"
DOCKER_V2_SCHEMA2_MANIFEST = "application/vnd.docker.distribution.manifest.v2+json"
DOCKER_V2_SCHEMA1_SIGNED_MANIFEST = "application/vnd.docker.distribution.manifest.v1+prettyjws"
DOCKER_V2_SCHEMA1_MANIFEST = "application/vnd.docker.distribution.manifest.v1+json"
DOCKER_V2_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"

# Order matters: the registry picks the first type it can serve
DEFAULT_REQUESTED_MANIFEST_TYPES = (
    OCI_IMAGE_MANIFEST,
    OCI_IMAGE_INDEX,
    DOCKER_V2_SCHEMA2_MANIFEST,
    DOCKER_V2_SCHEMA1_SIGNED_MANIFEST,
    DOCKER_V2_SCHEMA1_MANIFEST,
    DOCKER_V2_MANIFEST_LIST,
)

# "fat" multi-platform manifests
MANIFEST_LIST_TYPES = (OCI_IMAGE_INDEX, DOCKER_V2_MANIFEST_LIST)


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class Descriptor:
    """Content descriptor: a blob's digest, size and media type."""
    digest: str = ""
    size: int = 0
    media_type: str = ""

    @classmethod
    def from_dict(cls, data) -> "Descriptor":
        if not isinstance(data, dict):
            return cls()
        return cls(
            digest=data.get("digest") or "",
            size=data.get("size") or 0,
            media_type=data.get("mediaType") or "",
        )


@dataclass
class ImageManifest:
    """Single-platform image manifest (OCI or Docker schema 2)."""
    media_type: str = ""
    config: Descriptor = field(default_factory=Descriptor)
    layers: list[Descriptor] = field(default_factory=list)

    @property
    def is_manifest_list(self) -> bool:
        return self.media_type in MANIFEST_LIST_TYPES

    @classmethod
    def from_bytes(cls, raw: bytes) -> "ImageManifest":
        """
        Parse manifest JSON. Missing fields become empty values so that
        schema-1 and index documents parse and can be rejected by the caller.

        Raises:
            ValueError: if `raw` is not a JSON object
        """
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("manifest is not a JSON object")

        media_type = data.get("mediaType") or ""
        # OCI indexes may omit mediaType; their "manifests" key gives them away
        if not media_type and "manifests" in data:
            media_type = OCI_IMAGE_INDEX

        return cls(
            media_type=media_type,
            config=Descriptor.from_dict(data.get("config")),
            layers=[Descriptor.from_dict(layer) for layer in data.get("layers") or []],
        )


@dataclass
class SavedManifestEntry:
    """One image entry of a `docker save` style manifest.json."""
    config: str
    repo_tags: list[str]
    layers: list[str]

    def to_dict(self) -> dict:
        """Convert to the capitalized keys docker/podman load expects."""
        return {
            "Config": self.config,
            "RepoTags": list(self.repo_tags),
            "Layers": list(self.layers),
        }


def saved_manifest_bytes(entries: list[SavedManifestEntry]) -> bytes:
    """Serialize index entries as the manifest.json payload."""
    return json.dumps([entry.to_dict() for entry in entries]).encode("utf-8")
