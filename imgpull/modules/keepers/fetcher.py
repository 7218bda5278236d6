# fetcher.py - manifest -> config -> layers retrieval

import logging
from typing import Callable, Optional, Protocol

from imgpull.modules.errors import ImagePullError, UnsupportedImageFormat
from imgpull.modules.formatters import ImageReference
from imgpull.modules.formatters.reference import DIGEST_PATTERN
from imgpull.modules.keepers.downloaders import RegistryClient
from imgpull.modules.keepers.manifests import ImageManifest, SavedManifestEntry

log = logging.getLogger(__name__)


class ImageSink(Protocol):
    """Destination for fetched bytes; see storage.py for implementations."""

    def write_config(self, digest: str, data: bytes) -> None: ...

    def write_layer(self, digest: str, data: bytes) -> None: ...

    def write_index(self, entries: list[SavedManifestEntry]) -> None: ...


def parse_manifest(raw: bytes) -> ImageManifest:
    """
    Parse manifest bytes, rejecting anything without a config blob.

    Raises:
        UnsupportedImageFormat: manifest lists / indexes, schema 1, any
            manifest whose config digest is empty, or a config/layer digest
            that is not algorithm:hex
    """
    try:
        manifest = ImageManifest.from_bytes(raw)
    except ValueError as e:
        raise ImagePullError(f"manifest is not valid JSON: {e}", stage="manifest") from e

    if manifest.is_manifest_list or not manifest.config.digest:
        raise UnsupportedImageFormat(manifest.media_type)

    for blob in [manifest.config] + manifest.layers:
        if not isinstance(blob.digest, str) or not DIGEST_PATTERN.fullmatch(blob.digest):
            raise UnsupportedImageFormat(
                manifest.media_type, f"malformed blob digest {blob.digest!r}"
            )
    return manifest


async def fetch_image(
    client: RegistryClient,
    ref: ImageReference,
    sink: ImageSink,
    progress_callback: Optional[Callable[[str, int, int], None]] = None,
) -> SavedManifestEntry:
    """
    Fetch one image and hand its pieces to `sink`.

    Blobs are requested and written one at a time in manifest order: the
    config first, then every layer. The index entry is written last.

    Args:
        client: Registry client (carries the auth session)
        ref: Parsed image reference
        sink: Output sink for config, layers and the index
        progress_callback: Optional callback(message, current, total),
            called before each blob fetch and once when done

    Returns:
        The SavedManifestEntry written to the sink
    """
    raw = await client.fetch_manifest(ref)
    log.debug("Image manifest: %s", raw)
    manifest = parse_manifest(raw)

    total = len(manifest.layers) + 1

    config_digest = manifest.config.digest
    if progress_callback:
        progress_callback(f"config {config_digest}", 0, total)
    log.info("Config digest: %s, size: %d", config_digest, manifest.config.size)
    sink.write_config(config_digest, await client.fetch_blob(ref, config_digest))

    layer_digests = []
    for idx, layer in enumerate(manifest.layers, start=1):
        if progress_callback:
            progress_callback(f"layer {layer.digest}", idx, total)
        log.info("Layer digest: %s, size: %d", layer.digest, layer.size)
        sink.write_layer(layer.digest, await client.fetch_blob(ref, layer.digest))
        layer_digests.append(layer.digest)

    entry = SavedManifestEntry(
        config=config_digest,
        repo_tags=[ref.repo_string()],
        layers=layer_digests,
    )
    sink.write_index([entry])

    if progress_callback:
        progress_callback("Done", total, total)
    return entry
