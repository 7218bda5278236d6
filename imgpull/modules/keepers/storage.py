# storage.py - Output sinks for fetched images
#
# DirectorySink writes loose files; TarArchiveSink writes a single archive
# laid out the way `docker load` / `podman load` expect:
#   manifest.json          (first entry)
#   <config digest>        (one entry per blob, named by its full digest)
#   <layer digest> ...

import io
import logging
import os
import tarfile
import tempfile

from imgpull.modules.errors import ImagePullError
from imgpull.modules.formatters.reference import DIGEST_PATTERN
from imgpull.modules.keepers.manifests import SavedManifestEntry, saved_manifest_bytes

log = logging.getLogger(__name__)

INDEX_FILENAME = "manifest.json"
ENTRY_MODE = 0o644

SINK_FORMATS = ("tar", "dir")


def _check_digest(digest: str) -> str:
    """Digests become file names, so only well-formed ones are accepted."""
    if not DIGEST_PATTERN.fullmatch(digest or ""):
        raise ImagePullError(f"refusing to store blob with malformed digest {digest!r}", stage="blob")
    return digest


# =============================================================================
# Loose Files
# =============================================================================

class DirectorySink:
    """Write config, layers and manifest.json as files in one directory."""

    def __init__(self, output_dir: str):
        self.output_dir = output_dir
        os.makedirs(output_dir, exist_ok=True)

    def __enter__(self) -> "DirectorySink":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _write(self, name: str, data: bytes) -> str:
        path = os.path.join(self.output_dir, name)
        with open(path, "wb") as f:
            f.write(data)
        log.info("Saved %s (%d bytes)", path, len(data))
        return path

    def write_config(self, digest: str, data: bytes) -> None:
        self._write(_check_digest(digest), data)

    def write_layer(self, digest: str, data: bytes) -> None:
        self._write(_check_digest(digest), data)

    def write_index(self, entries: list[SavedManifestEntry]) -> None:
        self._write(INDEX_FILENAME, saved_manifest_bytes(entries))

    def close(self) -> None:
        """Nothing to release: every file is closed as soon as it is written."""


# =============================================================================
# Tar Archive
# =============================================================================

class TarArchiveSink:
    """
    Write a runtime-loadable tar archive.

    manifest.json must be the first entry but is only known after every
    blob has been fetched, so blobs are staged in a temporary directory and
    the archive is written in one pass by write_index().
    """

    def __init__(self, path: str):
        self.path = path
        self._staging = tempfile.TemporaryDirectory(prefix="imgpull-")
        self._staged: dict[str, str] = {}

    def __enter__(self) -> "TarArchiveSink":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _stage(self, digest: str, data: bytes) -> None:
        _check_digest(digest)
        if digest in self._staged:
            return
        staged_path = os.path.join(self._staging.name, f"blob-{len(self._staged):04d}")
        with open(staged_path, "wb") as f:
            f.write(data)
        self._staged[digest] = staged_path

    def write_config(self, digest: str, data: bytes) -> None:
        self._stage(digest, data)

    def write_layer(self, digest: str, data: bytes) -> None:
        self._stage(digest, data)

    def write_index(self, entries: list[SavedManifestEntry]) -> None:
        payload = saved_manifest_bytes(entries)

        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)

        with tarfile.open(self.path, "w") as tar:
            info = tarfile.TarInfo(INDEX_FILENAME)
            info.size = len(payload)
            info.mode = ENTRY_MODE
            tar.addfile(info, io.BytesIO(payload))

            # dicts keep insertion order: config first, then layers
            for digest, staged_path in self._staged.items():
                info = tarfile.TarInfo(digest)
                info.size = os.path.getsize(staged_path)
                info.mode = ENTRY_MODE
                with open(staged_path, "rb") as f:
                    tar.addfile(info, f)

        log.info("Wrote %s with %d blobs", self.path, len(self._staged))

    def close(self) -> None:
        self._staging.cleanup()


def open_sink(path: str, fmt: str = "tar"):
    """Build the sink for an output format ("tar" or "dir")."""
    if fmt == "dir":
        return DirectorySink(path)
    if fmt == "tar":
        return TarArchiveSink(path)
    raise ValueError(f"unknown output format {fmt!r}, expected one of {SINK_FORMATS}")
