import logging
from typing import Optional

import httpx

from imgpull.modules.auth import RegistryAuth
from imgpull.modules.formatters import ImageReference
from imgpull.modules.keepers.manifests import DEFAULT_REQUESTED_MANIFEST_TYPES

log = logging.getLogger(__name__)

ACCEPT_HEADER = ", ".join(DEFAULT_REQUESTED_MANIFEST_TYPES)


class RegistryClient:
    """
    Distribution v2 client for one invocation.

    Manifest and blob GETs share RegistryAuth.request_with_retry(), so the
    bearer handshake happens at most once no matter which request hits 401.
    """

    def __init__(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        auth: Optional[RegistryAuth] = None,
    ):
        self.auth = auth or RegistryAuth(username, password, client=http_client)

    async def __aenter__(self) -> "RegistryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self.auth.invalidate()

    # =========================================================================
    # Manifest & Blob Fetching
    # =========================================================================

    async def fetch_manifest(self, ref: ImageReference) -> bytes:
        """Fetch the raw manifest bytes for `ref`'s tag or digest."""
        url = ref.manifest_url()
        log.info("Image manifest URL: %s", url)
        resp = await self.auth.request_with_retry(
            ref, url, headers={"Accept": ACCEPT_HEADER}, stage="manifest"
        )
        return resp.content

    async def fetch_blob(self, ref: ImageReference, digest: str) -> bytes:
        """Fetch a config or layer blob from `ref`'s repository."""
        url = ref.blob_url(digest)
        log.info("Blob URL: %s", url)
        resp = await self.auth.request_with_retry(
            ref, url, headers={"Accept": ACCEPT_HEADER}, stage="blob"
        )
        return resp.content
