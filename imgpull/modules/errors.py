"""
Exception types for imgpull.

Every error raised by the parser, the registry client and the orchestrator
inherits from ImagePullError and records the stage it failed in
("parse", "manifest", "blob", "auth").

    ImagePullError
    ├── InvalidReference
    ├── RegistryRequestFailed
    ├── AuthError
    │   ├── AuthChallengeUnparseable
    │   ├── MissingAuthField
    │   └── TokenExchangeFailed
    └── UnsupportedImageFormat

Transport failures (httpx.TransportError) and asyncio.CancelledError are
not wrapped and reach the caller unchanged.
"""

from typing import Any, Optional


class ImagePullError(Exception):
    """Base class for all imgpull errors."""

    stage = "unknown"

    def __init__(self, message: str, stage: Optional[str] = None, **details: Any):
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage
        self.details = details

    def __str__(self) -> str:
        return f"[{self.stage}] {self.message}"


class InvalidReference(ImagePullError):
    """The image reference string could not be parsed."""

    stage = "parse"

    def __init__(self, reference: str, reason: str = "invalid image format"):
        super().__init__(f"{reason}: {reference!r}", reference=reference)
        self.reference = reference
        self.reason = reason


class RegistryRequestFailed(ImagePullError):
    """A manifest or blob request ended with a status other than 200."""

    def __init__(self, status_code: int, url: str, stage: str = "manifest"):
        super().__init__(
            f"registry returned HTTP {status_code} for {url}",
            stage=stage,
            status_code=status_code,
            url=url,
        )
        self.status_code = status_code
        self.url = url


class AuthError(ImagePullError):
    """Bearer token handshake failed."""

    stage = "auth"


class AuthChallengeUnparseable(AuthError):
    """WWW-Authenticate header is not a three-field Bearer challenge."""

    def __init__(self, header: Optional[str]):
        super().__init__(f"could not parse www-authenticate header: {header!r}", header=header)
        self.header = header


class MissingAuthField(AuthError):
    """A Bearer challenge lacks realm, service or scope."""

    def __init__(self, field: str):
        super().__init__(f"missing {field} in bearer auth challenge", field=field)
        self.field = field


class TokenExchangeFailed(AuthError):
    """The token realm refused to issue a token."""

    def __init__(self, status_code: int, reason: str = "failed to get auth token"):
        super().__init__(f"{reason}, response code {status_code}", status_code=status_code)
        self.status_code = status_code


class UnsupportedImageFormat(ImagePullError):
    """Manifest is a list/index or has no config blob ("fat" image)."""

    stage = "manifest"

    def __init__(self, media_type: str = "", reason: str = ""):
        shown = media_type or "unknown media type"
        message = reason or "fat or config-less images are not supported"
        super().__init__(f"{message} ({shown})", media_type=media_type)
        self.media_type = media_type
