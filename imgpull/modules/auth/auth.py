"""
Registry bearer-token authentication.

Provides RegistryAuth, which every registry GET goes through:
- cached bearer token attached per (host, repository)
- first 401 of a session triggers the WWW-Authenticate handshake
- the failed request is retried exactly once
- invalidate() drops tokens and closes the HTTP client
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from imgpull.config import HTTP_TIMEOUT, REGISTRY_PASSWORD, REGISTRY_USERNAME
from imgpull.modules.errors import (
    AuthChallengeUnparseable,
    MissingAuthField,
    RegistryRequestFailed,
    TokenExchangeFailed,
)
from imgpull.modules.formatters import ImageReference

log = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "
CHALLENGE_FIELDS = ("realm", "service", "scope")

# first request + one retry after the handshake
MAX_ATTEMPTS = 2


@dataclass(frozen=True)
class BearerChallenge:
    """Parsed `WWW-Authenticate: Bearer realm=...,service=...,scope=...`."""
    realm: str
    service: str
    scope: str

    @property
    def repository(self) -> str:
        """
        Repository named by a `repository:<name>:<actions>` scope.

        The server's scope decides which repository the token is good for,
        so this, not the requested reference, keys the token cache.
        """
        _, sep, rest = self.scope.partition(":")
        if not sep:
            return self.scope
        return rest.partition(":")[0]


def parse_auth_challenge(header: Optional[str]) -> BearerChallenge:
    """
    Parse a Bearer challenge header.

    Keywords match case-insensitively; values keep their case.

    Raises:
        AuthChallengeUnparseable: not exactly three comma-separated
            key="value" fields, or not a Bearer challenge.
        MissingAuthField: realm, service or scope absent or empty.
    """
    if not header:
        raise AuthChallengeUnparseable(header)

    fields = header.strip().split(",")
    if len(fields) != len(CHALLENGE_FIELDS):
        raise AuthChallengeUnparseable(header)

    values = {}
    for idx, field in enumerate(fields):
        field = field.strip()
        if idx == 0:
            if field[:len(BEARER_PREFIX)].lower() != BEARER_PREFIX:
                raise AuthChallengeUnparseable(header)
            field = field[len(BEARER_PREFIX):].lstrip()
        key, sep, value = field.partition("=")
        if not sep:
            raise AuthChallengeUnparseable(header)
        values[key.strip().lower()] = value.strip().strip('"')

    for name in CHALLENGE_FIELDS:
        if not values.get(name):
            raise MissingAuthField(name)

    return BearerChallenge(
        realm=values["realm"],
        service=values["service"],
        scope=values["scope"],
    )


class RegistryAuth:
    """
    Per-invocation registry authentication state.

    Usage:
        async with RegistryAuth(username, password) as auth:
            resp = await auth.request_with_retry(ref, ref.manifest_url())

    The handshake is attempted at most once per instance; a later 401 is
    reported as RegistryRequestFailed instead of re-authenticating.
    Instances are meant for a single caller at a time.
    """

    def __init__(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            username: Registry username for the Basic-auth token exchange
                (falls back to IMGPULL_USERNAME)
            password: Registry password (falls back to IMGPULL_PASSWORD)
            client: Pre-built httpx.AsyncClient; owned and closed by this
                instance only when not supplied
        """
        self.username = username if username is not None else REGISTRY_USERNAME
        self.password = password if password is not None else REGISTRY_PASSWORD
        self.is_authenticated = False
        self.tokens: dict[tuple[str, str], str] = {}
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "RegistryAuth":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.invalidate()

    def get_client(self) -> httpx.AsyncClient:
        """Create the HTTP client on first call, reuse thereafter."""
        if self._client is None:
            # blob GETs commonly redirect to object storage
            self._client = httpx.AsyncClient(timeout=HTTP_TIMEOUT, follow_redirects=True)
        return self._client

    def token_for(self, host: str, repository: str) -> Optional[str]:
        return self.tokens.get((host, repository))

    async def _fetch_token(self, host: str, header: Optional[str]) -> str:
        """
        Exchange a Bearer challenge for a token and cache it.

        Credentials, when both are configured, are sent as HTTP Basic auth
        to the realm; otherwise the token is requested anonymously.
        """
        log.debug("Auth header www-authenticate: %s", header)
        challenge = parse_auth_challenge(header)
        log.debug(
            "bearer realm: %s, service: %s, scope: %s",
            challenge.realm, challenge.service, challenge.scope,
        )

        auth = None
        if self.username and self.password:
            auth = (self.username, self.password)

        resp = await self.get_client().get(
            challenge.realm,
            params={"service": challenge.service, "scope": challenge.scope},
            auth=auth,
        )
        if resp.status_code != 200:
            raise TokenExchangeFailed(resp.status_code)

        try:
            payload = resp.json()
        except ValueError as e:
            raise TokenExchangeFailed(resp.status_code, "auth endpoint returned invalid JSON") from e

        token = None
        if isinstance(payload, dict):
            token = payload.get("token") or payload.get("access_token")
        if not token:
            raise TokenExchangeFailed(resp.status_code, "auth endpoint returned no token")

        self.tokens[(host, challenge.repository)] = token
        log.info("Obtained pull token for %s/%s", host, challenge.repository)
        return token

    async def request_with_retry(
        self,
        ref: ImageReference,
        url: str,
        headers: Optional[dict] = None,
        stage: str = "manifest",
    ) -> httpx.Response:
        """
        GET `url` on behalf of `ref`, authenticating on the first 401.

        Args:
            ref: Reference whose (host, name) selects the cached token
            url: Full URL to request
            headers: Extra request headers (e.g. Accept)
            stage: Stage name reported on failure ("manifest" or "blob")

        Returns:
            The 200 httpx.Response, body already read

        Raises:
            RegistryRequestFailed: any non-200 status, including a 401
                after the handshake has been used up
            AuthError: the handshake itself failed
        """
        client = self.get_client()
        for _ in range(MAX_ATTEMPTS):
            request_headers = dict(headers or {})
            token = self.token_for(ref.host, ref.name)
            if token:
                request_headers["Authorization"] = f"Bearer {token}"

            log.info("GET %s", url)
            resp = await client.get(url, headers=request_headers)
            if resp.status_code == 200:
                return resp

            if resp.status_code == 401 and not self.is_authenticated:
                self.is_authenticated = True
                log.info("Unauthorized. Fetching pull token...")
                await self._fetch_token(ref.host, resp.headers.get("www-authenticate"))
                continue
            break

        raise RegistryRequestFailed(resp.status_code, url, stage=stage)

    async def invalidate(self) -> None:
        """
        Drop cached tokens and close the HTTP client if we created it.

        Call this when the invocation is done so tokens never outlive it.
        """
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        self.tokens.clear()
        self.is_authenticated = False
