"""
OAuth2 client-credentials tokens for the upstream providers.

Credential setup (.env, gitignored):
  BLIZZARD_CLIENT_ID=...
  BLIZZARD_CLIENT_SECRET=...
  WCL_CLIENT_ID=...
  WCL_CLIENT_SECRET=...

OAuth2 flow (both providers):
  POST <token_url>
    → Body: grant_type=client_credentials
    → Auth: Basic (client_id:client_secret)
    → Returns: {"access_token": "...", "expires_in": 86399}

Tokens are fetched once per sync pass by ``TokenProvider.fetch_pass_tokens()``
and handed to workers as a read-only ``PassTokens``.  Nothing is cached
beyond the provider instance, which lives for one pass.

A failed exchange (missing credentials, transport error, non-2xx, missing
``access_token``) yields an empty token.  Callers treat ``""`` as "source
unavailable this pass".
"""

from __future__ import annotations

import asyncio
import base64
import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import ClassVar

import httpx

logger = logging.getLogger(__name__)

SOURCE_BLIZZARD = "blizzard"
SOURCE_RAIDERIO = "raiderio"
SOURCE_WARCRAFTLOGS = "warcraftlogs"

# Sources that need a bearer token; Raider.IO is public.
TOKEN_SOURCES: tuple[str, ...] = (SOURCE_BLIZZARD, SOURCE_WARCRAFTLOGS)


@dataclass(frozen=True)
class ClientCredentials:
    client_id: str = ""
    client_secret: str = ""

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def basic_auth_header(self) -> str:
        raw = f"{self.client_id}:{self.client_secret}".encode()
        return f"Basic {base64.b64encode(raw).decode()}"


def load_credentials() -> dict[str, ClientCredentials]:
    """Read provider credentials from the environment (``.env`` is loaded by ``load_config``)."""
    return {
        SOURCE_BLIZZARD: ClientCredentials(
            client_id=os.environ.get("BLIZZARD_CLIENT_ID", ""),
            client_secret=os.environ.get("BLIZZARD_CLIENT_SECRET", ""),
        ),
        SOURCE_WARCRAFTLOGS: ClientCredentials(
            client_id=os.environ.get("WCL_CLIENT_ID", ""),
            client_secret=os.environ.get("WCL_CLIENT_SECRET", ""),
        ),
    }


@dataclass(frozen=True)
class PassTokens:
    """Bearer tokens fetched for one sync pass; shared read-only by all workers."""

    tokens: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tokens", MappingProxyType(dict(self.tokens)))

    def get(self, source: str) -> str:
        return self.tokens.get(source, "")

    def available(self, source: str) -> bool:
        return bool(self.get(source))


class TokenProvider:
    """Client-credentials exchange per source, cached for the provider's lifetime.

    Usage::

        async with httpx.AsyncClient() as http:
            provider = TokenProvider(http, load_credentials(), region="eu")
            tokens = await provider.fetch_pass_tokens()
            tokens.get("blizzard")   # "" if the exchange failed
    """

    TOKEN_URL_TEMPLATES: ClassVar[dict[str, str]] = {
        SOURCE_BLIZZARD: "https://{region}.battle.net/oauth/token",
        SOURCE_WARCRAFTLOGS: "https://www.warcraftlogs.com/oauth/token",
    }

    def __init__(
        self,
        http: httpx.AsyncClient,
        credentials: Mapping[str, ClientCredentials],
        region: str = "eu",
        timeout: float = 15.0,
    ) -> None:
        self.http = http
        self.credentials = credentials
        self.region = region
        self.timeout = timeout
        self._cache: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def get_token(self, source: str) -> str:
        """Return a bearer token for ``source``, or ``""`` if one cannot be obtained."""
        async with self._lock:
            if source not in self._cache:
                self._cache[source] = await self._exchange(source)
            return self._cache[source]

    async def fetch_pass_tokens(self, sources: Iterable[str] = TOKEN_SOURCES) -> PassTokens:
        tokens = {source: await self.get_token(source) for source in sources}
        logger.info(
            "Tokens for this pass: %s",
            ", ".join(f"{s}={'ok' if t else 'unavailable'}" for s, t in tokens.items()),
        )
        return PassTokens(tokens)

    async def _exchange(self, source: str) -> str:
        template = self.TOKEN_URL_TEMPLATES.get(source)
        creds = self.credentials.get(source)
        if template is None:
            logger.warning("No token endpoint known for source=%s", source)
            return ""
        if creds is None or not creds.configured:
            logger.warning("No credentials configured for source=%s; skipping it this pass.", source)
            return ""

        try:
            resp = await self.http.post(
                template.format(region=self.region),
                headers={
                    "Authorization": creds.basic_auth_header(),
                    "Content-Type": "application/x-www-form-urlencoded",
                },
                data={"grant_type": "client_credentials"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            token = resp.json().get("access_token") or ""
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            logger.warning("Token exchange failed for source=%s: %s", source, exc)
            return ""

        if token:
            logger.info("OAuth2 token obtained for source=%s", source)
        else:
            logger.warning("Token response for source=%s had no access_token", source)
        return token
