"""
Abstract base for upstream source clients.

Every client follows the same contract:
  1. Receive a shared ``httpx.AsyncClient`` and the immutable per-pass
     settings at construction.
  2. ``fetch(identity, token)`` is the sole public API and never raises for
     provider problems: it returns a typed record or ``None``.
  3. ``_fetch()`` is the provider-specific implementation (overridden by
     subclasses) and may raise freely; ``fetch()`` converts transport
     errors, non-2xx statuses, timeouts and malformed payloads into ``None``.

Clients only translate provider field names into the shared record
vocabulary.  Cross-source reconciliation belongs to the merger.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Generic, Optional, TypeVar

import httpx

from roster_audit.config import SourcesConfig
from roster_audit.models.character import CharacterIdentity

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT")

# Exceptions that mean "this provider gave us nothing usable".  ValueError
# covers JSON decoding and pydantic validation errors.
SOFT_FAILURES: tuple[type[BaseException], ...] = (
    httpx.HTTPError,
    ValueError,
    KeyError,
    TypeError,
    AttributeError,
    IndexError,
)


class SourceClient(ABC, Generic[RecordT]):
    """Base for all provider clients.

    Subclasses must:
      1. Set ``source`` (and ``requires_token`` if the provider is public).
      2. Implement ``_fetch(identity, token) -> RecordT | None``.

    Attributes:
        http: Shared async HTTP client for the pass.
        sources: Region/locale settings.
        timeout: Per-request timeout in seconds.
    """

    source: ClassVar[str]
    requires_token: ClassVar[bool] = True

    def __init__(
        self,
        http: httpx.AsyncClient,
        sources: SourcesConfig,
        timeout: float = 15.0,
    ) -> None:
        self.http = http
        self.sources = sources
        self.timeout = timeout

    async def fetch(self, identity: CharacterIdentity, token: str = "") -> Optional[RecordT]:
        """Fetch and normalize one character, or ``None`` on any soft failure."""
        if self.requires_token and not token:
            logger.debug("%s: no token this pass, skipping %s", self.source, identity.key)
            return None
        try:
            return await self._fetch(identity, token)
        except SOFT_FAILURES as exc:
            logger.warning(
                "%s fetch failed for %s: %s: %s",
                self.source, identity.key, type(exc).__name__, exc,
                extra={"character": identity.key},
            )
            return None

    @abstractmethod
    async def _fetch(self, identity: CharacterIdentity, token: str) -> Optional[RecordT]:
        ...

    async def _get_json(
        self,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Optional[Any]:
        """GET ``url`` and decode JSON; ``None`` on non-2xx, transport error or bad JSON.

        Used for sub-endpoints that may fail on their own without sinking
        the whole record.
        """
        try:
            resp = await self.http.get(url, params=params, headers=headers, timeout=self.timeout)
            if resp.status_code != 200:
                logger.debug("%s: GET %s -> %d", self.source, url, resp.status_code)
                return None
            return resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("%s: GET %s failed: %s", self.source, url, exc)
            return None
