"""
NIP-05 identifier resolution over HTTPS.

Maps an internet identifier ``local@domain`` to a public key by fetching
``https://<domain>/.well-known/nostr.json?name=<local>`` and reading the
``names`` object. Used only by mention resolution when composing a direct
message from free text.

Warning:
    [Nip05Resolver.resolve_well_known()][nostrchat.nips.nip05.Nip05Resolver.resolve_well_known]
    **never raises** for network or payload errors; it returns ``None`` and
    logs the reason at debug level.
"""

from __future__ import annotations

import asyncio
import logging
import re
from http import HTTPStatus
from typing import Any, ClassVar

import aiohttp

from nostrchat.models.constants import HEX_KEY_LENGTH
from nostrchat.utils.http import read_json_document


logger = logging.getLogger("nostrchat.nips.nip05")

_LOCAL_PART = re.compile(r"^[a-z0-9._-]+$")
_DOMAIN = re.compile(r"^[a-z0-9.-]+\.[a-z]{2,}(:\d{1,5})?$")


def split_identifier(identifier: str) -> tuple[str, str] | None:
    """Split ``local@domain`` into lowercase parts, or ``None`` if it is not one.

    A bare ``@domain`` or ``_@domain`` addresses the domain's root identity ``_``.
    """
    local, sep, domain = identifier.strip().lower().rpartition("@")
    if not sep or not domain:
        return None
    local = local or "_"
    if not _LOCAL_PART.match(local) or not _DOMAIN.match(domain):
        return None
    return local, domain


def extract_pubkey(data: Any, local: str) -> str | None:
    """Return the hex key registered for *local* in a ``nostr.json`` document."""
    if not isinstance(data, dict):
        return None
    names = data.get("names")
    if not isinstance(names, dict):
        return None
    pubkey = names.get(local)
    if not isinstance(pubkey, str):
        return None
    pubkey = pubkey.lower()
    if len(pubkey) != HEX_KEY_LENGTH:
        return None
    try:
        bytes.fromhex(pubkey)
    except ValueError:
        return None
    return pubkey


class Nip05Resolver:
    """Well-known identifier resolver built on ``aiohttp``.

    Args:
        timeout: Total request timeout in seconds.
        max_size: Maximum accepted response size in bytes.
        session: Optional shared session; one is created per lookup otherwise.
    """

    _MAX_SIZE: ClassVar[int] = 65_536

    def __init__(
        self,
        timeout: float = 5.0,  # noqa: ASYNC109
        max_size: int | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._timeout = timeout
        self._max_size = max_size or self._MAX_SIZE
        self._session = session

    @staticmethod
    def well_known_url(domain: str) -> str:
        return f"https://{domain}/.well-known/nostr.json"

    async def _fetch(self, local: str, domain: str) -> dict[str, Any]:
        """GET the well-known document and return its parsed JSON body.

        Raises:
            ValueError: On a non-200 status, an oversized body or invalid JSON.
            aiohttp.ClientError: On connection failures.
        """
        url = self.well_known_url(domain)
        timeout = aiohttp.ClientTimeout(total=self._timeout)
        if self._session is not None:
            async with self._session.get(url, params={"name": local}, timeout=timeout) as resp:
                return await self._read(resp)
        async with (
            aiohttp.ClientSession(timeout=timeout) as session,
            session.get(url, params={"name": local}) as resp,
        ):
            return await self._read(resp)

    async def _read(self, resp: aiohttp.ClientResponse) -> dict[str, Any]:
        if resp.status != HTTPStatus.OK:
            raise ValueError(f"HTTP {resp.status}")
        return await read_json_document(resp, self._max_size)

    async def resolve_well_known(self, local: str, domain: str) -> str | None:
        """Resolve ``local@domain`` to a hex public key, or ``None``."""
        try:
            data = await self._fetch(local, domain)
        except asyncio.CancelledError:
            raise
        except (OSError, TimeoutError, aiohttp.ClientError, ValueError) as e:
            logger.debug("nip05_failed local=%s domain=%s error=%s", local, domain, e)
            return None

        pubkey = extract_pubkey(data, local)
        if pubkey is None:
            logger.debug("nip05_not_found local=%s domain=%s", local, domain)
        else:
            logger.debug("nip05_resolved local=%s domain=%s", local, domain)
        return pubkey

    async def resolve(self, identifier: str) -> str | None:
        """Resolve a full ``local@domain`` identifier."""
        parts = split_identifier(identifier)
        if parts is None:
            return None
        return await self.resolve_well_known(*parts)
