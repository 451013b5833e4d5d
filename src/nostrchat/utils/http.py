"""HTTP helpers for the well-known lookups.

NIP-05 documents are fetched from arbitrary, user-named domains, so bodies
are read in chunks against a byte ceiling before any parsing happens.

See Also:
    [Nip05Resolver][nostrchat.nips.nip05.Nip05Resolver]: the only caller of
        [read_json_document][nostrchat.utils.http.read_json_document].
"""

from __future__ import annotations

import json
from typing import Any

import aiohttp


_CHUNK_SIZE = 4096


async def read_limited(response: aiohttp.ClientResponse, limit: int) -> bytes:
    """Collect the response body, refusing anything larger than *limit* bytes.

    Raises:
        ValueError: As soon as the running total passes *limit*.
    """
    body = bytearray()
    async for chunk in response.content.iter_chunked(_CHUNK_SIZE):
        body += chunk
        if len(body) > limit:
            raise ValueError(f"well-known document larger than {limit} bytes")
    return bytes(body)


async def read_json_document(response: aiohttp.ClientResponse, limit: int) -> dict[str, Any]:
    """Read a bounded body and decode it as a JSON object.

    Args:
        response: An unconsumed aiohttp response.
        limit: Byte ceiling passed to [read_limited][nostrchat.utils.http.read_limited].

    Raises:
        ValueError: Oversized body, invalid JSON (``json.JSONDecodeError`` is a
            ``ValueError``) or a top-level value that is not an object.
    """
    document = json.loads(await read_limited(response, limit))
    if not isinstance(document, dict):
        raise ValueError(f"well-known document is a {type(document).__name__}, not an object")
    return document
