"""
Unit tests for utils.http module.

Tests:
- read_limited() chunk accumulation and size ceiling
- read_json_document() object-only decoding
"""

import json

import pytest

from nostrchat.utils.http import read_json_document, read_limited


class _Content:
    def __init__(self, chunks):
        self._chunks = chunks

    async def _iterate(self):
        for chunk in self._chunks:
            yield chunk

    def iter_chunked(self, size):
        return self._iterate()


class _Response:
    def __init__(self, *chunks):
        self.content = _Content(list(chunks))


class TestReadLimited:
    @pytest.mark.asyncio
    async def test_joins_chunks(self):
        assert await read_limited(_Response(b"ab", b"cd"), 4) == b"abcd"

    @pytest.mark.asyncio
    async def test_empty_body(self):
        assert await read_limited(_Response(), 10) == b""

    @pytest.mark.asyncio
    async def test_over_limit(self):
        with pytest.raises(ValueError, match="larger than 3"):
            await read_limited(_Response(b"ab", b"cd"), 3)


class TestReadJsonDocument:
    @pytest.mark.asyncio
    async def test_object(self):
        body = json.dumps({"names": {"bob": "b" * 64}}).encode()
        document = await read_json_document(_Response(body[:10], body[10:]), 1024)
        assert document == {"names": {"bob": "b" * 64}}

    @pytest.mark.asyncio
    async def test_not_an_object(self):
        with pytest.raises(ValueError, match="not an object"):
            await read_json_document(_Response(b"[1, 2]"), 1024)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        with pytest.raises(ValueError):
            await read_json_document(_Response(b"{nope"), 1024)
