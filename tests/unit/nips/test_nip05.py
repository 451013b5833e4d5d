"""
Unit tests for nips.nip05 module.

Tests:
- split_identifier() parsing and root identity
- extract_pubkey() document validation
- Nip05Resolver.resolve_well_known() success and failure paths
"""

from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from nostrchat.nips.nip05 import Nip05Resolver, extract_pubkey, split_identifier


KEY = "ab" * 32


class TestSplitIdentifier:
    def test_local_and_domain(self):
        assert split_identifier("Alice@Example.com") == ("alice", "example.com")

    def test_root_identity(self):
        assert split_identifier("@example.com") == ("_", "example.com")

    @pytest.mark.parametrize("value", ["alice", "alice@", "al ice@example.com", "a@localhost"])
    def test_invalid(self, value):
        assert split_identifier(value) is None


class TestExtractPubkey:
    def test_found(self):
        assert extract_pubkey({"names": {"alice": KEY.upper()}}, "alice") == KEY

    @pytest.mark.parametrize(
        "data",
        [
            None,
            [],
            {"names": []},
            {"names": {"bob": KEY}},
            {"names": {"alice": 42}},
            {"names": {"alice": "short"}},
            {"names": {"alice": "zz" * 32}},
        ],
    )
    def test_not_found(self, data):
        assert extract_pubkey(data, "alice") is None


class TestResolver:
    def test_well_known_url(self):
        assert Nip05Resolver.well_known_url("example.com") == (
            "https://example.com/.well-known/nostr.json"
        )

    @pytest.mark.asyncio
    async def test_resolves(self):
        resolver = Nip05Resolver()
        with patch.object(
            resolver, "_fetch", AsyncMock(return_value={"names": {"alice": KEY}})
        ) as fetch:
            assert await resolver.resolve_well_known("alice", "example.com") == KEY
        fetch.assert_awaited_once_with("alice", "example.com")

    @pytest.mark.asyncio
    async def test_resolve_full_identifier(self):
        resolver = Nip05Resolver()
        with patch.object(resolver, "_fetch", AsyncMock(return_value={"names": {"_": KEY}})):
            assert await resolver.resolve("@example.com") == KEY

    @pytest.mark.asyncio
    async def test_invalid_identifier_skips_fetch(self):
        resolver = Nip05Resolver()
        with patch.object(resolver, "_fetch", AsyncMock()) as fetch:
            assert await resolver.resolve("nobody") is None
        fetch.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [aiohttp.ClientError("down"), TimeoutError(), ValueError("HTTP 404"), OSError("dns")],
    )
    async def test_errors_return_none(self, error):
        resolver = Nip05Resolver()
        with patch.object(resolver, "_fetch", AsyncMock(side_effect=error)):
            assert await resolver.resolve_well_known("alice", "example.com") is None

    @pytest.mark.asyncio
    async def test_missing_name_returns_none(self):
        resolver = Nip05Resolver()
        with patch.object(resolver, "_fetch", AsyncMock(return_value={"names": {}})):
            assert await resolver.resolve_well_known("alice", "example.com") is None
