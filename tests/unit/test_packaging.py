"""
Unit tests for the declared dependency bounds.

Tests:
- nostr-sdk is pinned to the release line whose API the transport uses
- The installed nostr-sdk exposes the relay and notification types
"""

import tomllib
from importlib.metadata import version
from pathlib import Path

import nostr_sdk


PYPROJECT = Path(__file__).resolve().parents[2] / "pyproject.toml"


def _dependencies():
    with PYPROJECT.open("rb") as f:
        return tomllib.load(f)["project"]["dependencies"]


class TestNostrSdkPin:
    def test_bounded_release_line(self):
        assert "nostr-sdk>=0.43,<0.45" in _dependencies()

    def test_installed_version_within_bounds(self):
        major, minor = (int(part) for part in version("nostr-sdk").split(".")[:2])
        assert (0, 43) <= (major, minor) < (0, 45)

    def test_transport_api_available(self):
        for name in ("RelayUrl", "HandleNotification", "EventBuilder", "Filter", "Keys"):
            assert hasattr(nostr_sdk, name), name
