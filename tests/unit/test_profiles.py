"""
Unit tests for pubky_messenger.profiles module.

Tests profile parsing, follow lists and concurrent profile resolution.
"""

import json

import pytest

from pubky_messenger.errors import ErrorCode, FormatError
from pubky_messenger.keys import Keypair
from pubky_messenger.profiles import (
    FollowedUser,
    PublicProfile,
    fetch_profile,
    get_followed_users_with_profiles,
    list_follows,
    profile_uri,
    resolve_profiles,
)
from pubky_messenger.store import build_uri


def _publish_profile(store, keypair, **fields):
    store.seed(profile_uri(keypair.public_key()), json.dumps(fields))


def _publish_follows(store, keypair, targets):
    lines = [build_uri(keypair.public_key(), f"/pub/pubky.app/follows/{t}") for t in targets]
    store.seed(build_uri(keypair.public_key(), "/pub/pubky.app/follows/"), "\n".join(lines) + "\n\n")


class TestPublicProfile:
    """Test profile parsing."""

    def test_full_profile(self):
        profile = PublicProfile.from_dict({
            "name": "Alice",
            "bio": "hi",
            "image": "pubky://x/pub/a.png",
            "links": [{"title": "site", "url": "https://example.org"}],
            "status": "away",
        })
        assert profile.name == "Alice"
        assert profile.links[0].url == "https://example.org"
        assert profile.to_dict()["links"] == [{"title": "site", "url": "https://example.org"}]

    def test_minimal_profile(self):
        profile = PublicProfile.from_json('{"name": "Bob"}')
        assert profile == PublicProfile(name="Bob")

    @pytest.mark.parametrize("data", [
        {},
        {"name": 5},
        {"name": "x", "bio": 3},
        {"name": "x", "links": "nope"},
        {"name": "x", "links": [{"title": "t"}]},
    ])
    def test_invalid_profiles(self, data):
        with pytest.raises(FormatError) as exc_info:
            PublicProfile.from_dict(data)
        assert exc_info.value.code == ErrorCode.E404_INVALID_PROFILE

    def test_invalid_json(self):
        with pytest.raises(FormatError) as exc_info:
            PublicProfile.from_json("{")
        assert exc_info.value.code == ErrorCode.E401_INVALID_JSON


@pytest.mark.asyncio
class TestFetchProfile:
    """Test fetching a single profile."""

    async def test_found(self, store, alice):
        _publish_profile(store, alice, name="Alice")
        profile = await fetch_profile(store, alice.public_key())
        assert profile.name == "Alice"

    async def test_missing(self, store, alice):
        assert await fetch_profile(store, alice.public_key()) is None

    async def test_unparseable(self, store, alice):
        store.seed(profile_uri(alice.public_key()), "{broken")
        assert await fetch_profile(store, str(alice.public_key())) is None


@pytest.mark.asyncio
class TestFollowGraph:
    """Test listing follows and resolving their profiles."""

    async def test_list_follows(self, store, alice, bob, carol):
        _publish_follows(store, alice, [bob.public_key(), carol.public_key()])
        assert await list_follows(store, alice) == [str(bob.public_key()), str(carol.public_key())]

    async def test_missing_follow_list(self, store, alice):
        assert await list_follows(store, alice) == []

    async def test_resolution_keeps_order_and_unresolved_entries(self, store, alice, bob, carol):
        dave = Keypair.random()
        _publish_profile(store, bob, name="Bob")
        _publish_profile(store, dave, name="Dave")
        targets = [str(bob.public_key()), str(carol.public_key()), str(dave.public_key())]

        result = await resolve_profiles(store, targets)

        assert result.users == [
            FollowedUser(targets[0], "Bob"),
            FollowedUser(targets[1], None),
            FollowedUser(targets[2], "Dave"),
        ]
        assert result.resolved == 2
        assert result.unresolved == 1

    async def test_store_failure_becomes_unresolved(self, store, bob, carol):
        _publish_profile(store, bob, name="Bob")
        _publish_profile(store, carol, name="Carol")
        store.failing_gets.add(profile_uri(carol.public_key()))

        result = await resolve_profiles(store, [str(bob.public_key()), str(carol.public_key())])

        assert [user.name for user in result.users] == ["Bob", None]

    async def test_followed_users_with_profiles(self, store, alice, bob):
        _publish_follows(store, alice, [bob.public_key()])
        _publish_profile(store, bob, name="Bob")

        result = await get_followed_users_with_profiles(store, alice)

        assert result.users == [FollowedUser(str(bob.public_key()), "Bob")]

    async def test_no_follows(self, store, alice):
        result = await get_followed_users_with_profiles(store, alice)
        assert result.users == []
        assert not any(call.endswith("profile.json") for call in store.calls)
