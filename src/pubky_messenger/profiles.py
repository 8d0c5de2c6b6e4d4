"""
Pubky Messenger - Public profiles and the follow graph.

Profiles live at ``pubky://<key>/pub/pubky.app/profile.json``; an account's
follow list is at ``pubky://<key>/pub/pubky.app/follows/`` as a
newline-delimited list of URIs whose last segment is the followed key.
"""

import asyncio
import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from .constants import FOLLOWS_PATH, PROFILE_PATH
from .errors import ErrorCode, FormatError, StoreError
from .keys import Keypair, PublicKey
from .store import ObjectStore, build_uri, last_segment
from .utils import abbreviate_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Link:
    title: str
    url: str


@dataclass(frozen=True)
class PublicProfile:
    """An account's public profile object."""

    name: str
    bio: Optional[str] = None
    image: Optional[str] = None
    links: Optional[List[Link]] = None
    status: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PublicProfile":
        """
        Import a profile.

        Raises:
            FormatError: If required fields are missing or mistyped
        """
        if not isinstance(data, dict) or not isinstance(data.get("name"), str):
            raise FormatError(ErrorCode.E404_INVALID_PROFILE, "Profile has no name")

        for key in ("bio", "image", "status"):
            if data.get(key) is not None and not isinstance(data[key], str):
                raise FormatError(ErrorCode.E404_INVALID_PROFILE, f"Invalid profile field: {key}")

        links = None
        if data.get("links") is not None:
            raw_links = data["links"]
            if not isinstance(raw_links, list):
                raise FormatError(ErrorCode.E404_INVALID_PROFILE, "Profile links must be a list")
            try:
                links = [Link(title=item["title"], url=item["url"]) for item in raw_links]
            except (KeyError, TypeError) as e:
                raise FormatError(ErrorCode.E404_INVALID_PROFILE, f"Invalid profile link: {e}") from e

        return cls(
            name=data["name"],
            bio=data.get("bio"),
            image=data.get("image"),
            links=links,
            status=data.get("status"),
        )

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "PublicProfile":
        try:
            data = json.loads(text)
        except ValueError as e:
            raise FormatError(ErrorCode.E401_INVALID_JSON, f"Invalid profile JSON: {e}") from e
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FollowedUser:
    """A followed account and its display name, when one could be resolved."""

    public_key: str
    name: Optional[str] = None


@dataclass
class ResolveResult:
    """Profiles of followed accounts, in follow-list order."""

    users: List[FollowedUser] = field(default_factory=list)
    resolved: int = 0
    unresolved: int = 0


def profile_uri(public_key: Union[PublicKey, str]) -> str:
    return build_uri(public_key, PROFILE_PATH)


async def fetch_profile(store: ObjectStore, public_key: Union[PublicKey, str]) -> Optional[PublicProfile]:
    """
    Fetch and parse an account's public profile.

    Returns None when there is no profile or it cannot be parsed.

    Raises:
        StoreError: If the store cannot be reached
    """
    response = await store.get(profile_uri(public_key))
    if not response.ok:
        logger.debug(f"No profile found for {abbreviate_key(public_key)} ({response.status})")
        return None
    try:
        return PublicProfile.from_json(response.body)
    except FormatError as e:
        logger.warning(f"Failed to parse profile for {abbreviate_key(public_key)}: {e}")
        return None


async def list_follows(store: ObjectStore, keypair: Keypair) -> List[str]:
    """
    Public keys the account follows.

    A missing follow list is not an error: the result is empty.
    """
    uri = build_uri(keypair.public_key(), FOLLOWS_PATH)
    response = await store.get(uri)
    if not response.ok:
        logger.info(f"No follow list available ({response.status})")
        return []

    try:
        body = response.text()
    except UnicodeDecodeError:
        logger.warning("Follow list is not valid UTF-8")
        return []

    targets = [last_segment(line) for line in body.splitlines() if line.strip()]
    targets = [target for target in targets if target]
    logger.info(f"Found {len(targets)} followed users")
    return targets


async def _resolve_one(store: ObjectStore, target: str) -> FollowedUser:
    try:
        profile = await fetch_profile(store, target)
    except StoreError as e:
        logger.debug(f"Profile fetch failed for {abbreviate_key(target)}: {e}")
        profile = None
    return FollowedUser(public_key=target, name=profile.name if profile else None)


async def resolve_profiles(store: ObjectStore, targets: Sequence[str]) -> ResolveResult:
    """
    Fetch the profiles of all targets concurrently.

    Every target appears in the result, in input order; a target without a
    resolvable profile gets name=None.
    """
    users = await asyncio.gather(*(_resolve_one(store, target) for target in targets))

    result = ResolveResult(users=list(users))
    result.resolved = sum(1 for user in users if user.name is not None)
    result.unresolved = len(users) - result.resolved
    logger.info(
        f"Summary: {result.resolved} profiles found, {result.unresolved} without profiles"
    )
    return result


async def get_followed_users_with_profiles(store: ObjectStore, keypair: Keypair) -> ResolveResult:
    """List the account's follows and resolve their profiles."""
    targets = await list_follows(store, keypair)
    if not targets:
        return ResolveResult()
    return await resolve_profiles(store, targets)
