"""
Pubky Messenger - Object store client.

The messenger treats the public-key-addressed store as an async key-value
service with four verbs (GET/PUT/LIST/DELETE) on URIs of the form
``pubky://<public-key>/<path>`` plus a sign-in handshake.

ObjectStore is the interface the protocol modules depend on.
HttpObjectStore implements it over HTTP against a single configured
homeserver; resolving which homeserver hosts a key is left to deployment.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Union

import aiohttp

from .constants import (
    AUTH_TOKEN_NAMESPACE,
    DEFAULT_HOMESERVER,
    SIGN_IN_PATH,
    STORE_REQUEST_TIMEOUT,
    URI_SCHEME,
)
from .errors import ErrorCode, FormatError, StoreError
from .keys import Keypair, PublicKey
from .utils import abbreviate_key, unix_timestamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreResponse:
    """Result of a GET."""

    status: int
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self) -> str:
        return self.body.decode("utf-8")


@dataclass(frozen=True)
class StoreSession:
    """Authenticated session returned by sign-in."""

    public_key: str
    token: Optional[str] = None


def is_success(status: int) -> bool:
    return 200 <= status < 300


def build_uri(public_key: Union[PublicKey, str], path: str) -> str:
    """Build ``pubky://<public-key><path>``; path must start with '/'."""
    if not path.startswith("/"):
        path = "/" + path
    return f"{URI_SCHEME}{public_key}{path}"


def split_uri(uri: str):
    """
    Split a store URI into (public key string, path).

    Raises:
        FormatError: If the URI does not use the store scheme
    """
    if not uri.startswith(URI_SCHEME):
        raise FormatError(ErrorCode.E406_INVALID_URI, f"Not a store URI: {uri}")
    rest = uri[len(URI_SCHEME):]
    owner, sep, path = rest.partition("/")
    if not owner:
        raise FormatError(ErrorCode.E406_INVALID_URI, f"Store URI has no public key: {uri}")
    return owner, sep + path


def last_segment(uri: str) -> str:
    """Trailing path segment, ignoring a trailing slash."""
    return uri.rstrip("/").rsplit("/", 1)[-1]


class ObjectStore(ABC):
    """Async remote key-value API the messenger core is written against."""

    @abstractmethod
    async def get(self, uri: str) -> StoreResponse:
        """Fetch an object. Non-2xx statuses are returned, not raised."""

    @abstractmethod
    async def put(self, uri: str, body: Union[str, bytes]) -> int:
        """Store an object and return the response status."""

    @abstractmethod
    async def list(self, prefix: str) -> List[str]:
        """List object URIs under a directory prefix; raises StoreError on failure."""

    @abstractmethod
    async def delete(self, uri: str) -> int:
        """Delete an object and return the response status."""

    @abstractmethod
    async def sign_in(self, keypair: Keypair) -> StoreSession:
        """Authenticate as keypair; raises StoreError on failure."""

    async def sign_out(self) -> None:
        """Drop any credentials held for the current identity."""

    async def close(self) -> None:
        """Release network resources."""


def create_auth_token(keypair: Keypair, timestamp: Optional[int] = None) -> bytes:
    """
    Build a sign-in token: signature(64) || timestamp(8, big-endian) || public key(32).

    The signature covers namespace || timestamp || public key.
    """
    if timestamp is None:
        timestamp = unix_timestamp()
    public = keypair.public_key().as_bytes()
    stamp = timestamp.to_bytes(8, "big")
    signature = keypair.sign(AUTH_TOKEN_NAMESPACE + stamp + public)
    return signature + stamp + public


class HttpObjectStore(ObjectStore):
    """
    HTTP store client for a single homeserver.

    ``pubky://<pk>/<path>`` maps to ``<homeserver>/<pk>/<path>``. LIST is a
    GET on the directory returning newline-delimited URIs. The aiohttp
    session is created lazily and keeps the sign-in cookie.
    """

    def __init__(self, homeserver: str = DEFAULT_HOMESERVER,
                 timeout: float = STORE_REQUEST_TIMEOUT):
        self.homeserver = homeserver.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    def _client(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    def url_for(self, uri: str) -> str:
        owner, path = split_uri(uri)
        return f"{self.homeserver}/{owner}{path}"

    async def _request(self, method: str, uri: str, code: ErrorCode,
                       data: Optional[bytes] = None) -> StoreResponse:
        url = self.url_for(uri)
        try:
            async with self._client().request(method, url, data=data) as resp:
                body = await resp.read()
                return StoreResponse(resp.status, body)
        except asyncio.TimeoutError as e:
            raise StoreError(
                ErrorCode.E302_REQUEST_TIMEOUT, f"{method} timed out", {"uri": uri}
            ) from e
        except aiohttp.ClientError as e:
            raise StoreError(
                code, f"{method} failed: {e}", {"uri": uri, "error": str(e)}
            ) from e

    async def get(self, uri: str) -> StoreResponse:
        return await self._request("GET", uri, ErrorCode.E304_READ_FAILED)

    async def put(self, uri: str, body: Union[str, bytes]) -> int:
        if isinstance(body, str):
            body = body.encode("utf-8")
        response = await self._request("PUT", uri, ErrorCode.E303_WRITE_FAILED, data=body)
        return response.status

    async def list(self, prefix: str) -> List[str]:
        if not prefix.endswith("/"):
            prefix += "/"
        response = await self._request("GET", prefix, ErrorCode.E305_LIST_FAILED)
        if response.status == 404:
            return []
        if not response.ok:
            raise StoreError(
                ErrorCode.E305_LIST_FAILED,
                f"LIST returned status {response.status}",
                {"uri": prefix, "status": response.status},
            )
        return [line.strip() for line in response.text().splitlines() if line.strip()]

    async def delete(self, uri: str) -> int:
        response = await self._request("DELETE", uri, ErrorCode.E306_DELETE_FAILED)
        return response.status

    async def sign_in(self, keypair: Keypair) -> StoreSession:
        public_key = str(keypair.public_key())
        url = f"{self.homeserver}{SIGN_IN_PATH}"
        token = create_auth_token(keypair)

        try:
            async with self._client().post(url, data=token) as resp:
                if not is_success(resp.status):
                    raise StoreError(
                        ErrorCode.E307_SIGN_IN_FAILED,
                        f"Sign in rejected with status {resp.status}",
                        {"status": resp.status},
                    )
                session_token = (await resp.read()).decode("utf-8", errors="replace") or None
        except asyncio.TimeoutError as e:
            raise StoreError(ErrorCode.E302_REQUEST_TIMEOUT, "Sign in timed out") from e
        except aiohttp.ClientError as e:
            raise StoreError(
                ErrorCode.E301_CONNECTION_FAILED, f"Homeserver unreachable: {e}"
            ) from e

        logger.info(f"Signed in as {abbreviate_key(public_key)} at {self.homeserver}")
        return StoreSession(public_key=public_key, token=session_token)

    async def sign_out(self) -> None:
        """Close the session so its cookie jar goes with it; the next request opens a fresh one."""
        await self.close()
        logger.info(f"Signed out of {self.homeserver}")

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
