"""
Pytest configuration and fixtures for Pubky Messenger tests.

Provides common fixtures and test utilities for unit and integration tests,
including an in-memory object store standing in for a homeserver.
"""

import shutil
import tempfile
from pathlib import Path
from typing import AsyncGenerator, Dict, Generator, List, Optional, Set, Union

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from pubky_messenger import vault
from pubky_messenger.config import Config
from pubky_messenger.constants import AUTH_TOKEN_NAMESPACE
from pubky_messenger.errors import ErrorCode, StoreError
from pubky_messenger.keys import Keypair, PublicKey
from pubky_messenger.state import SessionState
from pubky_messenger.store import ObjectStore, StoreResponse, StoreSession


class MemoryStore(ObjectStore):
    """
    In-memory ObjectStore with failure injection.

    Objects are kept in insertion order. Every call is recorded so tests
    can assert on what was (and was not) requested.
    """

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.calls: List[str] = []
        self.deleted: List[str] = []
        self.signed_in: List[str] = []

        self.put_status: int = 201
        self.delete_status: int = 204
        self.get_status: Dict[str, int] = {}
        self.failing_gets: Set[str] = set()
        self.failing_lists: Set[str] = set()
        self.failing_deletes: Set[str] = set()
        self.fail_puts_under: Optional[str] = None
        self.reject_sign_in = False
        self.closed = False

    def seed(self, uri: str, body: Union[str, bytes]) -> None:
        self.objects[uri] = body.encode("utf-8") if isinstance(body, str) else body

    def under(self, prefix: str) -> List[str]:
        return [uri for uri in self.objects if uri.startswith(prefix)]

    async def get(self, uri: str) -> StoreResponse:
        self.calls.append(f"GET {uri}")
        if uri in self.failing_gets:
            raise StoreError(ErrorCode.E304_READ_FAILED, "injected read failure")
        if uri in self.get_status:
            return StoreResponse(self.get_status[uri])
        if uri not in self.objects:
            return StoreResponse(404)
        return StoreResponse(200, self.objects[uri])

    async def put(self, uri: str, body: Union[str, bytes]) -> int:
        self.calls.append(f"PUT {uri}")
        if self.fail_puts_under is not None and uri.startswith(self.fail_puts_under):
            return 500
        if 200 <= self.put_status < 300:
            self.seed(uri, body)
        return self.put_status

    async def list(self, prefix: str) -> List[str]:
        self.calls.append(f"LIST {prefix}")
        if not prefix.endswith("/"):
            prefix += "/"
        if prefix in self.failing_lists:
            raise StoreError(ErrorCode.E305_LIST_FAILED, "injected list failure")
        return self.under(prefix)

    async def delete(self, uri: str) -> int:
        self.calls.append(f"DELETE {uri}")
        if uri in self.failing_deletes:
            raise StoreError(ErrorCode.E306_DELETE_FAILED, "injected delete failure")
        if 200 <= self.delete_status < 300:
            self.objects.pop(uri, None)
            self.deleted.append(uri)
        return self.delete_status

    async def sign_in(self, keypair: Keypair) -> StoreSession:
        public_key = str(keypair.public_key())
        self.calls.append(f"SIGNIN {public_key}")
        if self.reject_sign_in:
            raise StoreError(ErrorCode.E307_SIGN_IN_FAILED, "injected sign-in failure")
        self.signed_in.append(public_key)
        return StoreSession(public_key=public_key)

    async def sign_out(self) -> None:
        self.calls.append("SIGNOUT")
        self.signed_in.clear()

    async def close(self) -> None:
        self.closed = True


def homeserver_app(objects: dict) -> web.Application:
    """Minimal homeserver: raw object storage plus directory listings."""

    async def session(request: web.Request) -> web.Response:
        token = await request.read()
        if len(token) != 104:
            return web.Response(status=400)
        public = PublicKey(token[72:])
        if not public.verify(AUTH_TOKEN_NAMESPACE + token[64:104], token[:64]):
            return web.Response(status=401)
        return web.Response(text="session-token")

    async def objects_handler(request: web.Request) -> web.Response:
        owner, path = request.match_info["owner"], "/" + request.match_info["path"]
        key = f"pubky://{owner}{path}"

        if request.method == "PUT":
            objects[key] = await request.read()
            return web.Response(status=201)
        if request.method == "DELETE":
            if objects.pop(key, None) is None:
                return web.Response(status=404)
            return web.Response(status=204)

        if path.endswith("/"):
            entries = [uri for uri in objects if uri.startswith(key)]
            if not entries:
                return web.Response(status=404)
            return web.Response(text="\n".join(entries) + "\n")
        if key not in objects:
            return web.Response(status=404)
        return web.Response(body=objects[key])

    async def broken(request: web.Request) -> web.Response:
        return web.Response(status=500)

    app = web.Application()
    app.router.add_post("/session", session)
    app.router.add_route("*", "/broken/{path:.*}", broken)
    app.router.add_route("*", "/{owner}/{path:.*}", objects_handler)
    return app


class Homeserver:
    """A running local homeserver and the objects it holds."""

    def __init__(self, server: TestServer, objects: Dict[str, bytes]):
        self.server = server
        self.objects = objects

    @property
    def url(self) -> str:
        return str(self.server.make_url("/"))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test data.

    Yields:
        Path: Temporary directory path

    Cleanup:
        Automatically removes directory after test
    """
    tmp = Path(tempfile.mkdtemp(prefix="pubky_messenger_test_"))
    try:
        yield tmp
    finally:
        shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def alice() -> Keypair:
    return Keypair.random()


@pytest.fixture
def bob() -> Keypair:
    return Keypair.random()


@pytest.fixture
def carol() -> Keypair:
    return Keypair.random()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def config(temp_dir: Path) -> Config:
    """
    Configuration isolated in temp_dir.

    Session persistence is off by default so tests that do not exercise
    the vault skip the Argon2 derivation.
    """
    cfg = Config(temp_dir / "config.toml")
    cfg.set("vault", "session_file", str(temp_dir / "session.blob"))
    cfg.set("vault", "remember_session", False)
    return cfg


@pytest.fixture
def session_state() -> SessionState:
    return SessionState()


@pytest_asyncio.fixture
async def homeserver() -> AsyncGenerator[Homeserver, None]:
    """Start a local homeserver for the duration of a test."""
    objects: Dict[str, bytes] = {}
    server = TestServer(homeserver_app(objects))
    await server.start_server()
    try:
        yield Homeserver(server, objects)
    finally:
        await server.close()


@pytest.fixture
def fixed_device(monkeypatch) -> bytes:
    """Pin device entropy so vault results do not depend on the host."""
    entropy = b"test-hostjane-doepubky-private-messenger"
    monkeypatch.setattr(vault, "device_entropy", lambda: entropy)
    return entropy


# Pytest marks
def pytest_configure(config):
    """
    Configure pytest markers.

    Args:
        config: Pytest configuration object
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# Test collection hooks
def pytest_collection_modifyitems(config, items):
    """
    Modify test collection to add markers based on test location.

    Args:
        config: Pytest configuration
        items: List of collected test items
    """
    for item in items:
        # Add unit marker to tests in unit/ directory
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
