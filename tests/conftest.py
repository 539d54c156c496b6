"""Shared fixtures: a scriptable upstream and a fake llama-server process."""

from __future__ import annotations

import subprocess
from typing import Callable, List, Optional

import httpx
import pytest
import pytest_asyncio

from llama_sidecar.api.context import AppContext
from llama_sidecar.api.proxy import ProxyTarget, create_upstream_client
from llama_sidecar.app import create_app
from llama_sidecar.process import ChildSupervisor

UPSTREAM_HOST = "127.0.0.1"
UPSTREAM_PORT = 8080

CHAT_OK_BODY = b'{"choices":[{"message":{"content":"OK"}}]}'


class FakeProc:
    """Stands in for subprocess.Popen."""

    def __init__(
        self,
        args: Optional[List[str]] = None,
        pid: int = 4242,
        kill_error: Optional[OSError] = None,
        wait_error: Optional[BaseException] = None,
    ) -> None:
        self.args = args or []
        self.pid = pid
        self.returncode: Optional[int] = None
        self.kill_error = kill_error
        self.wait_error = wait_error
        self.kill_calls = 0
        self.wait_calls = 0

    def poll(self) -> Optional[int]:
        return self.returncode

    def kill(self) -> None:
        self.kill_calls += 1
        if self.kill_error is not None:
            raise self.kill_error
        self.returncode = -9

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        self.wait_calls += 1
        if self.wait_error is not None:
            raise self.wait_error
        return self.returncode


def reply(status: int, body: bytes = b"", headers: Optional[dict] = None) -> httpx.Response:
    """Build an unread upstream response, as a real transport would."""
    return httpx.Response(status, headers=headers, stream=httpx.ByteStream(body))


class MockUpstream:
    """
    In-process llama-server stand-in backed by httpx.MockTransport.

    Records every request it receives. The response is produced by
    `responder`, which defaults to a fixed status/body/headers triple.
    """

    def __init__(
        self,
        status: int = 200,
        body: bytes = CHAT_OK_BODY,
        headers: Optional[dict] = None,
        responder: Optional[Callable[[httpx.Request], httpx.Response]] = None,
    ) -> None:
        self.requests: List[httpx.Request] = []
        self.status = status
        self.body = body
        self.headers = headers if headers is not None else {"content-type": "application/json"}
        self.responder = responder

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responder is not None:
            return self.responder(request)
        return reply(self.status, self.body, self.headers)

    def client(self) -> httpx.AsyncClient:
        return create_upstream_client(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def spawned(monkeypatch) -> List[FakeProc]:
    """Replace Popen with FakeProc and collect every process started."""
    procs: List[FakeProc] = []

    def _popen(cmd, *args, **kwargs):
        proc = FakeProc(args=list(cmd))
        procs.append(proc)
        return proc

    monkeypatch.setattr(subprocess, "Popen", _popen)
    return procs


@pytest.fixture
def upstream() -> MockUpstream:
    return MockUpstream()


@pytest.fixture
def target() -> ProxyTarget:
    return ProxyTarget.from_host_port(UPSTREAM_HOST, UPSTREAM_PORT)


@pytest_asyncio.fixture
async def supervisor(spawned) -> ChildSupervisor:
    """Supervisor already holding one fake child."""
    sup = ChildSupervisor()
    await sup.spawn("/bin/llama-server", "/models/m.gguf", UPSTREAM_HOST, UPSTREAM_PORT, 8192, 99)
    return sup


@pytest.fixture
def context(upstream, target, supervisor) -> AppContext:
    return AppContext(client=upstream.client(), target=target, supervisor=supervisor)


@pytest.fixture
def app(context):
    return create_app(context)


@pytest_asyncio.fixture
async def sidecar(app):
    """Client talking to the sidecar app in-process."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://sidecar") as client:
        # Only what a test sets explicitly reaches the sidecar
        for name in ("accept", "accept-encoding", "user-agent"):
            client.headers.pop(name, None)
        yield client
