"""Shared test fixtures and fakes."""

import asyncio
import os
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

from redshirt.rpc.client import ConnectError, RikerError
from redshirt.rpc.messages import (
    Capability,
    CommandAuth,
    Message,
    Registration,
    SendResponse,
)

# =============================================================================
# Broker fakes
# =============================================================================


class FakeStream:
    """In-memory invocation stream.

    Push a Message to deliver it, None for an end-of-input marker, or an
    exception to fail the read.
    """

    def __init__(self) -> None:
        self._items: asyncio.Queue[Message | Exception | None] = asyncio.Queue()
        self.cancelled = False

    def push(self, item: Message | Exception | None) -> None:
        self._items.put_nowait(item)

    async def recv(self) -> Message | None:
        item = await self._items.get()
        if isinstance(item, Exception):
            raise item
        return item

    def cancel(self) -> None:
        self.cancelled = True


class FakeBrokerClient:
    """Records every broker call; registration outcomes are scripted."""

    def __init__(
        self,
        registrations: list[Registration | Exception] | None = None,
        connect_error: Exception | None = None,
    ) -> None:
        self._registrations = list(registrations or [])
        self._connect_error = connect_error
        self.connects = 0
        self.capabilities: list[Capability] = []
        self.streams: list[FakeStream] = []
        self.sent: list[Message] = []
        self.send_error: Exception | None = None
        self.closed = False

    async def connect(self) -> None:
        self.connects += 1
        if self._connect_error is not None:
            raise self._connect_error

    async def new_redshirt(self, capability: Capability) -> Registration:
        self.capabilities.append(capability)
        outcome = (
            self._registrations.pop(0)
            if self._registrations
            else Registration(name=capability.name, capability_applied=True)
        )
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def command_stream(self, registration: Registration) -> FakeStream:
        stream = FakeStream()
        self.streams.append(stream)
        return stream

    async def send(self, message: Message) -> SendResponse:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(message)
        return SendResponse(ok=True)

    async def close(self) -> None:
        self.closed = True


async def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Poll ``predicate`` until true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("condition not met in time")
        await asyncio.sleep(0.01)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def capability() -> Capability:
    return Capability(
        name="deploy",
        usage="deploy <env>",
        description="deploy things",
        auth=CommandAuth(groups=frozenset({"infra"})),
    )


@pytest.fixture
def invocation() -> Message:
    return Message(
        channel="C123",
        timestamp="1500000000.000100",
        payload="<@BOT123> deploy staging now",
        nickname="alice",
        groups=("infra", "ops"),
    )


@pytest.fixture
def broker() -> FakeBrokerClient:
    return FakeBrokerClient()


@pytest.fixture
def unreachable_broker() -> FakeBrokerClient:
    return FakeBrokerClient(connect_error=ConnectError("Could not connect to riker"))


@pytest.fixture
def rejecting_broker() -> FakeBrokerClient:
    """Rejects the first two registrations."""
    return FakeBrokerClient(
        registrations=[
            RikerError("ALREADY_EXISTS: namespace taken"),
            RikerError("UNAVAILABLE: broker restarting"),
        ]
    )


@pytest.fixture
def python_cmd() -> Callable[[str], list[str]]:
    """Build a wrapped command that runs a Python snippet."""

    def build(code: str) -> list[str]:
        return [sys.executable, "-c", code]

    return build


# =============================================================================
# Configuration fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep REDSHIRT_* variables from the developer's shell out of tests."""
    for key in list(os.environ):
        if key.startswith("REDSHIRT_"):
            monkeypatch.delenv(key)


@pytest.fixture
def config_toml_content() -> str:
    return """
addr = "riker.internal:6000"
debug = true
namespace = "echo"
description = "echo server"
usage = "echo <msg>"
groups = ["infra"]
command = ["/bin/echo", "-n"]
flush_lines = 5
"""


@pytest.fixture
def config_file(tmp_path: Path, config_toml_content: str) -> Path:
    """Create a temporary config file."""
    config_path = tmp_path / "config.toml"
    config_path.write_text(config_toml_content)
    return config_path


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner with colors disabled."""
    from typer.testing import CliRunner

    return CliRunner(env={"NO_COLOR": "1"})
