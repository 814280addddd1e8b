"""Broker session: connect, register the capability, stream invocations.

State machine::

    DISCONNECTED -> CONNECTING -> REGISTERING -> STREAMING
         ^                             |             |
         +-----------------------------+-------------+  (failure)

The transport is connected once and reused. Registration and the command
stream are thrown away and rebuilt together on any failure.
"""

import logging
from enum import StrEnum
from typing import Protocol

from redshirt.rpc.client import RikerError
from redshirt.rpc.messages import Capability, Message, Registration, SendResponse

logger = logging.getLogger(__name__)


class InvocationStream(Protocol):
    async def recv(self) -> Message | None: ...

    def cancel(self) -> None: ...


class BrokerClient(Protocol):
    """Minimal broker contract required by the session."""

    async def connect(self) -> None: ...

    async def new_redshirt(self, capability: Capability) -> Registration: ...

    def command_stream(self, registration: Registration) -> InvocationStream: ...

    async def send(self, message: Message) -> SendResponse: ...

    async def close(self) -> None: ...


class SessionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    REGISTERING = "registering"
    STREAMING = "streaming"


class SessionManager:
    """Owns the upstream connection for one redshirt instance.

    Only the relay loop reads from the session; :meth:`send` is safe to call
    from any number of dispatch tasks.
    """

    def __init__(self, client: BrokerClient, capability: Capability) -> None:
        self._client = client
        self._capability = capability
        self._state = SessionState.DISCONNECTED
        self._registration: Registration | None = None
        self._stream: InvocationStream | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def capability(self) -> Capability:
        return self._capability

    @property
    def registration(self) -> Registration | None:
        return self._registration

    async def connect(self) -> None:
        """Establish the transport.

        Raises:
            ConnectError: The broker is unreachable; the caller should exit.
        """
        self._state = SessionState.CONNECTING
        try:
            await self._client.connect()
        except Exception:
            self._state = SessionState.DISCONNECTED
            raise
        logger.debug("broker_connected")

    async def open(self) -> bool:
        """Register and open the command stream.

        Returns:
            True once streaming. False if registration or opening the stream
            failed; the session is back to DISCONNECTED and may be retried.

        Raises:
            ConnectError: If the transport has to be (re)established and
                cannot be.
        """
        await self.connect()

        self._state = SessionState.REGISTERING
        try:
            registration = await self._client.new_redshirt(self._capability)
        except RikerError as e:
            logger.warning(
                "redshirt_registration_failed",
                extra={
                    "redshirt.namespace": self._capability.name,
                    "error.message": str(e),
                },
            )
            self.reset()
            return False

        if registration.capability_applied:
            logger.info(
                "redshirt_registered",
                extra={"redshirt.namespace": self._capability.name},
            )
        else:
            logger.info(
                "redshirt_registered_minion",
                extra={"redshirt.namespace": self._capability.name},
            )

        try:
            stream = self._client.command_stream(registration)
        except RikerError as e:
            logger.warning(
                "command_stream_open_failed",
                extra={
                    "redshirt.namespace": self._capability.name,
                    "error.message": str(e),
                },
            )
            self.reset()
            return False

        self._registration = registration
        self._stream = stream
        self._state = SessionState.STREAMING
        return True

    async def recv(self) -> Message | None:
        """Read the next invocation.

        Returns None for a clean end-of-input marker; the stream is kept.

        Raises:
            RikerError: The stream failed. The session has been reset.
        """
        if self._stream is None:
            raise RikerError("no command stream")
        try:
            return await self._stream.recv()
        except RikerError as e:
            logger.error(
                "command_stream_read_failed",
                extra={"error.message": str(e)},
            )
            self.reset()
            raise

    def reset(self) -> None:
        """Drop registration and stream; keep the transport."""
        if self._stream is not None:
            self._stream.cancel()
        self._stream = None
        self._registration = None
        self._state = SessionState.DISCONNECTED

    async def send(self, message: Message) -> None:
        """Post a reply. Broker errors are logged, never raised."""
        try:
            resp = await self._client.send(message)
        except RikerError as e:
            logger.error(
                "reply_send_failed",
                extra={"chat.channel": message.channel, "error.message": str(e)},
            )
            return
        logger.debug(
            "reply_sent",
            extra={
                "chat.channel": message.channel,
                "chat.thread_ts": message.thread_ts,
                "reply.ok": resp.ok,
                "reply.payload": message.payload,
            },
        )

    async def close(self) -> None:
        self.reset()
        await self._client.close()
