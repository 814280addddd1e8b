"""gRPC client for the Riker broker.

The broker exposes three methods: ``NewRedShirt`` registers a capability,
``CommandStream`` streams invocations for a registration and ``Send`` posts
a reply. Calls are built directly on the channel with the protobuf
(de)serializers from :mod:`redshirt.rpc.messages`.

grpc logs a body that fails to deserialize and hands back None in place of
the message. Unary calls turn that into :class:`RikerError`; the command
stream logs it and moves on to the next invocation.
"""

import asyncio
import logging
from typing import TypeVar

import grpc
from grpc import aio

from redshirt.rpc.messages import Capability, Message, Registration, SendResponse

logger = logging.getLogger(__name__)

SERVICE = "/botpb.Riker"


class RikerError(Exception):
    """A broker call failed. Recoverable: the session is rebuilt."""


class ConnectError(Exception):
    """The broker transport could not be established. Fatal."""


def _wrap(e: aio.AioRpcError) -> RikerError:
    return RikerError(f"{e.code().name}: {e.details()}")


T = TypeVar("T")


def _decoded(response: T | None, method: str) -> T:
    if response is None:
        raise RikerError(f"{method}: undecodable response")
    return response


class CommandStream:
    """Server stream of invocations tied to one registration."""

    def __init__(self, call: aio.UnaryStreamCall) -> None:
        self._call = call

    async def recv(self) -> Message | None:
        """Read the next invocation.

        Returns None on a clean end-of-input marker. Invocations that cannot
        be decoded are logged and skipped.

        Raises:
            RikerError: On any other stream failure.
        """
        while True:
            try:
                message = await self._call.read()
            except aio.AioRpcError as e:
                raise _wrap(e) from e
            if message is aio.EOF:
                return None
            if message is None:
                logger.warning("invocation_undecodable")
                continue
            return message

    def cancel(self) -> None:
        self._call.cancel()


class RikerClient:
    """Owns the channel to the broker.

    The channel is created once by :meth:`connect` and reused for every
    registration attempt. ``send`` may be called concurrently.
    """

    def __init__(
        self,
        addr: str,
        *,
        credentials: grpc.ChannelCredentials | None = None,
        keepalive_time: float = 30.0,
        keepalive_timeout: float = 5.0,
        max_backoff: float = 10.0,
        connect_timeout: float = 60.0,
    ) -> None:
        self._addr = addr
        self._credentials = credentials
        self._options = [
            ("grpc.keepalive_time_ms", int(keepalive_time * 1000)),
            ("grpc.keepalive_timeout_ms", int(keepalive_timeout * 1000)),
            ("grpc.max_reconnect_backoff_ms", int(max_backoff * 1000)),
        ]
        self._connect_timeout = connect_timeout
        self._channel: aio.Channel | None = None

    @property
    def addr(self) -> str:
        return self._addr

    @property
    def connected(self) -> bool:
        return self._channel is not None

    async def connect(self) -> None:
        """Open the channel and block until it is ready.

        Raises:
            ConnectError: If the broker is not reachable within the timeout.
        """
        if self._channel is not None:
            return

        if self._credentials is None:
            logger.warning("broker_insecure_transport", extra={"rpc.addr": self._addr})
            channel = aio.insecure_channel(self._addr, options=self._options)
        else:
            channel = aio.secure_channel(
                self._addr, self._credentials, options=self._options
            )

        try:
            await asyncio.wait_for(channel.channel_ready(), self._connect_timeout)
        except TimeoutError:
            await channel.close()
            raise ConnectError(
                f"Could not connect to riker at {self._addr} "
                f"within {self._connect_timeout:g}s"
            ) from None
        self._channel = channel

    def _require_channel(self) -> aio.Channel:
        if self._channel is None:
            raise RikerError("not connected")
        return self._channel

    async def new_redshirt(self, capability: Capability) -> Registration:
        call = self._require_channel().unary_unary(
            f"{SERVICE}/NewRedShirt",
            request_serializer=Capability.to_bytes,
            response_deserializer=Registration.from_bytes,
        )
        try:
            response = await call(capability)
        except aio.AioRpcError as e:
            raise _wrap(e) from e
        return _decoded(response, "NewRedShirt")

    def command_stream(self, registration: Registration) -> CommandStream:
        call = self._require_channel().unary_stream(
            f"{SERVICE}/CommandStream",
            request_serializer=Registration.to_bytes,
            response_deserializer=Message.from_bytes,
        )
        return CommandStream(call(registration))

    async def send(self, message: Message) -> SendResponse:
        call = self._require_channel().unary_unary(
            f"{SERVICE}/Send",
            request_serializer=Message.to_bytes,
            response_deserializer=SendResponse.from_bytes,
        )
        try:
            response = await call(message)
        except aio.AioRpcError as e:
            raise _wrap(e) from e
        return _decoded(response, "Send")

    async def close(self) -> None:
        if self._channel is not None:
            await self._channel.close()
            self._channel = None
