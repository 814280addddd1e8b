"""Top-level control loop: read invocations and dispatch them."""

import asyncio
import logging

from redshirt.relay.executor import InvocationExecutor
from redshirt.relay.segmenter import segment
from redshirt.relay.session import SessionManager
from redshirt.rpc.client import RikerError
from redshirt.rpc.messages import Message

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY = 3.0
# Pause after an end-of-input read before reading the same stream again.
DEFAULT_EOF_DELAY = 0.5


class RelayLoop:
    """Reads invocations from the session and runs each in its own task.

    The loop never waits for a dispatched command. With ``max_concurrency``
    set, commands beyond the limit wait inside their task for a free slot.
    """

    def __init__(
        self,
        session: SessionManager,
        executor: InvocationExecutor,
        *,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        eof_delay: float = DEFAULT_EOF_DELAY,
        max_concurrency: int = 0,
    ) -> None:
        self._session = session
        self._executor = executor
        self._reconnect_delay = reconnect_delay
        self._eof_delay = eof_delay
        self._limit = asyncio.Semaphore(max_concurrency) if max_concurrency > 0 else None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def run(self) -> None:
        """Run until cancelled.

        Raises:
            ConnectError: If the broker cannot be reached at startup.
        """
        await self._session.connect()
        while True:
            if await self._session.open():
                await self._serve()
            logger.info(
                "session_retry_scheduled",
                extra={"retry_delay_s": self._reconnect_delay},
            )
            await asyncio.sleep(self._reconnect_delay)

    async def _serve(self) -> None:
        eof_seen = False
        while True:
            try:
                invocation = await self._session.recv()
            except RikerError:
                return
            if invocation is None:
                # Logged once per stream; the stream is polled until it errors.
                if not eof_seen:
                    eof_seen = True
                    logger.info(
                        "command_stream_eof",
                        extra={"redshirt.namespace": self._session.capability.name},
                    )
                await asyncio.sleep(self._eof_delay)
                continue
            logger.info(
                "invocation_received",
                extra={
                    "chat.channel": invocation.channel,
                    "chat.user": invocation.nickname,
                    "chat.payload": invocation.payload,
                },
            )
            self.dispatch(invocation)

    def dispatch(self, invocation: Message) -> asyncio.Task[None]:
        args = segment(self._session.capability.name, invocation.payload)
        reply = invocation.reply_template()
        task = asyncio.create_task(self._execute(args, invocation, reply))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    async def _execute(
        self, args: list[str], invocation: Message, reply: Message
    ) -> None:
        if self._limit is None:
            await self._executor.run(args, invocation, reply)
            return
        async with self._limit:
            await self._executor.run(args, invocation, reply)

    def _task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        if (exc := task.exception()) is not None:
            logger.error(
                "dispatch_failed",
                extra={"error.message": str(exc), "error.type": type(exc).__name__},
                exc_info=exc,
            )
