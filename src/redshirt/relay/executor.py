"""Run the wrapped command for one invocation and relay its output.

Each command runs in its own session, so a timeout or cancellation can kill
the whole process group, including children that hold the output pipes.
"""

import asyncio
import logging
import os
import signal
from collections.abc import Awaitable, Callable, Sequence

from redshirt.relay.batcher import (
    DEFAULT_FLUSH_INTERVAL,
    DEFAULT_FLUSH_LINES,
    OutputBatcher,
    fenced,
)
from redshirt.rpc.messages import Message

logger = logging.getLogger(__name__)

# Requester identity handed to the wrapped command.
ENV_GROUPS = "REDSHIRT_USER_GROUPS"
ENV_NICKNAME = "REDSHIRT_USER_NICKNAME"

_MAX_LINE_BYTES = 1024 * 1024
_STDERR_TAIL_BYTES = 2048

ReplySender = Callable[[Message], Awaitable[None]]


async def read_line(reader: asyncio.StreamReader) -> bytes:
    """Return the next line, or b"" at end of stream.

    Lines longer than the reader's limit are dropped whole, however many
    chunks they arrive in.
    """
    oversized = False
    while True:
        try:
            raw = await reader.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            # Unterminated last line
            if oversized:
                logger.warning("output_line_too_long")
                return b""
            return e.partial
        except asyncio.LimitOverrunError as e:
            await reader.readexactly(e.consumed)
            oversized = True
            continue
        if not oversized:
            return raw
        logger.warning("output_line_too_long")
        oversized = False


class MergedOutput:
    """Line source interleaving a process's stdout and stderr.

    Both pipes are drained concurrently so neither can fill up and stall
    the process. stderr is also kept in :attr:`stderr` for diagnostics.
    Call :meth:`aclose` when done.
    """

    def __init__(
        self, stdout: asyncio.StreamReader, stderr: asyncio.StreamReader
    ) -> None:
        self.stderr = bytearray()
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._open = 2
        self._pumps = [
            asyncio.create_task(self._pump(stdout, capture=False)),
            asyncio.create_task(self._pump(stderr, capture=True)),
        ]

    async def _pump(self, reader: asyncio.StreamReader, *, capture: bool) -> None:
        try:
            while raw := await read_line(reader):
                if capture:
                    self.stderr.extend(raw)
                    del self.stderr[:-_STDERR_TAIL_BYTES]
                self._queue.put_nowait(
                    raw.decode("utf-8", errors="replace").rstrip("\r\n")
                )
        finally:
            self._queue.put_nowait(None)

    async def next_line(self) -> str | None:
        while self._open:
            line = await self._queue.get()
            if line is not None:
                return line
            self._open -= 1
        return None

    async def aclose(self) -> None:
        """Stop both pumps and log any that failed."""
        for task in self._pumps:
            task.cancel()
        results = await asyncio.gather(*self._pumps, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error(
                    "output_pump_failed",
                    extra={
                        "error.message": str(result),
                        "error.type": type(result).__name__,
                    },
                )


def exit_report(lines: list[str]) -> str:
    return "Command exit with status code > 0:\n " + fenced(lines)


def kill_group(proc: asyncio.subprocess.Process) -> None:
    """SIGKILL the command and every process it started."""
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


class InvocationExecutor:
    """Executes ``command + args`` once per invocation.

    Replies go through ``send``, which is shared by every concurrent
    invocation and must not raise on broker errors.
    """

    def __init__(
        self,
        command: Sequence[str],
        send: ReplySender,
        *,
        flush_lines: int = DEFAULT_FLUSH_LINES,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
        timeout: float | None = None,
    ) -> None:
        if not command:
            raise ValueError("command is required")
        self._command = list(command)
        self._send = send
        self._flush_lines = flush_lines
        self._flush_interval = flush_interval
        self._timeout = timeout

    def environment(self, invocation: Message) -> dict[str, str]:
        env = dict(os.environ)
        env[ENV_GROUPS] = ",".join(invocation.groups)
        env[ENV_NICKNAME] = invocation.nickname
        return env

    async def run(
        self, args: Sequence[str], invocation: Message, reply: Message
    ) -> int | None:
        """Run the command to completion.

        Cancelling the call kills the command's process group.

        Args:
            args: Arguments parsed from the chat message.
            invocation: The inbound message.
            reply: Reply template addressed to the invocation's thread.

        Returns:
            The exit status, or None if the command could not be started.
        """
        argv = [*self._command, *args]
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.environment(invocation),
                limit=_MAX_LINE_BYTES,
                start_new_session=True,
            )
        except OSError as e:
            logger.error(
                "command_start_failed",
                extra={"process.command": argv[0], "error.message": str(e)},
            )
            await self._send(reply.with_payload(f"Failed to start command: ```{e}```"))
            return None

        logger.info(
            "command_started",
            extra={
                "process.command": argv[0],
                "process.pid": proc.pid,
                "process.args": len(args),
                "chat.user": invocation.nickname,
            },
        )

        timed_out = False

        def expire() -> None:
            nonlocal timed_out
            timed_out = True
            logger.warning(
                "command_timeout",
                extra={"process.pid": proc.pid, "timeout_s": self._timeout},
            )
            kill_group(proc)

        watchdog: asyncio.TimerHandle | None = None
        if self._timeout:
            watchdog = asyncio.get_running_loop().call_later(self._timeout, expire)

        async def flush(lines: list[str]) -> None:
            await self._send(reply.with_payload(fenced(lines)))

        assert proc.stdout is not None and proc.stderr is not None
        output = MergedOutput(proc.stdout, proc.stderr)
        batcher = OutputBatcher(
            output,
            flush,
            max_lines=self._flush_lines,
            interval=self._flush_interval,
        )
        try:
            remaining = await batcher.run()
            returncode = await proc.wait()
        except asyncio.CancelledError:
            logger.warning("command_cancelled", extra={"process.pid": proc.pid})
            kill_group(proc)
            await proc.wait()
            raise
        finally:
            if watchdog is not None:
                watchdog.cancel()
            await output.aclose()

        # A timed-out command whose leader already exited 0 still failed.
        if returncode != 0 or timed_out:
            logger.warning(
                "command_failed",
                extra={
                    "process.pid": proc.pid,
                    "process.exit_code": returncode,
                    "batch.flushes": batcher.flushes,
                },
            )
            if output.stderr:
                logger.debug(
                    "command_stderr_tail",
                    extra={
                        "process.pid": proc.pid,
                        "process.stderr": output.stderr.decode(
                            "utf-8", errors="replace"
                        ),
                    },
                )
            status = reply.with_payload(exit_report(remaining))
            await self._send(status)
            await self._send(status.out_of_thread())
            return returncode

        if remaining:
            await flush(remaining)
        logger.info(
            "command_finished",
            extra={"process.pid": proc.pid, "batch.flushes": batcher.flushes},
        )
        return returncode
