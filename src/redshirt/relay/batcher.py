"""Batch live command output into chat-sized replies.

Lines are buffered and flushed whenever more than ``max_lines`` have
accumulated, or when ``interval`` seconds pass without a new line. Each
flush becomes one reply, so a chatty command does not flood the channel
and a slow one still reports progress.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)

DEFAULT_FLUSH_LINES = 10
DEFAULT_FLUSH_INTERVAL = 2.0

FlushHandler = Callable[[list[str]], Awaitable[None]]


class LineSource(Protocol):
    """A line-oriented view over a byte stream."""

    async def next_line(self) -> str | None:
        """Return the next line without its newline, or None once closed."""
        ...


class WaitOutcome(Enum):
    DATA = "data"
    TIMEOUT = "timeout"
    CLOSED = "closed"


@dataclass(frozen=True)
class LineEvent:
    outcome: WaitOutcome
    line: str = ""


async def wait_for_line(source: LineSource, timeout: float) -> LineEvent:
    """Race the next line against a timer."""
    try:
        line = await asyncio.wait_for(source.next_line(), timeout)
    except TimeoutError:
        return LineEvent(WaitOutcome.TIMEOUT)
    if line is None:
        return LineEvent(WaitOutcome.CLOSED)
    return LineEvent(WaitOutcome.DATA, line)


def fenced(lines: list[str]) -> str:
    return "```" + "\n".join(lines) + "```"


class OutputBatcher:
    """Drains a :class:`LineSource`, emitting batches through ``on_flush``.

    One batcher serves exactly one invocation; its buffer is never shared.
    """

    def __init__(
        self,
        source: LineSource,
        on_flush: FlushHandler,
        *,
        max_lines: int = DEFAULT_FLUSH_LINES,
        interval: float = DEFAULT_FLUSH_INTERVAL,
    ) -> None:
        self._source = source
        self._on_flush = on_flush
        self._max_lines = max_lines
        self._interval = interval
        self._lines: list[str] = []
        self.flushes = 0

    async def run(self) -> list[str]:
        """Batch until the source closes.

        Returns:
            Lines still buffered at close. The caller decides how to report
            them, so they are never sent twice.
        """
        while True:
            event = await wait_for_line(self._source, self._interval)

            flush = event.outcome is WaitOutcome.TIMEOUT
            if event.outcome is WaitOutcome.DATA and event.line:
                self._lines.append(event.line)
            if len(self._lines) > self._max_lines:
                flush = True

            if flush and self._lines:
                await self._flush()

            if event.outcome is WaitOutcome.CLOSED:
                break

        remaining, self._lines = self._lines, []
        return remaining

    async def _flush(self) -> None:
        batch, self._lines = self._lines, []
        self.flushes += 1
        logger.debug("output_flushed", extra={"batch.lines": len(batch)})
        await self._on_flush(batch)
