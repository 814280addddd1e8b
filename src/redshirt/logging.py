"""Centralized logging configuration for the wrapper.

Call configure_logging() once at startup, before connecting to the broker.

Logging Levels:
- DEBUG: Relayed output batches, reply acknowledgements, stderr tails
- INFO: Registration, received invocations, command start/finish
- WARNING: Registration retries, non-zero exits, timeouts
- ERROR: Stream failures, reply send failures, commands that cannot start

Messages are snake_case event names; context goes in ``extra`` using dotted
keys (``error.message``, ``process.exit_code``, ``chat.channel``).
"""

import logging
import os
import re
from dataclasses import dataclass, field

# Context keys rendered after the event name, in this order when present.
CONTEXT_KEYS = (
    "redshirt.namespace",
    "rpc.addr",
    "chat.channel",
    "chat.user",
    "chat.payload",
    "process.command",
    "process.pid",
    "process.exit_code",
    "batch.lines",
    "batch.flushes",
    "retry_delay_s",
    "timeout_s",
    "error.type",
    "error.message",
    "process.stderr",
    "reply.payload",
)

# Relayed command output and chat text pass through the logs, so mask the
# common secret shapes before anything is written.
DEFAULT_REDACT_PATTERNS: list[str] = [
    # ENV-style assignments: API_KEY=secret or API_KEY: secret
    r"\b[A-Z0-9_]+(?:KEY|TOKEN|SECRET|PASSWORD|PASSWD)\s*[=:]\s*([^\s\"']{8,})",
    # Bearer tokens in headers
    r"\bBearer\s+([A-Za-z0-9._\-+=]{20,})\b",
    # Slack tokens
    r"\b(xox[baprs]-[A-Za-z0-9-]{10,})\b",
    # PEM private key blocks
    r"-----BEGIN [A-Z ]*PRIVATE KEY-----[\s\S]+?-----END [A-Z ]*PRIVATE KEY-----",
]


@dataclass
class SecretRedactor:
    """Redacts sensitive information from log messages.

    Keeps the first and last four characters of longer tokens so a leaked
    value can still be identified.
    """

    patterns: list[re.Pattern[str]] = field(default_factory=list)
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.patterns:
            self.patterns = [
                re.compile(p, re.IGNORECASE) for p in DEFAULT_REDACT_PATTERNS
            ]

    def redact(self, text: str) -> str:
        if not self.enabled or not text:
            return text
        result = text
        for pattern in self.patterns:
            result = pattern.sub(self._mask_match, result)
        return result

    def _mask_match(self, match: re.Match[str]) -> str:
        full = match.group(0)

        if "PRIVATE KEY" in full:
            lines = full.strip().split("\n")
            if len(lines) >= 2:
                return f"{lines[0]}\n...redacted...\n{lines[-1]}"
            return "***PRIVATE KEY***"

        token = match.group(1) if match.lastindex else full
        if len(token) < 12:
            return full.replace(token, "***") if token != full else "***"

        masked = f"{token[:4]}...{token[-4:]}"
        return full.replace(token, masked) if token != full else masked


class ComponentFormatter(logging.Formatter):
    """Formats ``component | event key=value ...`` with secrets masked.

    The component is the second part of the logger name
    (redshirt.relay.executor -> relay).
    """

    def __init__(
        self, fmt: str | None = None, redactor: SecretRedactor | None = None
    ) -> None:
        super().__init__(
            fmt or "%(asctime)s | %(levelname)-8s | %(component)s | %(message)s",
            datefmt="%H:%M:%S",
        )
        self._redactor = redactor or SecretRedactor()

    def format(self, record: logging.LogRecord) -> str:
        parts = record.name.split(".")
        if len(parts) >= 2 and parts[0] == "redshirt":
            record.component = parts[1]
        else:
            record.component = parts[0]

        context = [
            f"{key}={getattr(record, key)!r}"
            for key in CONTEXT_KEYS
            if getattr(record, key, None) not in (None, "")
        ]
        text = super().format(record)
        if context:
            text = f"{text} {' '.join(context)}"
        return self._redactor.redact(text)


# Third-party loggers that are too noisy at INFO level
NOISY_LOGGERS = [
    "grpc",
    "grpc._cython",
    "asyncio",
]


def configure_logging(level: str | None = None, use_rich: bool = False) -> None:
    """Configure logging for the wrapper.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
            If None, uses REDSHIRT_LOG_LEVEL env var or INFO.
        use_rich: Use Rich handler for colorful terminal output.
    """
    if level is None:
        level = os.environ.get("REDSHIRT_LOG_LEVEL", "INFO")
    level = level.upper()
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
        level = "INFO"

    if use_rich:
        from rich.logging import RichHandler

        handler: logging.Handler = RichHandler(
            rich_tracebacks=False,
            show_path=False,
            show_time=True,
            markup=False,
        )
        handler.setFormatter(ComponentFormatter("%(component)s | %(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(ComponentFormatter())

    logging.basicConfig(level=getattr(logging, level), handlers=[handler], force=True)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
