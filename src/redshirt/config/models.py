"""Configuration models using Pydantic."""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from redshirt.rpc.messages import Capability, CommandAuth


class ConfigError(Exception):
    """Configuration error."""

    pass


class WrapperConfig(BaseModel):
    """Root configuration model.

    Broker connection, the capability to register and relay tuning. The
    wrapped command is ``command[0]`` with ``command[1:]`` as fixed startup
    arguments.
    """

    addr: str = "riker:6000"
    cert: Path | None = None  # combined private key + certificate (.pem)
    ca: Path | None = None
    debug: bool = False  # plaintext transport, no certificates

    namespace: str = ""
    description: str = ""
    usage: str = ""
    users: list[str] = []
    groups: list[str] = []
    forced_registration: bool = True

    command: list[str] = []

    # Transport
    keepalive_time: float = Field(default=30.0, gt=0)
    keepalive_timeout: float = Field(default=5.0, gt=0)
    max_backoff: float = Field(default=10.0, gt=0)
    connect_timeout: float = Field(default=60.0, gt=0)
    reconnect_delay: float = Field(default=3.0, ge=0)

    # Output batching
    flush_lines: int = Field(default=10, ge=1)
    flush_interval: float = Field(default=2.0, gt=0)

    # 0 = unbounded; None = commands may run forever
    max_concurrency: int = Field(default=0, ge=0)
    command_timeout: float | None = Field(default=None, gt=0)

    @field_validator("users", "groups", mode="before")
    @classmethod
    def _split_names(cls, value: Any) -> Any:
        """Accept "a,b" as well as ["a", "b"]; drop blanks."""
        if value is None:
            return []
        items = value.split(",") if isinstance(value, str) else value
        if not isinstance(items, list | tuple):
            return value
        names: list[str] = []
        for item in items:
            names.extend(part.strip() for part in str(item).split(","))
        return [name for name in names if name]

    @model_validator(mode="after")
    def _check_required(self) -> "WrapperConfig":
        if not self.addr:
            raise ValueError("missing addr")
        if not self.debug:
            if self.cert is None:
                raise ValueError("missing cert")
            if self.ca is None:
                raise ValueError("missing ca")
        if not self.namespace.strip():
            raise ValueError("missing namespace")
        if not self.description:
            raise ValueError("missing description")
        if not self.usage:
            raise ValueError("missing usage")
        if not self.users and not self.groups:
            raise ValueError("must specify either users or groups")
        if not self.command:
            raise ValueError("missing command to wrap")
        return self

    def capability(self) -> Capability:
        return Capability(
            name=self.namespace,
            usage=self.usage,
            description=self.description,
            forced_registration=self.forced_registration,
            auth=CommandAuth(users=frozenset(self.users), groups=frozenset(self.groups)),
        )
