"""Wire messages exchanged with the Riker broker.

Each message is a frozen dataclass that converts to and from its
:mod:`redshirt.rpc.botpb` protobuf type. gRPC handles framing, so
``to_bytes``/``from_bytes`` only deal with the serialized message body;
``from_bytes`` raises :class:`google.protobuf.message.DecodeError` on a
malformed body.
"""

from dataclasses import dataclass, field, replace

from redshirt.rpc import botpb


@dataclass(frozen=True)
class CommandAuth:
    """Chat users and groups allowed to invoke a namespace."""

    users: frozenset[str] = frozenset()
    groups: frozenset[str] = frozenset()

    @property
    def empty(self) -> bool:
        return not self.users and not self.groups

    def to_proto(self):
        return botpb.CommandAuth(users=sorted(self.users), groups=sorted(self.groups))


@dataclass(frozen=True)
class Capability:
    """Registration record for one redshirt namespace."""

    name: str
    usage: str
    description: str
    auth: CommandAuth
    forced_registration: bool = True

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("capability namespace is required")
        if self.auth.empty:
            raise ValueError("capability requires authorized users or groups")

    def to_proto(self):
        return botpb.Capability(
            name=self.name,
            usage=self.usage,
            description=self.description,
            auth=self.auth.to_proto(),
            forced_registration=self.forced_registration,
        )

    def to_bytes(self) -> bytes:
        return self.to_proto().SerializeToString()


@dataclass(frozen=True)
class Registration:
    """Broker answer to ``NewRedShirt``; also the key for ``CommandStream``."""

    name: str
    capability_applied: bool = False

    def to_bytes(self) -> bytes:
        return botpb.Registration(
            name=self.name, capability_applied=self.capability_applied
        ).SerializeToString()

    @classmethod
    def from_bytes(cls, data: bytes) -> "Registration":
        pb = botpb.Registration.FromString(data)
        return cls(name=pb.name, capability_applied=pb.capability_applied)


@dataclass(frozen=True)
class Message:
    """A chat message.

    Inbound messages are command invocations and carry the requester's
    nickname and groups. Outbound messages are replies; only channel,
    timestamp, thread_ts and payload matter for those.
    """

    channel: str = ""
    timestamp: str = ""
    thread_ts: str = ""
    payload: str = ""
    nickname: str = ""
    groups: tuple[str, ...] = field(default_factory=tuple)

    def reply_template(self) -> "Message":
        """Empty reply addressed to the thread this message belongs to."""
        return Message(
            channel=self.channel,
            timestamp=self.timestamp,
            thread_ts=self.thread_ts or self.timestamp,
        )

    def with_payload(self, payload: str) -> "Message":
        return replace(self, payload=payload)

    def out_of_thread(self) -> "Message":
        """Copy posted to the channel itself rather than the reply thread."""
        return replace(self, timestamp="", thread_ts="")

    def to_proto(self):
        return botpb.Message(
            channel=self.channel,
            timestamp=self.timestamp,
            thread_ts=self.thread_ts,
            payload=self.payload,
            nickname=self.nickname,
            groups=list(self.groups),
        )

    def to_bytes(self) -> bytes:
        return self.to_proto().SerializeToString()

    @classmethod
    def from_proto(cls, pb) -> "Message":
        return cls(
            channel=pb.channel,
            timestamp=pb.timestamp,
            thread_ts=pb.thread_ts,
            payload=pb.payload,
            nickname=pb.nickname,
            groups=tuple(pb.groups),
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "Message":
        return cls.from_proto(botpb.Message.FromString(data))


@dataclass(frozen=True)
class SendResponse:
    ok: bool = False

    @classmethod
    def from_bytes(cls, data: bytes) -> "SendResponse":
        return cls(ok=botpb.SendResponse.FromString(data).ok)
