"""Protocol buffer types of the ``botpb.Riker`` service.

The descriptor is assembled at import time so no generated code has to be
checked in. It mirrors riker's ``bot.proto``::

    message CommandAuth {
        repeated string users = 1;
        repeated string groups = 2;
    }

    message Capability {
        string name = 1;
        string usage = 2;
        string description = 3;
        CommandAuth auth = 4;
        bool forced_registration = 5;
    }

    message Registration {
        string name = 1;
        bool capability_applied = 2;
    }

    message Message {
        string channel = 1;
        string timestamp = 2;
        string thread_ts = 3;
        string payload = 4;
        string nickname = 5;
        repeated string groups = 6;
    }

    message SendResponse {
        bool ok = 1;
    }
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

PACKAGE = "botpb"

_Field = descriptor_pb2.FieldDescriptorProto


def _field(
    name: str,
    number: int,
    kind: int,
    *,
    repeated: bool = False,
    type_name: str | None = None,
) -> descriptor_pb2.FieldDescriptorProto:
    field = _Field(
        name=name,
        number=number,
        type=kind,
        label=_Field.LABEL_REPEATED if repeated else _Field.LABEL_OPTIONAL,
    )
    if type_name is not None:
        field.type_name = f".{PACKAGE}.{type_name}"
    return field


def _message(name: str, *fields: descriptor_pb2.FieldDescriptorProto):
    return descriptor_pb2.DescriptorProto(name=name, field=list(fields))


_STRING = _Field.TYPE_STRING
_BOOL = _Field.TYPE_BOOL
_MESSAGE = _Field.TYPE_MESSAGE

_FILE = descriptor_pb2.FileDescriptorProto(
    name="botpb/bot.proto",
    package=PACKAGE,
    syntax="proto3",
    message_type=[
        _message(
            "CommandAuth",
            _field("users", 1, _STRING, repeated=True),
            _field("groups", 2, _STRING, repeated=True),
        ),
        _message(
            "Capability",
            _field("name", 1, _STRING),
            _field("usage", 2, _STRING),
            _field("description", 3, _STRING),
            _field("auth", 4, _MESSAGE, type_name="CommandAuth"),
            _field("forced_registration", 5, _BOOL),
        ),
        _message(
            "Registration",
            _field("name", 1, _STRING),
            _field("capability_applied", 2, _BOOL),
        ),
        _message(
            "Message",
            _field("channel", 1, _STRING),
            _field("timestamp", 2, _STRING),
            _field("thread_ts", 3, _STRING),
            _field("payload", 4, _STRING),
            _field("nickname", 5, _STRING),
            _field("groups", 6, _STRING, repeated=True),
        ),
        _message("SendResponse", _field("ok", 1, _BOOL)),
    ],
)

_POOL = descriptor_pool.DescriptorPool()
_POOL.AddSerializedFile(_FILE.SerializeToString())


def _class(name: str):
    return message_factory.GetMessageClass(
        _POOL.FindMessageTypeByName(f"{PACKAGE}.{name}")
    )


CommandAuth = _class("CommandAuth")
Capability = _class("Capability")
Registration = _class("Registration")
Message = _class("Message")
SendResponse = _class("SendResponse")
