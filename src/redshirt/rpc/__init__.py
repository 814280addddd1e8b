"""Broker communication.

Public API:
- RikerClient: gRPC channel to the broker (register, stream, send)
- CommandStream: Inbound invocation stream for one registration
- channel_credentials: Mutual TLS credentials from PEM files

Messages:
- Capability, CommandAuth: Registration record for a namespace
- Registration: Broker answer to a registration
- Message: Invocation (inbound) or reply (outbound)
"""

from redshirt.rpc.client import CommandStream, ConnectError, RikerClient, RikerError
from redshirt.rpc.credentials import CredentialsError, channel_credentials
from redshirt.rpc.messages import (
    Capability,
    CommandAuth,
    Message,
    Registration,
    SendResponse,
)

__all__ = [
    # Client
    "CommandStream",
    "ConnectError",
    "RikerClient",
    "RikerError",
    # Credentials
    "CredentialsError",
    "channel_credentials",
    # Messages
    "Capability",
    "CommandAuth",
    "Message",
    "Registration",
    "SendResponse",
]
