"""Wire configuration into a running relay."""

import logging

from redshirt.config import WrapperConfig
from redshirt.relay import InvocationExecutor, RelayLoop, SessionManager
from redshirt.rpc import RikerClient, channel_credentials

logger = logging.getLogger(__name__)


def create_client(config: WrapperConfig) -> RikerClient:
    """Broker client for ``config``.

    Raises:
        CredentialsError: If certificate material cannot be loaded.
    """
    credentials = None
    if not config.debug:
        assert config.cert is not None and config.ca is not None
        credentials = channel_credentials(config.cert, config.ca)
    return RikerClient(
        config.addr,
        credentials=credentials,
        keepalive_time=config.keepalive_time,
        keepalive_timeout=config.keepalive_timeout,
        max_backoff=config.max_backoff,
        connect_timeout=config.connect_timeout,
    )


def create_relay(config: WrapperConfig, client: RikerClient) -> RelayLoop:
    session = SessionManager(client, config.capability())
    executor = InvocationExecutor(
        config.command,
        session.send,
        flush_lines=config.flush_lines,
        flush_interval=config.flush_interval,
        timeout=config.command_timeout,
    )
    return RelayLoop(
        session,
        executor,
        reconnect_delay=config.reconnect_delay,
        max_concurrency=config.max_concurrency,
    )


async def run_relay(config: WrapperConfig) -> None:
    """Connect, register and relay until cancelled.

    Raises:
        CredentialsError: Bad certificate material.
        ConnectError: The broker is unreachable.
    """
    client = create_client(config)
    relay = create_relay(config, client)
    logger.info(
        "broker_connecting",
        extra={"rpc.addr": config.addr, "redshirt.namespace": config.namespace},
    )
    try:
        await relay.run()
    finally:
        await client.close()
