"""Main CLI application."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from redshirt import __version__
from redshirt.cli.console import console, dim, error

app = typer.Typer(
    name="redshirt-cli-wrapper",
    help="A wrapper for converting any app into a Redshirt bot.",
    no_args_is_help=True,
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"redshirt-cli-wrapper {__version__}", highlight=False)
        raise typer.Exit()


@app.command(context_settings={"allow_interspersed_args": False})
def wrap(
    command: Annotated[
        list[str],
        typer.Argument(help="Command to run for each invocation, with fixed args"),
    ],
    addr: Annotated[
        str | None,
        typer.Option("--addr", "-a", help="Address of Riker gRPC server [riker:6000]"),
    ] = None,
    cert: Annotated[
        Path | None,
        typer.Option("--cert", "-c", help="Path to TLS client key + certificate (.pem)"),
    ] = None,
    ca: Annotated[
        Path | None,
        typer.Option("--ca", "-C", help="Path to CA cert for validating the Riker server"),
    ] = None,
    namespace: Annotated[
        str | None,
        typer.Option("--namespace", "-n", help="Command namespace to register with Riker"),
    ] = None,
    description: Annotated[
        str | None,
        typer.Option("--description", "-d", help="Description of the commands provided"),
    ] = None,
    usage: Annotated[
        str | None,
        typer.Option("--usage", "-u", help="Usage information for the commands provided"),
    ] = None,
    users: Annotated[
        list[str] | None,
        typer.Option("--users", "-U", help="Chat usernames authorized to use this redshirt"),
    ] = None,
    groups: Annotated[
        list[str] | None,
        typer.Option("--groups", "-G", help="Chat groups authorized to use this redshirt"),
    ] = None,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Plaintext connection without certificates"),
    ] = False,
    config: Annotated[
        Path | None,
        typer.Option("--config", help="Path to a TOML configuration file"),
    ] = None,
    max_concurrency: Annotated[
        int | None,
        typer.Option("--max-concurrency", help="Limit on simultaneous commands (0 = none)"),
    ] = None,
    command_timeout: Annotated[
        float | None,
        typer.Option("--command-timeout", help="Kill commands running longer (seconds)"),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="DEBUG, INFO, WARNING or ERROR"),
    ] = None,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show the version and exit",
        ),
    ] = False,
) -> None:
    """Register COMMAND with Riker and run it for every chat invocation.

    Chat arguments are appended after COMMAND's own arguments. Options after
    COMMAND are passed to it. Settings may also come from REDSHIRT_* env
    vars or a TOML file.

    Example:

        redshirt-cli-wrapper -a riker:6000 -c echo.pem -C ca.pem \\
            -n echo -d "echo server" -G infra -u "echo <msg>" /bin/echo
    """
    from redshirt.cli.runtime import run_relay
    from redshirt.config import ConfigError, load_config
    from redshirt.logging import configure_logging
    from redshirt.rpc import ConnectError, CredentialsError

    configure_logging(log_level, use_rich=console.is_terminal)

    overrides = {
        "command": command,
        "addr": addr,
        "cert": cert,
        "ca": ca,
        "namespace": namespace,
        "description": description,
        "usage": usage,
        "users": users,
        "groups": groups,
        "debug": True if debug else None,
        "max_concurrency": max_concurrency,
        "command_timeout": command_timeout,
    }
    try:
        wrapper_config = load_config(config, overrides)
    except ConfigError as e:
        error(f"Invalid configuration: {e}")
        raise typer.Exit(1) from None

    try:
        asyncio.run(run_relay(wrapper_config))
    except (CredentialsError, ConnectError) as e:
        error(str(e))
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        dim("Stopped")
