"""simple-rpc command line.

Usage:
    simple-rpc serve                          # Demo server on ws://127.0.0.1:4097/rpc
    simple-rpc serve --port 8080 --path /ws   # Custom port and path
    simple-rpc call ws://host:4097/rpc echo 42 '"text"' '{"a": 1}'
    simple-rpc signal ws://host:4097/rpc log '"hello"'

Arguments after the namespace are parsed as JSON; anything that is not
valid JSON is sent as a plain string.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

import click

from .config import RpcConfig
from .errors import RpcError

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def parse_argument(value: str) -> Any:
    """Parse one command line argument as JSON, falling back to the raw string."""
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    help="Logging verbosity (logs go to stderr)",
)
@click.option("--timeout", type=float, default=None, help="Call timeout in seconds")
@click.option("--subprotocol", default=None, help="WebSocket sub-protocol tag")
@click.pass_context
def main(
    ctx: click.Context,
    log_level: str,
    timeout: float | None,
    subprotocol: str | None,
) -> None:
    """simple-rpc - symmetric RPC over WebSocket."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(levelname)s: %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        ctx.obj = RpcConfig.from_env(call_timeout=timeout, subprotocol=subprotocol)
    except ValueError as e:
        raise click.UsageError(str(e)) from e


@main.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=4097, help="Port to bind to")
@click.option("--path", default="/rpc", help="WebSocket path of the RPC endpoint")
@click.pass_obj
def serve(config: RpcConfig, host: str, port: int, path: str) -> None:
    """Run a demo server exposing ``echo``, ``ping`` and ``namespaces``."""
    import uvicorn

    app = _create_demo_app(config, path)

    click.echo(f"Starting simple-rpc server on ws://{host}:{port}{path}", err=True)
    click.echo(f"  Sub-protocol: {config.subprotocol}", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    uvicorn.run(app, host=host, port=port)


@main.command()
@click.argument("url")
@click.argument("namespace")
@click.argument("args", nargs=-1)
@click.pass_obj
def call(config: RpcConfig, url: str, namespace: str, args: tuple[str, ...]) -> None:
    """Call NAMESPACE on the server at URL and print the JSON result."""
    result = _run_client(config, url, namespace, args, expect_response=True)
    click.echo(json.dumps(result, ensure_ascii=False))


@main.command()
@click.argument("url")
@click.argument("namespace")
@click.argument("args", nargs=-1)
@click.pass_obj
def signal(config: RpcConfig, url: str, namespace: str, args: tuple[str, ...]) -> None:
    """Send NAMESPACE to the server at URL without waiting for a result."""
    _run_client(config, url, namespace, args, expect_response=False)


def _run_client(
    config: RpcConfig,
    url: str,
    namespace: str,
    args: tuple[str, ...],
    *,
    expect_response: bool,
) -> Any:
    from .client import RpcClient

    params = [parse_argument(arg) for arg in args]
    client_config = config.with_overrides(reconnect=False)

    async def run() -> Any:
        async with RpcClient(url, config=client_config) as client:
            if expect_response:
                return await client.call(namespace, *params)
            await client.signal(namespace, *params)
            return None

    try:
        return asyncio.run(run())
    except RpcError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except ConnectionError as e:
        click.echo(f"Cannot connect: {e}", err=True)
        sys.exit(1)


def _create_demo_app(config: RpcConfig, path: str) -> Any:
    from .server import RpcServer, create_app

    server = RpcServer(config=config)
    server.register("echo", lambda *values: values[0] if len(values) == 1 else list(values))
    server.register("ping", lambda: "pong")
    server.register("namespaces", server.dispatch.namespaces)
    return create_app(server, path=path)


if __name__ == "__main__":
    main()
