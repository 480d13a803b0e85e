"""feed_ingest - MCP server with a background ingestion loop.

This module builds the FastMCP server exposing the feed tools and runs it
next to the ingestion loop. Both share one database connection pool.
"""

import asyncio
import contextlib
import os
import sys
from typing import Optional

import click
from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from feed_ingest.config import ServerConfig, get_config
from feed_ingest.decorators import exception_handler, tool_logger
from feed_ingest.ingestion.worker import run_cycle, run_forever
from feed_ingest.logging_config import logger, setup_logging
from feed_ingest.storage import database
from feed_ingest.tools.feed_tools import feed_tools


def create_mcp_server(config: Optional[ServerConfig] = None) -> FastMCP:
    """Create and configure the MCP server with decorators.

    Args:
        config: Optional server configuration

    Returns:
        Configured FastMCP server instance
    """
    if config is None:
        config = get_config()

    logger.info(f"Server config: {config.name} at log level {config.log_level}")

    # Configure DNS rebinding protection (disabled by default for development)
    dns_protection = os.getenv("MCP_DNS_REBINDING_PROTECTION", "false").lower() == "true"
    allowed_hosts_env = os.getenv("MCP_ALLOWED_HOSTS", "")
    allowed_hosts = [h.strip() for h in allowed_hosts_env.split(",") if h.strip()]

    logger.info(f"DNS rebinding protection: {'enabled' if dns_protection else 'disabled'}")

    mcp_server = FastMCP(
        config.name or "feed_ingest",
        transport_security=TransportSecuritySettings(
            enable_dns_rebinding_protection=dns_protection,
            allowed_hosts=allowed_hosts,
        ),
    )

    register_tools(mcp_server, config)
    return mcp_server


def register_tools(mcp_server: FastMCP, config: ServerConfig) -> None:
    """Register all MCP tools with the server using decorators.

    Registers decorated functions directly with MCP to preserve function
    signatures for proper parameter introspection.
    """
    for tool_func in feed_tools:
        # Apply decorator chain: exception_handler -> tool_logger
        decorated_func = exception_handler(tool_logger(tool_func, config.__dict__))

        mcp_server.tool(name=tool_func.__name__)(decorated_func)
        logger.info(f"Registered feed tool: {tool_func.__name__}")

    logger.info(f"Server '{mcp_server.name}' initialized with {len(feed_tools)} tools")


async def run_once(config: ServerConfig) -> int:
    """Run a single ingestion cycle and return a process exit code."""
    db = await database.get_database()
    try:
        report = await run_cycle(db, config)
    finally:
        await database.close_database()

    return 1 if report.listing_error else 0


async def serve(
    config: ServerConfig,
    transport: str,
    host: str,
    port: int,
    ingest: bool = True,
) -> None:
    """Run the MCP server, with the ingestion loop as a background task."""
    server = create_mcp_server(config)
    db = await database.get_database()

    stop_event = asyncio.Event()
    ingest_task = None
    if ingest:
        ingest_task = asyncio.create_task(run_forever(db, config, stop_event))

    try:
        if transport == "stdio":
            logger.info("Starting server with STDIO transport")
            await server.run_stdio_async()
        elif transport == "sse":
            logger.info(f"Starting server with SSE transport on {host}:{port}")
            server.settings.host = host
            server.settings.port = port
            await server.run_sse_async()
        elif transport == "streamable-http":
            logger.info(f"Starting server with Streamable HTTP transport on {host}:{port}")
            server.settings.host = host
            server.settings.port = port
            server.settings.streamable_http_path = "/mcp"
            await server.run_streamable_http_async()
        else:
            raise ValueError(f"Unknown transport: {transport}")
    finally:
        stop_event.set()
        if ingest_task is not None:
            ingest_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await ingest_task
        await database.close_database()


@click.command()
@click.option(
    "--port",
    default=3001,
    help="Port to listen on for SSE or Streamable HTTP transport"
)
@click.option(
    "--host",
    default="127.0.0.1",
    help="Host to bind to (use 0.0.0.0 for Docker)"
)
@click.option(
    "--transport",
    type=click.Choice(["stdio", "sse", "streamable-http"]),
    default="stdio",
    help="Transport type (stdio, sse, or streamable-http)"
)
@click.option(
    "--ingest/--no-ingest",
    default=True,
    help="Run the background ingestion loop alongside the server"
)
@click.option(
    "--once",
    is_flag=True,
    default=False,
    help="Run a single ingestion cycle and exit without starting the server"
)
def main(port: int, host: str, transport: str, ingest: bool, once: bool) -> int:
    """Run the feed_ingest server with specified transport."""
    try:
        config = get_config()
    except ValueError as e:
        click.echo(f"Invalid configuration: {e}", err=True)
        return 2

    setup_logging(config)

    try:
        if once:
            return asyncio.run(run_once(config))
        asyncio.run(serve(config, transport, host, port, ingest=ingest))
        return 0
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        return 0
    except Exception as e:
        logger.error(f"Failed to start server: {e}", exc_info=True)
        return 1


def main_stdio() -> int:
    """Entry point for STDIO transport (convenience wrapper)."""
    return main.callback(port=3001, host="127.0.0.1", transport="stdio", ingest=True, once=False)


def main_http() -> int:
    """Entry point for Streamable HTTP transport (convenience wrapper)."""
    return main.callback(
        port=3001, host="127.0.0.1", transport="streamable-http", ingest=True, once=False
    )


if __name__ == "__main__":
    sys.exit(main(standalone_mode=False))
