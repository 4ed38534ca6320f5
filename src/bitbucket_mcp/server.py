"""MCP server wiring for bitbucket-mcp-server.

Credentials are resolved once before the stdio transport is opened; a
configuration failure never reaches the transport.
"""

from __future__ import annotations

import logging
import sys

try:
    from mcp import types
    from mcp.server import Server
    from mcp.types import Tool
except ImportError as exc:  # pragma: no cover
    raise ImportError("MCP library not installed. Install with: pip install mcp") from exc

from . import __version__
from .catalog import TOOL_METADATA
from .config import SERVER_NAME, resolve_identity
from .tools import Runtime, build_runtime, dispatch_tool

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger(__name__)


async def list_tools() -> list[Tool]:
    """List all available tools, in catalog order."""
    tools = [
        Tool(name=name, description=meta["description"], inputSchema=meta["inputSchema"])
        for name, meta in TOOL_METADATA.items()
    ]
    logger.info("Listed %s tools", len(tools))
    return tools


def create_server(runtime: Runtime) -> Server:
    """Build an MCP server whose tool calls are served by `runtime`."""
    server: Server = Server(SERVER_NAME, version=__version__)

    server.list_tools()(list_tools)

    # McpError propagates to the session and is sent as a JSON-RPC error.
    async def call_tool(req: types.CallToolRequest) -> types.ServerResult:
        name = req.params.name
        logger.info("Tool called: %s", name)
        content = await dispatch_tool(runtime, name, req.params.arguments or {})
        return types.ServerResult(types.CallToolResult(content=content, isError=False))

    server.request_handlers[types.CallToolRequest] = call_tool

    return server


async def run_server() -> None:
    """Resolve credentials, then serve over stdio until the stream closes."""
    identity = resolve_identity()
    runtime = build_runtime(identity)
    server = create_server(runtime)

    from mcp.server.stdio import stdio_server

    async with stdio_server() as (read_stream, write_stream):
        logger.info("Bitbucket MCP server running on stdio (workspace %s)", identity.workspace)
        await server.run(read_stream, write_stream, server.create_initialization_options())


async def test_server() -> None:
    """Lightweight self-test: every catalog entry builds a Tool."""
    tools = await list_tools()
    print(f"{SERVER_NAME} {__version__}: {len(tools)} tools", file=sys.stderr)
    for tool in tools:
        print(f"  - {tool.name}: {tool.description}", file=sys.stderr)
