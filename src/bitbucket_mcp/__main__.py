#!/usr/bin/env python3
"""bitbucket-mcp-server entry point.

Run:
  uvx python -m bitbucket_mcp                # start server (stdio)
  uvx python -m bitbucket_mcp --test         # list tools then exit
"""

import argparse
import asyncio
import sys

from bitbucket_mcp import __version__
from bitbucket_mcp.errors import ErrorKind, SafeError
from bitbucket_mcp.server import run_server, test_server


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(prog="bitbucket_mcp", add_help=True)
    parser.add_argument(
        "--test",
        action="store_true",
        help="Run built-in server self tests (tool listing) then exit.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """CLI dispatcher for the MCP server. Returns the process exit status."""
    args = parse_args(sys.argv[1:] if argv is None else argv)
    try:
        if args.test:
            asyncio.run(test_server())
        else:
            asyncio.run(run_server())
    except KeyboardInterrupt:
        print("\nServer stopped by user", file=sys.stderr)
    except SafeError as exc:
        if exc.kind is not ErrorKind.CONFIGURATION:
            raise
        print(f"Configuration error: {exc.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
