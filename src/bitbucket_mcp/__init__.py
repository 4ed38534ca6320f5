"""Bitbucket MCP Server.

A Model Context Protocol server exposing Bitbucket Cloud repository, branch,
pull request and deployment operations as tools over stdio.

Run with: uvx python -m bitbucket_mcp
"""

__version__ = "0.5.0"
