"""MirrorPool over stdio, with per-minute rate limits and an idle shutdown."""

import atexit
import asyncio
import collections
import json
import logging
import os
import sys
import time

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from mirrorpool.config import log_level
from mirrorpool.server.handlers import HANDLERS
from mirrorpool.server.tool_schemas import TOOL_SCHEMAS, WRITE_TOOLS

# Seconds without a tool call before the process exits; 0 disables.
_IDLE_TIMEOUT = int(os.environ.get("MIRRORPOOL_IDLE_TIMEOUT", "3600"))
_last_activity: float = time.monotonic()


def _close_on_exit():
    try:
        from mirrorpool.bridge import _close_engine

        _close_engine()
    except Exception as e:
        logger.debug("Engine close on exit failed: %s", e)


atexit.register(_close_on_exit)

logger = logging.getLogger("mirrorpool.server")

server = Server("mirrorpool")

# ---------------------------------------------------------------------------
# Rate limits: calls in the last minute, all tools and reflect_thought
# ---------------------------------------------------------------------------
_GLOBAL_RATE_LIMIT = int(os.environ.get("MIRRORPOOL_RATE_LIMIT_GLOBAL", "300"))  # per minute
_WRITE_RATE_LIMIT = int(os.environ.get("MIRRORPOOL_RATE_LIMIT_WRITE", "60"))  # per minute
_RATE_WINDOW_S = 60.0

_global_timestamps: collections.deque = collections.deque()
_write_timestamps: collections.deque = collections.deque()


def _check_rate_limit(tool_name: str) -> str | None:
    """Return an error message if rate limit exceeded, else None."""
    now = time.monotonic()
    cutoff = now - _RATE_WINDOW_S

    while _global_timestamps and _global_timestamps[0] < cutoff:
        _global_timestamps.popleft()

    if len(_global_timestamps) >= _GLOBAL_RATE_LIMIT:
        logger.warning("Global rate limit hit (%d/min)", _GLOBAL_RATE_LIMIT)
        return f"Rate limit exceeded: {_GLOBAL_RATE_LIMIT} calls/min globally. Try again shortly."

    _global_timestamps.append(now)

    if tool_name in WRITE_TOOLS:
        while _write_timestamps and _write_timestamps[0] < cutoff:
            _write_timestamps.popleft()
        if len(_write_timestamps) >= _WRITE_RATE_LIMIT:
            logger.warning("Write rate limit hit (%d/min)", _WRITE_RATE_LIMIT)
            return f"Rate limit exceeded: {_WRITE_RATE_LIMIT} write calls/min. Try again shortly."
        _write_timestamps.append(now)

    return None


def _error_text(kind: str, message: str) -> str:
    return json.dumps({"error": {"kind": kind, "message": message}})


@server.list_tools()
async def list_tools() -> list[Tool]:
    return [
        Tool(
            name=schema["name"],
            description=schema["description"],
            inputSchema=schema["inputSchema"],
        )
        for schema in TOOL_SCHEMAS
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Run one reflection tool; the reply is its JSON payload as a single text block."""
    global _last_activity
    _last_activity = time.monotonic()

    rate_err = _check_rate_limit(name)
    if rate_err:
        return [TextContent(type="text", text=_error_text("rate_limited", rate_err))]

    handler = HANDLERS.get(name)
    if not handler:
        return [TextContent(type="text", text=_error_text("validation", f"Unknown tool: {name}"))]

    try:
        result = await handler(arguments or {})
        content_list = result.get("content", [{}])
        text = content_list[0].get("text", str(result)) if content_list else str(result)
        return [TextContent(type="text", text=text)]
    except Exception as e:
        logger.exception("Tool %s failed", name)
        return [TextContent(type="text", text=_error_text("internal", f"Error in {name}: {e}"))]


async def _idle_watchdog():
    while True:
        await asyncio.sleep(30)
        idle = time.monotonic() - _last_activity
        if idle >= _IDLE_TIMEOUT:
            logger.warning("Idle for %.0fs (limit %ds), shutting down.", idle, _IDLE_TIMEOUT)
            _close_on_exit()
            os._exit(0)


async def main():
    logging.basicConfig(level=log_level(), stream=sys.stderr)
    logger.info("Starting MirrorPool MCP server...")

    if _IDLE_TIMEOUT > 0:
        _watchdog_task = asyncio.create_task(_idle_watchdog())

    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


if __name__ == "__main__":
    asyncio.run(main())
