"""Streamable HTTP front end for the reflection tools.

Tools live at /mcp (API key optional). /health and the /.well-known/mcp.json
server card are always open.
"""

import contextlib
import secrets
from collections.abc import AsyncIterator
from pathlib import Path

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route
from starlette.types import Receive, Scope, Send

from mcp.server.streamable_http_manager import StreamableHTTPSessionManager

from mirrorpool.config import mirrorpool_home


def api_key_path() -> Path:
    return mirrorpool_home() / "api_key"


def get_or_create_api_key() -> str:
    """Load the API key from $MIRRORPOOL_HOME/api_key, or generate one."""
    path = api_key_path()
    if path.exists():
        return path.read_text().strip()
    key = secrets.token_urlsafe(32)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(key + "\n")
    path.chmod(0o600)
    return key


def create_http_app(server, api_key: str | None = None) -> Starlette:
    """Starlette app exposing ``server`` at /mcp; with ``api_key=None`` /mcp is open."""
    session_manager = StreamableHTTPSessionManager(
        app=server,
        json_response=True,
        stateless=True,
    )

    async def mcp_asgi_app(scope: Scope, receive: Receive, send: Send) -> None:
        if api_key:
            request = Request(scope, receive)
            provided = request.headers.get("x-api-key") or request.query_params.get("api_key")
            if provided is None or not secrets.compare_digest(provided, api_key):
                response = JSONResponse({"error": "Unauthorized"}, status_code=401)
                await response(scope, receive, send)
                return
        await session_manager.handle_request(scope, receive, send)

    async def health(request: Request):
        return JSONResponse({"status": "ok", "server": "mirrorpool"})

    async def server_card(request: Request):
        from mirrorpool import __version__
        from mirrorpool.server.tool_schemas import TOOL_SCHEMAS

        return JSONResponse({
            "name": "mirrorpool",
            "version": __version__,
            "description": "Reflection graph engine: echoes, ripples, evolution and undercurrents of thoughts",
            "transports": [
                {"type": "streamable-http", "url": "/mcp"},
                {"type": "stdio", "command": "python3 -m mirrorpool.server.mcp_server"},
            ],
            "tools": [schema["name"] for schema in TOOL_SCHEMAS],
            "tools_count": len(TOOL_SCHEMAS),
        })

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with session_manager.run():
            yield

    app = Starlette(
        routes=[
            Mount("/mcp", app=mcp_asgi_app),
            Route("/health", endpoint=health),
            Route("/.well-known/mcp.json", endpoint=server_card),
        ],
        lifespan=lifespan,
    )
    return app


async def run_http(host: str, port: int, api_key: str | None) -> None:
    """Serve the stdio server's tools over HTTP until uvicorn stops."""
    import uvicorn

    from mirrorpool.server.mcp_server import server

    app = create_http_app(server, api_key=api_key)
    config = uvicorn.Config(app, host=host, port=port, log_level="info")
    srv = uvicorn.Server(config)
    await srv.serve()
