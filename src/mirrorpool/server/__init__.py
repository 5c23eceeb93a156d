"""MirrorPool MCP server: tool schemas, handlers and transports."""
