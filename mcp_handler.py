"""MCP JSON-RPC endpoint.

Serves the tools subset of MCP over plain JSON-RPC 2.0 on POST / and
POST /mcp. Both paths sit behind MCPOAuthMiddleware.
"""

import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from mcp import types

from tools import TOOLS

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "github-mcp-server"
SERVER_VERSION = "1.0.0"

TOOL_EXECUTION_ERROR = -32000

router = APIRouter(tags=["mcp"])


def _result(message_id, result: dict) -> dict:
    return {"jsonrpc": "2.0", "id": message_id, "result": result}


def _error(message_id, code: int, message: str) -> dict:
    return {"jsonrpc": "2.0", "id": message_id, "error": {"code": code, "message": message}}


async def call_tool(github, params: dict, message_id) -> dict:
    tool_name = params.get("name")
    arguments = params.get("arguments") or {}

    tool = TOOLS.get(tool_name)
    if tool is None:
        return _error(message_id, types.METHOD_NOT_FOUND, f"Unknown tool: {tool_name}")

    try:
        tool.check_arguments(arguments)
        result = await tool.handler(github, arguments)
    except Exception as e:
        logger.warning(f"[MCP] Tool {tool_name} failed: {e}")
        return _error(message_id, TOOL_EXECUTION_ERROR, str(e) or "Tool execution failed")

    content = types.TextContent(type="text", text=json.dumps(result, indent=2))
    return _result(message_id, {"content": [content.model_dump(exclude_none=True)]})


async def dispatch(message: dict, github):
    """Route one JSON-RPC message. Returns the response dict, or None for notifications."""
    method = message.get("method")
    message_id = message.get("id")

    if method == "initialize":
        return _result(message_id, {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
        })

    if method == "tools/list":
        return _result(message_id, {
            "tools": [t.to_mcp().model_dump(exclude_none=True) for t in TOOLS.values()],
        })

    if method == "tools/call":
        return await call_tool(github, message.get("params") or {}, message_id)

    if isinstance(method, str) and method.startswith("notifications/") and "id" not in message:
        return None

    return _error(message_id, types.METHOD_NOT_FOUND, "Method not found")


async def handle_mcp(request: Request) -> Response:
    message = None
    try:
        message = await request.json()
        logger.debug(f"[MCP] {message.get('method')}")
        response = await dispatch(message, request.app.state.github)
        if response is None:
            return Response(status_code=202)
        return JSONResponse(response)
    except Exception:
        logger.exception("[MCP] Internal error")
        message_id = message.get("id") if isinstance(message, dict) else None
        return JSONResponse(
            _error(message_id, types.INTERNAL_ERROR, "Internal error"),
            status_code=500,
        )


# Claude posts to the root path, other clients to /mcp
router.add_api_route("/", handle_mcp, methods=["POST"])
router.add_api_route("/mcp", handle_mcp, methods=["POST"])
