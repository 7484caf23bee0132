"""JSON-RPC envelopes and the method dispatcher shared by both servers."""

import json
import logging
import traceback
from dataclasses import dataclass, field
from typing import Any

from council_mcp.models import ToolResult
from council_mcp.tools import ToolRegistry

logger = logging.getLogger(__name__)

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
SERVER_ERROR = -32000

_NOTIFICATION_METHODS = frozenset({"notifications/initialized", "initialized"})


class InvalidEnvelope(Exception):
    """Raised when a decoded frame is not a JSON-RPC message."""

    def __init__(self, code: int, message: str, request_id: Any = None) -> None:
        self.code = code
        self.request_id = request_id
        super().__init__(message)


@dataclass(frozen=True)
class Request:
    id: Any
    method: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Notification:
    method: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Response:
    id: Any
    result: Any = None
    error: dict[str, Any] | None = None


Envelope = Request | Notification | Response


def parse_envelope(body: bytes) -> Envelope:
    """Decode one frame body into a tagged envelope.

    Raises:
        InvalidEnvelope: On undecodable JSON or a shape that is none of
            request, notification or response.
    """
    try:
        obj = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidEnvelope(PARSE_ERROR, f"Parse error: {exc}") from exc

    if not isinstance(obj, dict):
        raise InvalidEnvelope(INVALID_REQUEST, "Invalid request: expected an object")

    request_id = obj.get("id")
    method = obj.get("method")
    if method is None:
        if "id" in obj and ("result" in obj or "error" in obj):
            return Response(id=request_id, result=obj.get("result"), error=obj.get("error"))
        raise InvalidEnvelope(INVALID_REQUEST, "Invalid request: missing method", request_id)
    if not isinstance(method, str):
        raise InvalidEnvelope(INVALID_REQUEST, "Invalid request: method must be a string", request_id)

    params = obj.get("params")
    if not isinstance(params, dict):
        params = {}
    if "id" in obj:
        return Request(id=request_id, method=method, params=params)
    return Notification(method=method, params=params)


def success_response(request_id: Any, result: Any) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def error_response(request_id: Any, code: int, message: str, data: Any = None) -> dict[str, Any]:
    err: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        err["data"] = data
    return {"jsonrpc": "2.0", "id": request_id, "error": err}


def notification(method: str, params: Any = None) -> dict[str, Any]:
    out: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
    if params is not None:
        out["params"] = params
    return out


class Dispatcher:
    """Route envelopes to protocol handlers and the tool registry."""

    def __init__(
        self,
        name: str,
        version: str,
        registry: ToolRegistry,
        protocol_version: str = "2024-11-05",
    ) -> None:
        self.name = name
        self.version = version
        self.registry = registry
        self.protocol_version = protocol_version

    async def handle_body(self, body: bytes) -> dict[str, Any] | None:
        """Decode a frame body and produce the response to write, if any."""
        try:
            envelope = parse_envelope(body)
        except InvalidEnvelope as exc:
            logger.warning("Rejected frame: %s", exc)
            return error_response(exc.request_id, exc.code, str(exc))
        return await self.handle(envelope)

    async def handle(self, envelope: Envelope) -> dict[str, Any] | None:
        if isinstance(envelope, Response):
            logger.debug("Ignoring response envelope for id %r", envelope.id)
            return None
        try:
            return await self._route(envelope)
        except Exception as exc:
            logger.exception("Unhandled error while handling %s", envelope.method)
            if isinstance(envelope, Request):
                return error_response(envelope.id, SERVER_ERROR, str(exc), {"stack": traceback.format_exc()})
            return None

    async def _route(self, envelope: Request | Notification) -> dict[str, Any] | None:
        method = envelope.method
        params = envelope.params

        if method in _NOTIFICATION_METHODS:
            return None
        if isinstance(envelope, Notification):
            logger.debug("Dropping notification %s", method)
            return None

        request_id = envelope.id
        if method == "initialize":
            return success_response(request_id, {
                "protocolVersion": params.get("protocolVersion") or self.protocol_version,
                "capabilities": {"tools": {"listChanged": False}},
                "serverInfo": {"name": self.name, "version": self.version},
            })
        if method == "tools/list":
            return success_response(request_id, {"tools": self.registry.list_tools()})
        if method == "tools/call":
            tool_name = str(params.get("name") or "").strip()
            if not tool_name:
                return error_response(request_id, INVALID_PARAMS, "Invalid params: missing tool name.")
            result: ToolResult = await self.registry.call(tool_name, params.get("arguments"))
            return success_response(request_id, result.to_dict())
        if method == "ping":
            return success_response(request_id, {})

        return error_response(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")
