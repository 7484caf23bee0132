"""Single-consumer stdio server loop shared by the model router and runner."""

import asyncio
import json
import logging
import sys
import traceback
from typing import Any

from council_mcp.framing import FramedTransport
from council_mcp.rpc import SERVER_ERROR, Dispatcher, error_response, notification

logger = logging.getLogger(__name__)


class StdioServer:
    """Read one frame, handle it to completion, write the reply, repeat.

    Requests are never handled concurrently: the next frame is only read once
    the previous handler (including all network or subprocess work) is done.
    """

    def __init__(self, dispatcher: Dispatcher, transport: FramedTransport) -> None:
        self.dispatcher = dispatcher
        self.transport = transport

    def send(self, message: dict[str, Any]) -> None:
        self.transport.write_message(json.dumps(message, ensure_ascii=False).encode("utf-8"))

    async def serve(self) -> int:
        """Run until the transport reports end of stream. Returns frames handled."""
        self.send(notification("server/ready", {
            "name": self.dispatcher.name,
            "version": self.dispatcher.version,
        }))
        handled = 0
        while True:
            body = self.transport.read_message()
            if body is None:
                logger.info("%s: input closed after %d message(s)", self.dispatcher.name, handled)
                return handled
            handled += 1
            response = await self.dispatcher.handle_body(body)
            if response is not None:
                self.send(response)


def run_stdio(dispatcher: Dispatcher, closers: list[Any] | None = None) -> None:
    """Serve over the process stdin/stdout until the host disconnects.

    ``closers`` are objects with an async ``aclose`` run after the loop ends.
    An uncaught failure is reported as a null-id error frame before exiting.
    """
    transport = FramedTransport(sys.stdin.buffer, sys.stdout.buffer)
    server = StdioServer(dispatcher, transport)

    async def _main() -> None:
        try:
            await server.serve()
        finally:
            for closer in closers or []:
                await closer.aclose()

    try:
        asyncio.run(_main())
    except Exception as exc:
        logger.exception("%s crashed", dispatcher.name)
        server.send(error_response(None, SERVER_ERROR, str(exc), {"stack": traceback.format_exc()}))
        raise SystemExit(1) from exc
