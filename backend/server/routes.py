"""
Route registration for the wake-word controller API.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Wire gateway to WebSocket lifecycle
- Own the socket's send side (one writer task per connection)
- Pull dependencies from app.state
"""

from __future__ import annotations

import asyncio
import json

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from observability.logger import log_event
from session.gateway import SessionGateway
from session.wake_session import WakeSession


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        await ws.accept()

        gateway = SessionGateway(
            config=app.state.config,
            timings=app.state.timings,
        )
        writer: asyncio.Task[None] | None = None

        try:
            session = await gateway.on_ws_connect(client=ws.query_params.get("client"))
            writer = asyncio.create_task(_write_control(ws, session))

            while True:
                msg = await ws.receive()

                if msg["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(code=msg.get("code", 1000))

                if msg.get("text") is not None:
                    await gateway.on_json_message(msg["text"])

                elif msg.get("bytes") is not None:
                    log_event({
                        "event_type": "BINARY_MESSAGE_IGNORED",
                        "session_id": session.session_id,
                        "payload_len": len(msg["bytes"]),
                    })

        except WebSocketDisconnect:
            await gateway.on_ws_disconnect(reason="client_disconnect")

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "WS_FATAL_ERROR",
                "session_id": gateway.session.session_id if gateway.session else None,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            await gateway.on_ws_disconnect(reason="server_error")

        finally:
            if writer is not None:
                writer.cancel()
                await asyncio.gather(writer, return_exceptions=True)


async def _write_control(ws: WebSocket, session: WakeSession) -> None:
    """
    Deliver queued control messages in FIFO order.

    The only coroutine that sends on the socket, so timer-driven and
    message-driven output cannot interleave.
    """
    while True:
        for msg in await session.wait_for_control():
            await ws.send_text(json.dumps(msg))
