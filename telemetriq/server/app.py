"""
HTTP / WebSocket surface for the live telemetry feed.

    GET  /ws                                WebSocket feed + inbound commands
    GET  /health                            liveness
    GET  /state                             full snapshot (polling fallback)
    POST /commands/toggle-fault/{fault_id}  202, effects via broadcasts
    POST /commands/restart                  202
    POST /commands/shutdown                 202
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version

from fastapi import FastAPI, Request, Response, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from telemetriq.core.config import TelemetrIQConfig
from telemetriq.core.engine import SimulationEngine
from telemetriq.core.scheduler import RecurringTask
from telemetriq.server.broadcaster import EventBroadcaster, Subscriber

try:
    TELEMETRIQ_PACKAGE_VERSION = version("telemetriq")
except PackageNotFoundError:
    TELEMETRIQ_PACKAGE_VERSION = "dev"

logger = logging.getLogger(__name__)


async def _pump(
    websocket: WebSocket, broadcaster: EventBroadcaster, subscriber: Subscriber
) -> None:
    """Forward queued events to one client, in order."""
    try:
        while True:
            event = await subscriber.queue.get()
            if event is None:
                await websocket.close(code=1013)
                return
            await websocket.send_json(event.to_message())
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.debug("Send to %s failed: %s", subscriber.client_id, e)
        broadcaster.unsubscribe(subscriber)


def create_app(
    config: TelemetrIQConfig | None = None,
    engine: SimulationEngine | None = None,
) -> FastAPI:
    config = config or TelemetrIQConfig()
    engine = engine or SimulationEngine(config)
    broadcaster = EventBroadcaster(engine)
    scheduler = RecurringTask(config.tick_seconds, broadcaster.tick, name="simulation-tick")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler.start()
        try:
            yield
        finally:
            await scheduler.stop()

    app = FastAPI(title="TelemetrIQ live feed", version=TELEMETRIQ_PACKAGE_VERSION, lifespan=lifespan)
    app.state.config = config
    app.state.engine = engine
    app.state.broadcaster = broadcaster
    app.state.scheduler = scheduler

    # Local dashboards connect from another origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["System"])
    async def health_check():
        return {"status": "ok", "version": TELEMETRIQ_PACKAGE_VERSION}

    @app.get("/state", tags=["System"])
    async def get_state(request: Request):
        return request.app.state.engine.snapshot()

    @app.post("/commands/toggle-fault/{fault_id}", status_code=202, tags=["Commands"])
    async def toggle_fault(fault_id: str, request: Request):
        request.app.state.broadcaster.toggle_fault(fault_id)
        return Response(status_code=202)

    @app.post("/commands/restart", status_code=202, tags=["Commands"])
    async def restart_system(request: Request):
        request.app.state.broadcaster.restart_system()
        return Response(status_code=202)

    @app.post("/commands/shutdown", status_code=202, tags=["Commands"])
    async def shutdown_system(request: Request):
        request.app.state.broadcaster.shutdown_system()
        return Response(status_code=202)

    @app.websocket("/ws")
    async def telemetry_feed(websocket: WebSocket):
        await websocket.accept()
        b: EventBroadcaster = websocket.app.state.broadcaster
        subscriber = b.subscribe()
        sender = asyncio.create_task(_pump(websocket, b, subscriber))

        try:
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    break
                raw = frame.get("text")
                if raw is None:
                    logger.warning("Ignoring binary frame from %s", subscriber.client_id)
                    continue
                try:
                    message = json.loads(raw)
                except json.JSONDecodeError:
                    logger.warning("Ignoring non-JSON message from %s", subscriber.client_id)
                    continue
                b.handle_message(message)
        except WebSocketDisconnect:
            pass
        finally:
            b.unsubscribe(subscriber)
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass

    return app
