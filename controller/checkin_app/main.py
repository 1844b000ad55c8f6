"""FastAPI entry-point for the check-in kiosk controller."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import psutil
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from .config import Settings, get_settings
from .logging_config import configure_logging
from .session_manager import SessionController

logger = logging.getLogger(__name__)


class PhoneUpdateRequest(BaseModel):
    raw: str = ""
    region: Optional[str] = None


async def _wait_for_disconnect(ws: WebSocket) -> None:
    while True:
        message = await ws.receive()
        if message["type"] == "websocket.disconnect":
            return


def create_app(settings: Optional[Settings] = None, manager: Optional[SessionController] = None) -> FastAPI:
    settings = settings or get_settings()
    manager = manager or SessionController(settings=settings)
    app = FastAPI(title="checkin-controller", version="0.1.0")
    app.state.manager = manager

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> PlainTextResponse:
        """Catch-all exception handler to prevent application crashes."""
        logger.exception("Unhandled exception in %s: %s", request.url.path, exc)
        return PlainTextResponse(
            f"Internal server error: {str(exc)}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle request validation errors gracefully."""
        logger.warning("Validation error in %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc)},
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def on_startup() -> None:
        try:
            await manager.start()
            logger.info("Application started successfully")
        except Exception as e:
            logger.exception("Failed to start controller: %s", e)
            # Don't re-raise - the form works without branding

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        try:
            await manager.stop()
            logger.info("Application shutdown complete")
        except Exception as e:
            logger.exception("Error during shutdown: %s", e)

    @app.get("/healthz")
    async def healthcheck() -> JSONResponse:
        return JSONResponse({"status": "ok", "phase": manager.phase.value})

    @app.get("/session")
    async def session_state() -> JSONResponse:
        return JSONResponse(manager.snapshot().to_payload())

    @app.post("/session/phone")
    async def session_phone(payload: PhoneUpdateRequest) -> JSONResponse:
        await manager.update_phone(payload.raw, payload.region)
        return JSONResponse(manager.snapshot().to_payload())

    @app.post("/session/submit")
    async def session_submit() -> JSONResponse:
        snapshot = await manager.submit()
        return JSONResponse(snapshot.to_payload())

    @app.post("/session/dismiss")
    async def session_dismiss() -> JSONResponse:
        snapshot = await manager.dismiss()
        return JSONResponse(snapshot.to_payload())

    @app.get("/debug/performance")
    async def debug_performance() -> JSONResponse:
        """Get real-time CPU and memory usage."""
        try:
            cpu_percent = psutil.cpu_percent(interval=0.1)
            memory = psutil.virtual_memory()

            return JSONResponse({
                "cpu_percent": round(cpu_percent, 1),
                "memory_percent": round(memory.percent, 1),
                "memory_used_mb": round(memory.used / (1024 * 1024), 1),
                "memory_total_mb": round(memory.total / (1024 * 1024), 1),
            })
        except Exception as e:
            logger.error("Performance monitoring error: %s", e)
            return JSONResponse({"error": str(e)}, status_code=500)

    @app.websocket("/ws/ui")
    async def ui_socket(ws: WebSocket) -> None:
        await ws.accept()
        queue = manager.register_ui()
        closed = asyncio.create_task(_wait_for_disconnect(ws), name="ui-ws-disconnect")
        try:
            # Late joiners get the current screen immediately.
            await ws.send_json({
                "type": "state",
                "phase": manager.phase.value,
                "data": manager.snapshot().to_payload(),
            })
            while True:
                getter = asyncio.create_task(queue.get())
                done, _ = await asyncio.wait({getter, closed}, return_when=asyncio.FIRST_COMPLETED)
                if getter not in done:
                    getter.cancel()
                    break
                event = getter.result()

                payload = {
                    "type": event.type,
                    "phase": event.phase.value,
                    "data": event.data,
                }
                if event.error:
                    payload["error"] = event.error

                try:
                    await ws.send_json(payload)
                except Exception as e:
                    logger.debug("WebSocket send failed (client disconnected): %s", e)
                    break
        except WebSocketDisconnect:
            pass
        except asyncio.CancelledError:
            pass  # Clean shutdown
        except Exception as e:
            logger.error("Unexpected error in UI websocket: %s", e)
        finally:
            client_gone = closed.done() and not closed.cancelled()
            closed.cancel()
            manager.unregister_ui(queue)
            if not client_gone:
                try:
                    await ws.close()
                except Exception:
                    pass

    return app


settings: Settings = get_settings()
configure_logging(settings.log_level, settings.log_directory, settings.log_retention_days)
app = create_app(settings)
