"""FastAPI REST and WebSocket interface for the serial monitor.

Thin presentation layer over SerialMonitorController. All handlers are
async and therefore run on the event loop thread, which acts as the
controller's control thread: each data route calls update() to drain the
reader's inbox before answering.

Error mapping:
- ConfigError (no port, bad max_points) → 400
- SerialIOError (open/write failure, not connected) → 503
- Unknown channel → 404
- Other exceptions → 500
"""

import asyncio
import logging
import os
from threading import RLock
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from serial_monitor_lib import SerialMonitorController, list_ports, protocol
from serial_monitor_lib.errors import ConfigError, SerialIOError

# =============================================================================
# Environment Configuration
# =============================================================================

API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "9160"))
DEFAULT_SERIAL_PORT = os.getenv("SERIAL_PORT", "")
DEFAULT_SERIAL_BAUD = int(os.getenv("SERIAL_BAUD", str(protocol.DEFAULT_BAUD)))
DEFAULT_MAX_POINTS = int(os.getenv("MAX_POINTS", str(protocol.DEFAULT_MAX_POINTS)))
STREAM_INTERVAL_S = float(os.getenv("STREAM_INTERVAL_S", "0.1"))
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000"
).split(",")

API_VERSION = "0.1.0"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# =============================================================================
# Global Singletons
# =============================================================================

_controller: Optional[SerialMonitorController] = None
_lock = RLock()  # Protects state-changing operations


def get_controller() -> SerialMonitorController:
    """Return the process-wide controller, creating it on first use."""
    global _controller

    with _lock:
        if _controller is None:
            _controller = SerialMonitorController(max_points=DEFAULT_MAX_POINTS)
        return _controller


def _pump() -> SerialMonitorController:
    """Run one update cycle and return the controller."""
    controller = get_controller()
    controller.update()
    return controller

# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(
    title="Serial Monitor API",
    description="REST and WebSocket interface for a serial monitor with live telemetry plots",
    version=API_VERSION
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_404_requests(request: Request, call_next):
    """Log all 404 responses to help debug missing routes."""
    response = await call_next(request)
    if response.status_code == 404:
        logger.warning(f"404 NOT FOUND: {request.method} {request.url.path}")
    return response

# =============================================================================
# Request/Response Models
# =============================================================================

class PortResponse(BaseModel):
    """One entry of GET /ports."""
    device: str
    description: str
    hwid: str


class ConnectResponse(BaseModel):
    """Response for POST /connect."""
    status: str
    port: str
    baud: int


class SendRequest(BaseModel):
    """Request body for POST /send."""
    text: str
    hex_mode: bool = False


class SendResponse(BaseModel):
    """Response for POST /send."""
    status: str
    bytes_sent: int


class StatusResponse(BaseModel):
    """Response for GET /status."""
    connected: bool
    state: str
    port: Optional[str]
    baud: Optional[int]
    paused: bool
    hex_display: bool
    max_points: int
    frames: int
    points: Dict[str, int]


class LogResponse(BaseModel):
    """Response for GET /log."""
    text: str
    offset: int
    generation: int


class PlotResponse(BaseModel):
    """Response for GET /plot/{channel}."""
    channel: str
    times: List[float]
    values: List[float]

# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(ConfigError)
async def config_error_handler(request: Request, exc: ConfigError):
    """Map ConfigError to 400 Bad Request."""
    logger.error(f"ConfigError: {exc}")
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(SerialIOError)
async def serial_io_error_handler(request: Request, exc: SerialIOError):
    """Map SerialIOError to 503 Service Unavailable."""
    logger.error(f"SerialIOError: {exc}")
    return JSONResponse(status_code=503, content={"detail": str(exc)})

# =============================================================================
# Port & Connection Endpoints
# =============================================================================

@app.get("/ports", response_model=List[PortResponse])
async def get_ports():
    """List serial ports currently present. Empty if enumeration fails."""
    return [
        PortResponse(device=p.device, description=p.description, hwid=p.hwid)
        for p in list_ports()
    ]


@app.get("/baud_rates", response_model=List[int])
async def get_baud_rates():
    """Preset baud rates offered for selection. Other positive rates are accepted too."""
    return list(protocol.COMMON_BAUD_RATES)


@app.post("/connect", response_model=ConnectResponse)
async def connect(
    port: str = Query(DEFAULT_SERIAL_PORT, description="Serial port (e.g., /dev/ttyUSB0)"),
    baud: int = Query(DEFAULT_SERIAL_BAUD, description="Baud rate")
):
    """Open the serial port and start reading.

    Raises:
        400: If no port is given or already connected
        503: If the port cannot be opened
    """
    controller = get_controller()

    with _lock:
        # A port lost underneath is dropped here so it can be reopened
        controller.update()
        if controller.is_connected():
            raise HTTPException(
                status_code=400,
                detail="Already connected. Disconnect first."
            )

        logger.info(f"Connecting to {port!r} at {baud} baud...")
        controller.connect(port=port, baud=baud)

        return ConnectResponse(status="connected", port=port, baud=baud)


@app.post("/disconnect")
async def disconnect():
    """Stop reading and close the port. Safe to call when not connected."""
    controller = get_controller()

    with _lock:
        controller.update()
        controller.disconnect()
        return {"status": "disconnected"}


@app.post("/send", response_model=SendResponse)
async def send(req: SendRequest):
    """Send text (or hex digits when hex_mode is set) to the device.

    Raises:
        503: If not connected or the write fails
    """
    controller = get_controller()

    with _lock:
        data = controller.send(req.text, hex_mode=req.hex_mode)
        return SendResponse(status="sent", bytes_sent=len(data))


@app.post("/reset")
async def reset():
    """Pulse DTR to reset the device. Best effort; never fails."""
    controller = get_controller()

    with _lock:
        controller.reset()
        return {"status": "reset" if controller.is_connected() else "ignored"}

# =============================================================================
# Display Endpoints
# =============================================================================

@app.get("/status", response_model=StatusResponse)
async def get_status():
    """Get connection state and plot settings."""
    controller = _pump()
    config = controller.config

    return StatusResponse(
        connected=controller.is_connected(),
        state=controller.state.value,
        port=controller.port_name,
        baud=config.baud if config else None,
        paused=controller.paused,
        hex_display=controller.hex_display,
        max_points=controller.max_points,
        frames=controller.frames_parsed,
        points=controller.point_counts(),
    )


@app.get("/log", response_model=LogResponse)
async def get_log(since: int = Query(0, ge=0, description="Character offset already seen")):
    """Get raw log text appended after `since`.

    Pass the returned offset back as `since` to fetch only new text. If the
    generation changed, the log was cleared and the full text is returned.
    """
    controller = _pump()
    log = controller.log
    text = log.read_since(since)

    return LogResponse(text=text, offset=len(log), generation=log.generation)


@app.post("/log/clear")
async def clear_log():
    """Clear the raw log."""
    get_controller().clear_log()
    return {"status": "cleared"}


@app.get("/plot/{channel}", response_model=PlotResponse)
async def get_plot(channel: str):
    """Get buffered points for one channel (FL, FR, RL, RR).

    Raises:
        404: If channel is unknown
    """
    controller = _pump()

    try:
        points = controller.snapshot(channel)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return PlotResponse(
        channel=channel.upper(),
        times=[t for t, _ in points],
        values=[v for _, v in points],
    )


@app.post("/plot/clear")
async def clear_plot():
    """Empty all channel buffers."""
    get_controller().clear_plot()
    return {"status": "cleared"}


@app.post("/plot/max_points")
async def set_max_points(n: int = Query(..., description="Points kept per channel (100-10000)")):
    """Set per-channel capacity.

    Raises:
        400: If n is out of range
    """
    controller = get_controller()
    controller.set_max_points(n)
    return {"max_points": controller.max_points}


@app.post("/plot/pause")
async def set_paused(paused: bool = Query(True)):
    """Pause or resume plotting. Raw text keeps flowing."""
    controller = get_controller()
    controller.set_paused(paused)
    return {"paused": controller.paused}


@app.post("/display/hex")
async def set_hex_display(enabled: bool = Query(True)):
    """Show received and sent data as hex in the raw log."""
    controller = get_controller()
    controller.set_hex_display(enabled)
    return {"hex_display": controller.hex_display}

# =============================================================================
# WebSocket Streaming
# =============================================================================

@app.websocket("/stream")
async def websocket_stream(websocket: WebSocket):
    """WebSocket endpoint for live updates.

    Every STREAM_INTERVAL_S seconds, sends a JSON message when something
    changed (the first message is always sent):
        {"text": "<new raw log text>", "latest": {"FL": [t, v] | null, ...},
         "state": "connected"}
    """
    await websocket.accept()
    logger.info(f"WebSocket client connected: {websocket.client}")

    offset = 0
    generation = None
    last_counts: Optional[Dict[str, int]] = None

    try:
        while True:
            controller = _pump()
            log = controller.log

            if generation != log.generation:
                generation = log.generation
                offset = 0

            text = log.read_since(offset)
            offset = len(log)
            counts = controller.point_counts()

            if text or counts != last_counts:
                latest = {}
                for name in protocol.CHANNEL_NAMES:
                    points = controller.snapshot(name)
                    latest[name] = list(points[-1]) if points else None

                await websocket.send_json({
                    "text": text,
                    "latest": latest,
                    "state": controller.state.value,
                })
                last_counts = counts

            # Doubles as the tick and as disconnect detection; client messages are ignored
            try:
                await asyncio.wait_for(websocket.receive_text(), timeout=STREAM_INTERVAL_S)
            except asyncio.TimeoutError:
                pass

    except WebSocketDisconnect:
        logger.info(f"WebSocket client disconnected: {websocket.client}")
    except Exception as e:
        logger.error(f"WebSocket error: {e}", exc_info=True)
        try:
            await websocket.close()
        except Exception:
            pass

# =============================================================================
# Health Check
# =============================================================================

@app.get("/")
async def root():
    """Service banner."""
    return {
        "service": "Serial Monitor API",
        "version": API_VERSION,
        "status": "online"
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "service": "Serial Monitor API",
        "version": API_VERSION,
        "status": "online"
    }

# =============================================================================
# Startup/Shutdown Events
# =============================================================================

@app.on_event("startup")
async def startup_event():
    """Log startup configuration."""
    logger.info("=" * 60)
    logger.info("Serial Monitor API started")
    logger.info(f"Version: {API_VERSION}")
    logger.info(f"Host: {API_HOST}")
    logger.info(f"Port: {API_PORT}")
    logger.info(f"Default Serial Port: {DEFAULT_SERIAL_PORT or '(none)'}")
    logger.info(f"Default Serial Baud: {DEFAULT_SERIAL_BAUD}")
    logger.info(f"Max Points: {DEFAULT_MAX_POINTS}")
    logger.info(f"CORS Origins: {CORS_ORIGINS}")
    logger.info(f"Log Level: {LOG_LEVEL}")
    logger.info("=" * 60)


@app.on_event("shutdown")
async def shutdown_event():
    """Close the port on shutdown."""
    logger.info("Shutting down Serial Monitor API...")

    if _controller is not None:
        try:
            _controller.disconnect()
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")

    logger.info("Shutdown complete")
