# sosrelay/main.py
"""
FastAPI application entry point.
Wires the event store + broadcast hub, error handlers, and all routers.

Run with:
    uvicorn sosrelay.main:app --host 0.0.0.0 --port 3000
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sosrelay.routers import auth, devices, health, sos, stream
from sosrelay.config import settings
from sosrelay.errors import register_error_handlers
from sosrelay.runtime import init_runtime
from sosrelay.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="SOS Relay API",
    description="Real-time distress alert relay — device reports in, live viewer fan-out.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (viewer dashboards may be served from elsewhere) ───────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Error Handlers ───────────────────────────────────────────────────────────
register_error_handlers(app)

# ── Store + Hub ──────────────────────────────────────────────────────────────
init_runtime(app)

# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(auth.router,    prefix="/api/v1", tags=["🔑 Auth"])
app.include_router(sos.router,     prefix="/api/v1", tags=["🚨 SOS"])
app.include_router(devices.router, prefix="/api/v1", tags=["📱 Devices"])
app.include_router(health.router,  prefix="/api/v1", tags=["💚 Health"])
app.include_router(stream.router,  tags=["📡 Live Stream"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 SOS Relay starting up...")
    logger.info(f"📦 Event ledger bound: {settings.EVENT_LEDGER_LIMIT} (volatile, in-memory)")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📡 Live stream at /ws — 📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 SOS Relay shutting down...")
