from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rulesgate.config import settings
from rulesgate.middleware.exceptions import register_exception_handlers
from rulesgate.middleware.session import SessionMiddleware
from rulesgate.routers import agreements, health, progress
from rulesgate.services.lifecycle import lifespan

app = FastAPI(
    title="rulesgate",
    description="Member auction rules agreement: reading gate and signed confirmations",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware (last added runs first) ───────────────────────
# Session context - gates are per session
app.add_middleware(SessionMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(progress.router, prefix="/api/progress", tags=["progress"])
app.include_router(agreements.router, prefix="/api/agreements", tags=["agreements"])
