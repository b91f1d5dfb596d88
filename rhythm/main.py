from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import CONFIG
from .routes import insights as insight_routes
from .routes import next_action as next_action_routes
from .routes import patterns as pattern_routes
from .routes import schedule as schedule_routes
from .routes import suggestions as suggestion_routes
from .routes import transitions as transition_routes

logging.basicConfig(level=CONFIG.log_level)

app = FastAPI(
    title="Rhythm API",
    version=__version__,
    description="Learns care routines from activity logs and suggests missed entries",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

app.include_router(pattern_routes.router)
app.include_router(suggestion_routes.router)
app.include_router(schedule_routes.router)
app.include_router(transition_routes.router)
app.include_router(next_action_routes.router)
app.include_router(insight_routes.router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
