"""FastAPI application — main API for the statement redactor sidecar."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import config
from api import deps
from api.routers import editor, export, host, sessions, settings

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting statement redactor sidecar...")
    config.temp_dir.mkdir(parents=True, exist_ok=True)
    yield
    for session_id in list(deps.sessions):
        deps.discard_session(session_id)
    deps.set_engine(None)
    logger.info("Statement redactor sidecar stopped")


app = FastAPI(
    title="statement-redactor",
    version=VERSION,
    description="Local PII redaction of bank statements before remote transaction extraction",
    lifespan=lifespan,
)

# CORS: allow the desktop webview and local dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sessions.router)
app.include_router(editor.router)
app.include_router(export.router)
app.include_router(host.router)
app.include_router(settings.router)


@app.get("/health")
async def health():
    return {"status": "ok", "version": VERSION}

