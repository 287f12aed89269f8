"""Application settings: read and partially update the persisted config."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from core.config import config
from api.deps import set_engine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["settings"])

# Changing any of these rebuilds the extraction engine on next use
_ENGINE_KEYS = {
    "gemini_api_url", "extraction_models", "extraction_batch_size", "extraction_parallel",
}


# ---------------------------------------------------------------------------
# Settings update schema: typed validation instead of raw dict
# ---------------------------------------------------------------------------

class SettingsUpdate(BaseModel):
    """Validated partial settings update."""
    render_scale: Optional[float] = Field(default=None, gt=0.0, le=8.0)
    jpeg_quality: Optional[int] = Field(default=None, ge=10, le=100)
    line_tolerance_px: Optional[float] = Field(default=None, ge=0.0)
    word_gap_ratio: Optional[float] = Field(default=None, ge=0.0)
    top_region_fraction: Optional[float] = Field(default=None, ge=0.25, le=0.30)
    rect_pad: Optional[float] = Field(default=None, ge=0.0)
    min_rect_size: Optional[float] = Field(default=None, gt=0.0)
    handle_tolerance: Optional[float] = Field(default=None, ge=0.0)
    zoom_step: Optional[float] = Field(default=None, gt=0.0)
    history_limit: Optional[int] = Field(default=None, ge=0)
    gemini_api_url: Optional[str] = None
    extraction_models: Optional[list[str]] = Field(default=None, min_length=1)
    extraction_batch_size: Optional[int] = Field(default=None, ge=3, le=5)
    extraction_parallel: Optional[bool] = None


@router.get("/settings")
async def get_settings() -> dict[str, Any]:
    """Return the current settings (the API key is never echoed)."""
    data = config.model_dump(mode="json")
    data.pop("gemini_api_key", None)
    data["gemini_api_key_set"] = bool(config.gemini_api_key)
    return data


@router.patch("/settings")
async def update_settings(body: SettingsUpdate) -> dict[str, Any]:
    """Update app settings (partial update with Pydantic validation)."""
    updates = body.model_dump(exclude_none=True)
    applied = {}

    for key, value in updates.items():
        if hasattr(config, key):
            setattr(config, key, value)
            applied[key] = value

    if applied.keys() & _ENGINE_KEYS:
        set_engine(None)
        logger.info("Extraction settings changed; engine will be rebuilt")

    if applied:
        config.save_user_settings()

    return {"status": "ok", "applied": applied}
