"""Global application configuration."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


def _default_data_dir() -> Path:
    """Return the platform-appropriate data directory."""
    if os.name == "nt":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    elif os.uname().sysname == "Darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    return base / "statement-redactor"


class AppConfig(BaseModel):
    """Application-wide settings — loaded once at startup."""

    # Directories
    data_dir: Path = Field(default_factory=_default_data_dir)
    temp_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()) / "statement-redactor")

    # Rendering: page pixels per PDF point (pdf.js-style viewport scale)
    render_scale: float = Field(default=1.5, gt=0.0, le=8.0)
    jpeg_quality: int = Field(default=92, ge=10, le=100)

    # Layout reconstruction
    line_tolerance_px: float = Field(default=3.0, ge=0.0)
    # Fragments further apart than this multiple of the fragment height
    # are joined with an inserted space.
    word_gap_ratio: float = Field(default=0.25, ge=0.0)

    # PII detection
    top_region_fraction: float = Field(default=0.28, ge=0.25, le=0.30)
    rect_pad: float = Field(default=2.0, ge=0.0)

    # Editor
    min_rect_size: float = Field(default=4.0, gt=0.0)
    handle_tolerance: float = Field(default=10.0, ge=0.0)
    zoom_min: float = Field(default=0.1, gt=0.0)
    zoom_max: float = Field(default=4.0, gt=0.0)
    zoom_step: float = Field(default=0.25, gt=0.0)
    history_limit: int = Field(default=0, ge=0)         # 0 = unbounded

    # Remote extraction (Gemini REST API)
    gemini_api_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_api_key: str = Field(                        # prefer the env var; never persisted
        default_factory=lambda: os.environ.get("STATEMENT_REDACTOR_GEMINI_API_KEY", ""),
    )
    extraction_models: list[str] = Field(
        default_factory=lambda: ["gemini-2.5-flash", "gemini-2.0-flash", "gemini-2.5-pro"],
    )
    extraction_batch_size: int = Field(default=3, ge=3, le=5)
    extraction_max_pages: int = Field(default=30, ge=1)
    extraction_max_attempts: int = Field(default=3, ge=1)
    extraction_parallel: bool = False
    request_timeout: float = Field(default=120.0, gt=0.0)

    # Logging
    log_format: str = "text"                            # "text" | "json"
    log_level: str = "INFO"

    # Server
    host: str = "127.0.0.1"
    port: int = Field(default=8920, ge=0, le=65535)    # 0 = random

    def model_post_init(self, __context: object) -> None:
        # Ensure directories exist
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.temp_dir.mkdir(parents=True, exist_ok=True)

        # Load any previously-saved user settings from disk
        self._load_user_settings()

    @property
    def zoom_range(self) -> tuple[float, float]:
        return self.zoom_min, self.zoom_max

    # ------------------------------------------------------------------
    # Persistence: user-editable settings are saved to a JSON sidecar
    # ------------------------------------------------------------------

    # Keys that are persisted when changed via the API
    _PERSISTABLE_KEYS: set[str] = {
        "render_scale", "jpeg_quality",
        "line_tolerance_px", "word_gap_ratio",
        "top_region_fraction", "rect_pad",
        "min_rect_size", "handle_tolerance",
        "zoom_min", "zoom_max", "zoom_step", "history_limit",
        "gemini_api_url", "extraction_models", "extraction_batch_size",
        "extraction_parallel",
        "log_format", "log_level",
    }

    @property
    def _settings_path(self) -> Path:
        return self.data_dir / "settings.json"

    def _load_user_settings(self) -> None:
        """Read persisted user settings from disk and apply them."""
        path = self._settings_path
        if not path.exists():
            return
        try:
            data = json.loads(path.read_text(encoding="utf-8-sig"))
            for key, value in data.items():
                if key in self._PERSISTABLE_KEYS and hasattr(self, key):
                    setattr(self, key, value)
            logger.info(f"Loaded user settings from {path}")
        except Exception as exc:
            logger.warning(f"Failed to load settings from {path}: {exc}")

    def save_user_settings(self) -> None:
        """Persist current user-editable settings to disk."""
        data = {k: getattr(self, k) for k in self._PERSISTABLE_KEYS if hasattr(self, k)}
        try:
            self._settings_path.write_text(
                json.dumps(data, indent=2, default=str),
                encoding="utf-8",
            )
            logger.info(f"Saved user settings to {self._settings_path}")
        except Exception as exc:
            logger.warning(f"Failed to save settings: {exc}")


# Singleton, importable from anywhere
config = AppConfig()
