"""Integration tests for the FastAPI app: health, settings and session lifecycle.

Uses httpx + ASGITransport to hit the app without a real server.
"""

from __future__ import annotations

import io
from unittest.mock import AsyncMock, patch

import pypdfium2 as pdfium
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from api import deps
from api.server import app
from core.config import config
from core.errors import InvalidPasswordError, PasswordRequiredError
from core.ingestion import loader


@pytest_asyncio.fixture
async def client():
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture(autouse=True)
def _isolated_state(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "temp_dir", tmp_path / "work")
    monkeypatch.setattr(config, "data_dir", tmp_path / "data")
    (tmp_path / "data").mkdir()
    yield
    for sid in list(deps.sessions):
        deps.discard_session(sid)
    deps.exports.clear()


def _pdf_bytes(pages: int = 1) -> bytes:
    pdf = pdfium.PdfDocument.new()
    for _ in range(pages):
        pdf.new_page(200, 100)
    buf = io.BytesIO()
    pdf.save(buf)
    pdf.close()
    return buf.getvalue()


def _upload(content: bytes, name: str = "march.pdf", mime: str = "application/pdf", **data):
    return {"files": {"file": (name, content, mime)}, "data": data or None}


# ───────────────────────── Health ─────────────────────────

class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "version": "0.1.0"}


# ───────────────────────── Settings ─────────────────────────

class TestSettings:
    @pytest.mark.asyncio
    async def test_get_hides_api_key(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(config, "gemini_api_key", "secret")
        resp = await client.get("/api/settings")
        assert resp.status_code == 200
        data = resp.json()
        assert "gemini_api_key" not in data
        assert data["gemini_api_key_set"] is True
        assert data["top_region_fraction"] == pytest.approx(config.top_region_fraction)

    @pytest.mark.asyncio
    async def test_patch_applies_and_persists(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(config, "top_region_fraction", config.top_region_fraction)
        resp = await client.patch("/api/settings", json={"top_region_fraction": 0.26})
        assert resp.status_code == 200
        assert resp.json()["applied"] == {"top_region_fraction": 0.26}
        assert config.top_region_fraction == pytest.approx(0.26)
        assert (config.data_dir / "settings.json").exists()

    @pytest.mark.asyncio
    async def test_patch_out_of_range(self, client: AsyncClient):
        resp = await client.patch("/api/settings", json={"top_region_fraction": 0.5})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_engine_keys_reset_engine(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(config, "extraction_parallel", config.extraction_parallel)
        with patch("api.routers.settings.set_engine") as reset:
            resp = await client.patch("/api/settings", json={"extraction_parallel": True})
        assert resp.status_code == 200
        reset.assert_called_once_with(None)


# ───────────────────────── Sessions ─────────────────────────

class TestSessionLifecycle:
    @pytest.mark.asyncio
    async def test_upload_creates_session(self, client: AsyncClient):
        resp = await client.post("/api/sessions", **_upload(_pdf_bytes(pages=2)))
        assert resp.status_code == 200
        data = resp.json()
        assert data["page_count"] == 2
        assert data["current_page"] == 0
        assert data["status"] == "EDITING"
        assert data["filename"] == "march.pdf"
        assert data["session_id"] in deps.sessions

    @pytest.mark.asyncio
    async def test_get_and_delete(self, client: AsyncClient):
        sid = (await client.post("/api/sessions", **_upload(_pdf_bytes()))).json()["session_id"]
        work_dir = deps.sessions[sid].work_dir

        resp = await client.get(f"/api/sessions/{sid}")
        assert resp.status_code == 200

        resp = await client.delete(f"/api/sessions/{sid}")
        assert resp.json() == {"status": "discarded", "session_id": sid}
        assert not work_dir.exists()

        resp = await client.get(f"/api/sessions/{sid}")
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_preview(self, client: AsyncClient):
        sid = (await client.post("/api/sessions", **_upload(_pdf_bytes()))).json()["session_id"]
        resp = await client.get(f"/api/sessions/{sid}/pages/0/preview")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/png"
        assert resp.content.startswith(b"\x89PNG")

        resp = await client.get(f"/api/sessions/{sid}/pages/5/preview")
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_session(self, client: AsyncClient):
        resp = await client.get("/api/sessions/nope")
        assert resp.status_code == 404


class TestUploadErrors:
    @pytest.mark.asyncio
    async def test_non_pdf(self, client: AsyncClient):
        resp = await client.post("/api/sessions", **_upload(b"hello", name="notes.txt", mime="text/plain"))
        assert resp.status_code == 415
        assert resp.json()["error"] == "unsupported_format"
        assert deps.sessions == {}

    @pytest.mark.asyncio
    async def test_corrupt_pdf(self, client: AsyncClient):
        resp = await client.post("/api/sessions", **_upload(b"%PDF-garbage"))
        assert resp.status_code == 422
        assert resp.json()["error"] == "unreadable_document"

    @pytest.mark.asyncio
    async def test_render_crash_leaves_no_pages(self, client: AsyncClient, monkeypatch):
        real_render = loader._render_page_bitmap

        def _crash_after_first(pdf_page, page_index, out_dir, scale):
            if page_index == 1:
                raise RuntimeError("disk full")
            return real_render(pdf_page, page_index, out_dir, scale)

        monkeypatch.setattr(loader, "_render_page_bitmap", _crash_after_first)
        with pytest.raises(RuntimeError):
            await client.post("/api/sessions", **_upload(_pdf_bytes(pages=2)))
        assert list(config.temp_dir.iterdir()) == []
        assert deps.sessions == {}

    @pytest.mark.asyncio
    async def test_detection_crash_leaves_no_pages(self, client: AsyncClient):
        with patch(
            "api.routers.sessions.detect_document",
            side_effect=RuntimeError("boom"),
        ):
            with pytest.raises(RuntimeError):
                await client.post("/api/sessions", **_upload(_pdf_bytes()))
        assert list(config.temp_dir.iterdir()) == []
        assert deps.sessions == {}

    @pytest.mark.asyncio
    async def test_password_required(self, client: AsyncClient):
        with patch(
            "api.routers.sessions.ingest_document",
            AsyncMock(side_effect=PasswordRequiredError("locked")),
        ):
            resp = await client.post("/api/sessions", **_upload(_pdf_bytes()))
        assert resp.status_code == 401
        assert resp.json()["error"] == "password_required"

    @pytest.mark.asyncio
    async def test_wrong_password(self, client: AsyncClient):
        mock = AsyncMock(side_effect=InvalidPasswordError("nope"))
        with patch("api.routers.sessions.ingest_document", mock):
            resp = await client.post("/api/sessions", **_upload(_pdf_bytes(), password="guess"))
        assert resp.status_code == 401
        assert resp.json()["error"] == "invalid_password"
        assert mock.await_args.kwargs["password"] == "guess"

