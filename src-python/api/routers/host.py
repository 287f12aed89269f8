"""Host embedding channel: handshake and outbound transaction message."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query

from core.errors import HostUnavailableError
from models.schemas import HandshakeRequest, HostMessage
from api.deps import get_export, host_channel

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["host"])


@router.post("/host/handshake")
async def handshake(body: HandshakeRequest):
    try:
        origin = host_channel.handshake(body.type, body.origin)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"connected": True, "target_origin": origin}


@router.put("/host/target")
async def set_target(target_origin: str = Query(..., alias="targetOrigin")):
    """Register the parent origin passed to an embedded page as ``?targetOrigin=``."""
    try:
        origin = host_channel.set_target_origin(target_origin)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"connected": True, "target_origin": origin}


@router.get("/host/status")
async def host_status():
    return {
        "connected": host_channel.is_connected(),
        "target_origin": host_channel.target_origin,
    }


@router.get("/exports/{export_id}/host-message", response_model=HostMessage)
async def host_message(export_id: str):
    """Message the UI forwards to the parent window via ``postMessage``."""
    result = get_export(export_id)
    try:
        return host_channel.build_message(result.transactions)
    except HostUnavailableError as e:
        logger.info("Host message requested without a connected parent")
        raise HTTPException(409, str(e))
