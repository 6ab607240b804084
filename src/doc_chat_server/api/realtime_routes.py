"""
Realtime Routes

Mounts the chat WebSocket at ``/ws``. Each accepted socket gets its own
RealtimeConnection; all connections share one ChatGateway.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, WebSocket

from .dependencies import get_gateway
from ..realtime.gateway import ChatGateway, RealtimeConnection

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def chat_socket(
    websocket: WebSocket,
    gateway: Annotated[ChatGateway, Depends(get_gateway)],
) -> None:
    await RealtimeConnection(websocket, gateway).serve()
