from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..core.presence import hub

router = APIRouter()


@router.get("/presence")
async def presence_status():
    return {"success": True, "connected": hub.connected}


@router.websocket("/ws")
async def presence_socket(websocket: WebSocket):
    """Presence channel: clients only listen; anything they send is ignored."""
    await hub.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(websocket)
