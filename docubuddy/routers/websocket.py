import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from ..services.manager import ws_connection_manager


logger = logging.getLogger(__name__)

router = APIRouter()



@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    user_id = await ws_connection_manager.connect(websocket)
    if user_id is None:
        return

    try:
        await ws_connection_manager.send_to_user(user_id=user_id, message={"type": "connected"})
        while True:
            data = await websocket.receive_json()
            if isinstance(data, dict) and data.get("type") == "ping":
                await websocket.send_json({"type": "pong"})

    except WebSocketDisconnect:
        await ws_connection_manager.disconnect(websocket)
    except Exception as e:
        logger.warning(f"WebSocket error for {user_id}: {e}")
        await ws_connection_manager.disconnect(websocket)
