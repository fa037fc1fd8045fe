from fastapi import WebSocket, status
from typing import Dict, Set
import logging
from .auth import auth_provider

# Logger
logger = logging.getLogger(__name__)


class ConnectionManager:
    def __init__(self):
        self.active_connections: Dict[str, Set[WebSocket]] = {}
        self.socket_to_user: Dict[WebSocket, str] = {}

    def _get_token_from_headers(self, websocket: WebSocket):
        subprotocols = websocket.headers.get("sec-websocket-protocol")
        if subprotocols:
            return subprotocols.split(",")[0].strip()
        return None

    async def connect(self, websocket: WebSocket):
        token = self._get_token_from_headers(websocket)
        user = auth_provider.get_session(token)
        if user is None:
            logger.warning("WebSocket auth failed: invalid or missing token")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return None

        # Add connection
        if user.id not in self.active_connections:
            self.active_connections[user.id] = set()
        self.active_connections[user.id].add(websocket)
        self.socket_to_user[websocket] = user.id

        await websocket.accept(subprotocol=token)
        logger.info(f"User {user.id} connected.")
        return user.id

    async def disconnect(self, websocket: WebSocket):
        user_id = self.socket_to_user.get(websocket)

        if user_id:
            conns = self.active_connections.get(user_id, set())
            if websocket in conns:
                try:
                    await websocket.close()
                except Exception as e:
                    logger.warning(f"Error closing WebSocket: {e}")
                conns.remove(websocket)
                if not conns:
                    del self.active_connections[user_id]
            del self.socket_to_user[websocket]

            logger.info(f"User {user_id} disconnected.")

    async def send_to_user(self, user_id: str, message: dict):
        conns = self.active_connections.get(user_id, set())
        for conn in list(conns):  # Make a copy to avoid mutation issues
            try:
                await conn.send_json(message)
            except Exception as e:
                logger.warning(f"Failed to send message to {user_id}: {e}")
                await self.disconnect(conn)


ws_connection_manager = ConnectionManager()
