import json
import logging
from typing import Any, Callable, Dict, List, Optional
from fastapi import APIRouter, WebSocket, Depends, WebSocketDisconnect
from .models import Role
from .schemas import Identity
from .security import CurrentUser, get_current_user_ws
from .utils import serialize_for_json

logger = logging.getLogger(__name__)

router = APIRouter()


class PresenceRegistry:
    """
    In-memory map of live connections to the identity they represent.

    One registry belongs to one app instance. It only tracks presence, so losing it
    on restart is harmless. A connection is anything with an async `send_json`.
    """

    def __init__(self):
        self.active_connections: Dict[Any, Identity] = {}

    async def register(self, connection, identity: Identity):
        """Associate a connection with a user and announce the new presence list to the tenant."""
        self.active_connections[connection] = identity
        logger.info(f"User registered: {identity.userId} ({identity.role}) in tenant {identity.tenantId}")
        await self.broadcast_presence(identity.tenantId)

    async def on_disconnect(self, connection):
        identity = self.active_connections.pop(connection, None)
        if identity is None:
            return
        logger.info(f"User disconnected: {identity.userId}")
        await self.broadcast_presence(identity.tenantId)

    def identity_of(self, connection) -> Optional[Identity]:
        return self.active_connections.get(connection)

    def presence(self, tenant_id: Optional[str]) -> List[dict]:
        """Everyone currently connected in a tenant."""
        return [
            identity.presence_entry()
            for identity in self.active_connections.values()
            if identity.tenantId == tenant_id
        ]

    def connections_where(self, predicate: Callable[[Identity], bool]) -> list:
        # snapshot, sends may mutate the registry
        return [conn for conn, identity in list(self.active_connections.items()) if predicate(identity)]

    async def send(self, connections: list, event_type: str, payload: Any) -> int:
        """
        Push one event to the given connections. A connection that fails is dropped
        instead of failing the caller, and its tenant gets a fresh presence list.
        Returns how many sends succeeded.
        """
        data = serialize_for_json({"type": event_type, "payload": payload})
        delivered = 0
        affected_tenants = []
        for connection in connections:
            try:
                await connection.send_json(data)
                delivered += 1
            except Exception:
                logger.warning(f"Dropping connection after failed '{event_type}' send", exc_info=True)
                identity = self.active_connections.pop(connection, None)
                if identity is not None and identity.tenantId not in affected_tenants:
                    affected_tenants.append(identity.tenantId)

        # terminates, every failure removes a connection
        for tenant_id in affected_tenants:
            await self.broadcast_presence(tenant_id)
        return delivered

    async def send_to_tenant(self, tenant_id: Optional[str], event_type: str, payload: Any) -> int:
        connections = self.connections_where(lambda identity: identity.tenantId == tenant_id)
        return await self.send(connections, event_type, payload)

    async def send_to_users(self, tenant_id: Optional[str], user_ids, event_type: str, payload: Any) -> int:
        user_ids = {str(uid) for uid in user_ids if uid}
        connections = self.connections_where(
            lambda identity: identity.tenantId == tenant_id and identity.userId in user_ids
        )
        return await self.send(connections, event_type, payload)

    async def broadcast_presence(self, tenant_id: Optional[str]):
        await self.send_to_tenant(tenant_id, "presence_updated", self.presence(tenant_id))


async def _identity_for(websocket: WebSocket, user: CurrentUser, name_override: Optional[str] = None) -> Identity:
    resolver = websocket.app.state.participants
    participant = await resolver.resolve(user.userId, user.role.kind, user.tenantId)
    name = participant.name if participant else user.role.kind.value
    if name_override and user.role is Role.MEMBER:
        name = name_override
    return Identity(userId=user.userId, role=user.role.value, name=name, tenantId=user.tenantId)


async def handle_client_event(websocket: WebSocket, user: CurrentUser, data: dict):
    """Dispatch one frame sent by a client."""
    registry: PresenceRegistry = websocket.app.state.presence
    if not isinstance(data, dict):
        logger.debug(f"Ignoring malformed websocket frame from {user.userId}")
        return
    event_type = data.get("type")
    payload = data.get("payload") or {}

    if event_type == "register":
        name = payload.get("name") if isinstance(payload, dict) else None
        await registry.register(websocket, await _identity_for(websocket, user, name))
    elif event_type == "draft_message":
        # Advisory only. Messages are persisted and broadcast by the HTTP create call.
        logger.debug(f"Draft from {user.userId}: {str(payload)[:80]}")
    else:
        logger.debug(f"Ignoring unknown websocket event {event_type!r} from {user.userId}")


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, user: CurrentUser = Depends(get_current_user_ws)):
    registry: PresenceRegistry = websocket.app.state.presence
    await websocket.accept()
    await registry.register(websocket, await _identity_for(websocket, user))
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except ValueError:
                logger.debug(f"Ignoring non-JSON websocket frame from {user.userId}")
                continue
            await handle_client_event(websocket, user, data)
    except WebSocketDisconnect:
        pass
    finally:
        await registry.on_disconnect(websocket)
