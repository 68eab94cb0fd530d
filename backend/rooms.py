"""Live connections, room membership and delivery of events to them."""
import asyncio
import uuid
from typing import Dict, Iterable, Optional, Set

from pydantic import ValidationError

from backend.logging_config import get_logger
from backend.models import SendMessage
from backend.store import StoreError

logger = get_logger(__name__)


class Connection:
    """One client session: a socket plus what the server knows about it."""

    def __init__(self, websocket, connection_id: str = None):
        self.websocket = websocket
        self.id = connection_id or uuid.uuid4().hex
        self.user_id: Optional[str] = None
        self.rooms: Set[str] = set()
        self.tasks: Set[asyncio.Task] = set()

    async def send_event(self, event: str, data=None):
        await self.websocket.send_json({'type': event, 'data': data})

    def spawn(self, coro) -> asyncio.Task:
        """Run an event handler as its own task, tracked until it finishes."""
        task = asyncio.create_task(coro)
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)
        return task

    def __repr__(self):
        return f'<Connection {self.id[:8]} user={self.user_id}>'


class RoomBroadcaster:
    def __init__(self, store):
        self.store = store
        self._connections: Dict[str, Connection] = {}
        self._rooms: Dict[str, Set[str]] = {}   # room -> connection ids

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def connect(self, conn: Connection):
        self._connections[conn.id] = conn
        logger.info('connection %s opened (%d live)', conn.id, len(self._connections))

    def disconnect(self, conn: Connection):
        self._connections.pop(conn.id, None)
        for room in list(conn.rooms):
            self.leave(conn, room)
        logger.info('connection %s closed (%d live)', conn.id, len(self._connections))

    def join(self, conn: Connection, room: str) -> bool:
        if not isinstance(room, str) or not room.strip():
            logger.debug('connection %s sent join without a room name', conn.id)
            return False
        self._rooms.setdefault(room, set()).add(conn.id)
        conn.rooms.add(room)
        logger.info('connection %s joined room %s', conn.id, room)
        return True

    def leave(self, conn: Connection, room: str):
        members = self._rooms.get(room)
        conn.rooms.discard(room)
        if members is None:
            return
        members.discard(conn.id)
        if not members:
            del self._rooms[room]

    def members(self, room: str) -> Set[str]:
        return set(self._rooms.get(room, ()))

    def rooms(self) -> Dict[str, int]:
        return {name: len(ids) for name, ids in self._rooms.items()}

    async def emit(self, conn: Connection, event: str, data=None) -> bool:
        try:
            await conn.send_event(event, data)
            return True
        except Exception:
            logger.warning('delivering %s to connection %s failed', event, conn.id, exc_info=True)
            return False

    async def _deliver(self, targets: Iterable[Connection], event: str, data):
        targets = list(targets)
        if targets:
            await asyncio.gather(*(self.emit(c, event, data) for c in targets))
        return len(targets)

    async def emit_to_room(self, room: str, event: str, data=None, exclude: Connection = None) -> int:
        targets = [self._connections[cid] for cid in self._rooms.get(room, ())
                   if cid in self._connections and (exclude is None or cid != exclude.id)]
        return await self._deliver(targets, event, data)

    async def emit_to_all(self, event: str, data=None, exclude: Connection = None) -> int:
        targets = [c for c in self._connections.values() if exclude is None or c.id != exclude.id]
        return await self._deliver(targets, event, data)

    async def send(self, conn: Connection, payload):
        """Persist a chat message, then broadcast the stored copy to its room.

        The sender is a subscriber like any other, so it sees the persisted
        record (with id and timestamp) rather than its own input. Nothing is
        delivered when validation or the insert fails.
        """
        try:
            request = SendMessage.model_validate(payload)
        except ValidationError as e:
            logger.warning('dropping invalid send_message from %s: %s', conn.id, e.errors())
            return None
        try:
            message = await self.store.insert_message(
                request.room, request.author, request.content, request.type)
        except StoreError:
            logger.exception('message from %s to room %s not saved', conn.id, request.room)
            return None
        delivered = await self.emit_to_room(message.room, 'receive_message', message.to_wire())
        logger.debug('message %s broadcast to %d connections in %s', message.id, delivered, message.room)
        return message
