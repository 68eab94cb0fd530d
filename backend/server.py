"""Routes client events to the room, history, presence and typing components."""
from backend.history import HistoryLoader
from backend.logging_config import get_logger
from backend.presence import PresenceTracker
from backend.rooms import Connection, RoomBroadcaster
from backend.store import HISTORY_LIMIT
from backend.typing_indicator import TypingIndicator

logger = get_logger(__name__)


class ChatServer:
    def __init__(self, store, history_limit: int = HISTORY_LIMIT):
        self.store = store
        self.broadcaster = RoomBroadcaster(store)
        self.history = HistoryLoader(store, self.broadcaster, limit=history_limit)
        self.presence = PresenceTracker(store, self.broadcaster)
        self.typing = TypingIndicator(self.broadcaster)
        self.handlers = {
            'join_room': self.on_join_room,
            'leave_room': self.on_leave_room,
            'send_message': self.broadcaster.send,
            'user_online': self.presence.set_online,
            'typing': self.typing.typing,
            'stop_typing': self.typing.stop_typing,
        }

    def open(self, conn: Connection):
        self.broadcaster.connect(conn)

    async def close(self, conn: Connection):
        self.broadcaster.disconnect(conn)
        await self.presence.on_disconnect(conn)

    async def on_join_room(self, conn: Connection, room):
        if self.broadcaster.join(conn, room):
            await self.history.load(conn, room)

    async def on_leave_room(self, conn: Connection, room):
        self.broadcaster.leave(conn, room)

    async def dispatch(self, conn: Connection, event: str, data=None):
        handler = self.handlers.get(event)
        if handler is None:
            logger.warning('ignoring unknown event %r from %s', event, conn.id)
            return
        logger.debug('event %s from %s', event, conn.id)
        try:
            await handler(conn, data)
        except Exception:
            # only this event is lost; the connection keeps going
            logger.exception('handling %s from %s failed', event, conn.id)
