from backend.logging_config import get_logger
from backend.store import HISTORY_LIMIT, StoreError

logger = get_logger(__name__)


class HistoryLoader:
    """Sends a room's recent messages to a connection that just joined it."""

    def __init__(self, store, broadcaster, limit: int = HISTORY_LIMIT):
        self.store = store
        self.broadcaster = broadcaster
        # 0 would mean "no limit" to the driver
        self.limit = max(1, min(limit, HISTORY_LIMIT))

    async def load(self, conn, room: str):
        try:
            messages = await self.store.find_messages(room, limit=self.limit)
        except StoreError:
            # the joiner simply gets no history
            logger.exception('history for room %s unavailable', room)
            return None
        await self.broadcaster.emit(conn, 'load_history', [m.to_wire() for m in messages])
        logger.debug('sent %d history messages of %s to %s', len(messages), room, conn.id)
        return messages
