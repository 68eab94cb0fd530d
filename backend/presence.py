"""Online/offline tracking for users bound to live connections.

A user may hold several connections at once (two tabs, phone and desktop).
Presence is counted per user id: the profile goes online with the first
bound connection and offline when the last one closes. Status changes are
announced to every other connection; repeated binds only refresh lastSeen.

There is no heartbeat. A process crash leaves profiles marked online until
the user connects and disconnects again.
"""
from typing import Dict

from backend.logging_config import get_logger
from backend.models import StatusChange, utcnow
from backend.store import StoreError

logger = get_logger(__name__)


class PresenceTracker:
    def __init__(self, store, broadcaster):
        self.store = store
        self.broadcaster = broadcaster
        self._counts: Dict[str, int] = {}

    def is_online(self, user_id: str) -> bool:
        return self._counts.get(user_id, 0) > 0

    async def _write(self, user_id: str, is_online: bool):
        try:
            found = await self.store.update_user_presence(user_id, is_online, utcnow())
        except StoreError:
            logger.exception('presence update for %s failed', user_id)
            return
        if not found:
            logger.debug('no stored profile for user %s', user_id)

    async def _announce(self, conn, user_id: str, status: str):
        change = StatusChange(user_id=user_id, status=status)
        await self.broadcaster.emit_to_all('user_status_change', change.to_wire(), exclude=conn)

    def _unbind(self, conn):
        """Drop the connection's binding. Returns the user id if that was its last connection."""
        user_id = conn.user_id
        if user_id is None:
            return None
        conn.user_id = None
        remaining = self._counts.get(user_id, 1) - 1
        if remaining > 0:
            self._counts[user_id] = remaining
            return None
        self._counts.pop(user_id, None)
        return user_id

    async def _went_offline(self, conn, user_id: str):
        logger.info('user %s offline', user_id)
        await self._write(user_id, False)
        await self._announce(conn, user_id, 'offline')

    async def set_online(self, conn, user_id):
        if not isinstance(user_id, str) or not user_id:
            logger.debug('connection %s sent user_online without a user id', conn.id)
            return
        if conn.user_id == user_id:
            await self._write(user_id, True)
            return

        # rebinding happens before any await so a close in between sees the new user
        previous = self._unbind(conn)
        conn.user_id = user_id
        self._counts[user_id] = self._counts.get(user_id, 0) + 1
        first = self._counts[user_id] == 1
        logger.info('user %s online on connection %s', user_id, conn.id)

        if previous is not None:
            await self._went_offline(conn, previous)
        if conn.user_id != user_id:
            # connection closed meanwhile and already released this user
            return
        await self._write(user_id, True)
        if first and conn.user_id == user_id:
            await self._announce(conn, user_id, 'online')

    async def release(self, conn):
        user_id = self._unbind(conn)
        if user_id is not None:
            await self._went_offline(conn, user_id)

    async def on_disconnect(self, conn):
        await self.release(conn)
