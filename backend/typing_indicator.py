from pydantic import ValidationError

from backend.logging_config import get_logger
from backend.models import StopTypingPayload, TypingPayload

logger = get_logger(__name__)


class TypingIndicator:
    """Relays ephemeral typing notices to the rest of a room. Nothing is stored."""

    def __init__(self, broadcaster):
        self.broadcaster = broadcaster

    async def typing(self, conn, payload):
        try:
            notice = TypingPayload.model_validate(payload)
        except ValidationError:
            logger.debug('dropping malformed typing event from %s', conn.id)
            return 0
        return await self.broadcaster.emit_to_room(
            notice.room, 'user_typing', {'author': notice.author}, exclude=conn)

    async def stop_typing(self, conn, payload):
        try:
            notice = StopTypingPayload.model_validate(payload)
        except ValidationError:
            logger.debug('dropping malformed stop_typing event from %s', conn.id)
            return 0
        return await self.broadcaster.emit_to_room(notice.room, 'user_stopped_typing', None, exclude=conn)
