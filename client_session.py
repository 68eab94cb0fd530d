"""
Client-side protocol state for the chat window.

Kept apart from the tkinter code so the transcript rules can be used (and
tested) without a display: history replaces the transcript, live messages are
appended once per server id, and the local author's messages are marked as own.
"""
import json
from datetime import datetime
from typing import Callable, Dict, List, Optional, Set


def format_time(value: Optional[str]) -> str:
    """Render a server timestamp as local HH:MM."""
    if not value:
        return '--:--'
    try:
        stamp = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return '--:--'
    return stamp.astimezone().strftime('%H:%M')


def encode_frame(event: str, data=None) -> str:
    return json.dumps({'type': event, 'data': data}, separators=(',', ':'))


class ChatSession:
    def __init__(self, send: Callable[[str], None], room: str = 'general',
                 author: str = 'You', user_id: str = None):
        self._send = send
        self.room = room
        self.author = author
        self.user_id = user_id
        self.transcript: List[Dict] = []
        self.typing_author: Optional[str] = None
        self.online: Dict[str, str] = {}   # user id -> last status seen
        self._seen: Set[str] = set()
        self._typing = False

    def emit(self, event: str, data=None):
        self._send(encode_frame(event, data))

    def on_open(self):
        self.emit('join_room', self.room)
        if self.user_id:
            self.emit('user_online', self.user_id)

    def submit(self, text: str) -> bool:
        content = text.strip()
        if not content:
            return False
        # no local echo: the stored copy comes back as receive_message
        self.emit('send_message', {'room': self.room, 'author': self.author, 'content': content})
        self.set_typing(False)
        return True

    def set_typing(self, active: bool):
        if active == self._typing:
            return
        self._typing = active
        if active:
            self.emit('typing', {'room': self.room, 'author': self.author})
        else:
            self.emit('stop_typing', {'room': self.room})

    @property
    def status_text(self) -> str:
        if self.typing_author:
            return f'{self.typing_author} is typing...'
        return ''

    def entry(self, msg: Dict) -> Dict:
        return {
            'id': msg.get('_id'),
            'author': msg.get('author', ''),
            'content': msg.get('content', ''),
            'type': msg.get('type', 'text'),
            'time': format_time(msg.get('createdAt')),
            'is_me': msg.get('author') == self.author,
        }

    @staticmethod
    def render(entry: Dict) -> str:
        who = 'You' if entry['is_me'] else entry['author']
        body = entry['content'] if entry['type'] == 'text' else f"[{entry['type']}] {entry['content']}"
        return f"[{entry['time']}] {who}: {body}"

    def handle(self, raw: str) -> Optional[str]:
        """Apply one server frame. Returns the event name, or None if ignored."""
        try:
            frame = json.loads(raw)
        except ValueError:
            return None
        if not isinstance(frame, dict):
            return None
        event, data = frame.get('type'), frame.get('data')
        if event == 'load_history':
            self.transcript = [self.entry(m) for m in data or []]
            self._seen = {e['id'] for e in self.transcript if e['id']}
        elif event == 'receive_message':
            msg_id = data.get('_id')
            if msg_id and msg_id in self._seen:
                return None
            if msg_id:
                self._seen.add(msg_id)
            self.transcript.append(self.entry(data))
            if data.get('author') == self.typing_author:
                self.typing_author = None
        elif event == 'user_typing':
            self.typing_author = data.get('author')
        elif event == 'user_stopped_typing':
            self.typing_author = None
        elif event == 'user_status_change':
            self.online[data.get('userId')] = data.get('status')
        else:
            return None
        return event
