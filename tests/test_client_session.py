"""Tests for the client's transcript and outgoing events."""
from datetime import datetime, timezone
import json

import pytest

from client_session import ChatSession, encode_frame, format_time

STAMP = '2024-05-01T12:34:00Z'


def msg(msg_id, author, content, created=STAMP, type='text'):
    return {'_id': msg_id, 'room': 'general', 'author': author, 'content': content,
            'type': type, 'createdAt': created, 'delivered': False}


@pytest.fixture
def outbox():
    return []


@pytest.fixture
def session(outbox):
    return ChatSession(lambda raw: outbox.append(json.loads(raw)), room='general', author='Ada')


def test_format_time_is_local_hh_mm() -> None:
    expected = datetime(2024, 5, 1, 12, 34, tzinfo=timezone.utc).astimezone().strftime('%H:%M')
    assert format_time(STAMP) == expected
    assert format_time(None) == '--:--'
    assert format_time('yesterday') == '--:--'


class TestOutgoing:
    def test_open_joins_room(self, session, outbox) -> None:
        session.on_open()
        assert outbox == [{'type': 'join_room', 'data': 'general'}]

    def test_open_announces_user_when_known(self, outbox) -> None:
        s = ChatSession(lambda raw: outbox.append(json.loads(raw)), author='Ada', user_id='u1')
        s.on_open()
        assert outbox[-1] == {'type': 'user_online', 'data': 'u1'}

    def test_submit_trims_and_skips_blank(self, session, outbox) -> None:
        assert not session.submit('   ')
        assert outbox == []
        assert session.submit('  hello ')
        assert outbox == [{'type': 'send_message',
                           'data': {'room': 'general', 'author': 'Ada', 'content': 'hello'}}]
        # no optimistic echo
        assert session.transcript == []

    def test_typing_only_on_transitions(self, session, outbox) -> None:
        session.set_typing(True)
        session.set_typing(True)
        session.submit('done')
        assert [f['type'] for f in outbox] == ['typing', 'send_message', 'stop_typing']

    def test_encode_frame(self) -> None:
        assert json.loads(encode_frame('stop_typing', {'room': 'r'})) == {'type': 'stop_typing', 'data': {'room': 'r'}}


class TestIncoming:
    def test_history_replaces_transcript(self, session) -> None:
        session.handle(encode_frame('receive_message', msg('x', 'Bob', 'stale')))
        session.handle(encode_frame('load_history', [msg('1', 'Bob', 'hi'), msg('2', 'Ada', 'hey')]))
        assert [e['content'] for e in session.transcript] == ['hi', 'hey']
        assert [e['is_me'] for e in session.transcript] == [False, True]

    def test_receive_deduplicates_by_id(self, session) -> None:
        session.handle(encode_frame('load_history', [msg('1', 'Bob', 'hi')]))
        assert session.handle(encode_frame('receive_message', msg('1', 'Bob', 'hi'))) is None
        assert session.handle(encode_frame('receive_message', msg('2', 'Bob', 'hi'))) == 'receive_message'
        assert [e['id'] for e in session.transcript] == ['1', '2']

    def test_render(self, session) -> None:
        session.handle(encode_frame('load_history', [msg('1', 'Bob', 'hi'), msg('2', 'Ada', 'cat.png', type='image')]))
        time = format_time(STAMP)
        assert [session.render(e) for e in session.transcript] == [
            f'[{time}] Bob: hi',
            f'[{time}] You: [image] cat.png',
        ]

    def test_typing_status(self, session) -> None:
        session.handle(encode_frame('user_typing', {'author': 'Bob'}))
        assert session.status_text == 'Bob is typing...'
        session.handle(encode_frame('user_stopped_typing'))
        assert session.status_text == ''

    def test_message_from_typist_clears_status(self, session) -> None:
        session.handle(encode_frame('user_typing', {'author': 'Bob'}))
        session.handle(encode_frame('receive_message', msg('5', 'Bob', 'sent it')))
        assert session.status_text == ''

    def test_status_change_tracked(self, session) -> None:
        session.handle(encode_frame('user_status_change', {'userId': 'u9', 'status': 'online'}))
        assert session.online == {'u9': 'online'}

    @pytest.mark.parametrize('raw', ['garbage', '[1, 2]', encode_frame('mystery', {})])
    def test_unknown_frames_ignored(self, session, raw) -> None:
        assert session.handle(raw) is None
        assert session.transcript == []
