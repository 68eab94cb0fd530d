import asyncio
from contextlib import asynccontextmanager
import json

from fastapi import APIRouter, FastAPI, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
import uvicorn

from backend.config import Settings
from backend.logging_config import get_logger, setup_logging
from backend.rooms import Connection
from backend.server import ChatServer
from backend.store import HISTORY_LIMIT, MongoStore, StoreError

logger = get_logger(__name__)

router = APIRouter()


@router.get('/')
async def index():
    return HTMLResponse('<h3>Chat backend running. Connect via WebSocket at /ws</h3>')


@router.get('/rooms')
async def list_rooms(request: Request):
    chat: ChatServer = request.app.state.chat
    return JSONResponse({'rooms': chat.broadcaster.rooms(),
                         'connections': chat.broadcaster.connection_count})


@router.get('/rooms/{room}/messages')
async def room_messages(request: Request, room: str,
                        limit: int = Query(HISTORY_LIMIT, ge=1, le=HISTORY_LIMIT)):
    chat: ChatServer = request.app.state.chat
    try:
        messages = await chat.store.find_messages(room, limit=limit)
    except StoreError:
        logger.exception('REST history for %s failed', room)
        return JSONResponse({'error': 'storage unavailable'}, status_code=503)
    return JSONResponse({'room': room, 'messages': [m.to_wire() for m in messages]})


@router.get('/users/{user_id}')
async def get_user(request: Request, user_id: str):
    chat: ChatServer = request.app.state.chat
    try:
        profile = await chat.store.find_user(user_id)
    except StoreError:
        logger.exception('loading user %s failed', user_id)
        return JSONResponse({'error': 'storage unavailable'}, status_code=503)
    if profile is None:
        return JSONResponse({'error': 'not found'}, status_code=404)
    data = profile.to_wire()
    # live view wins over the stored flag while this process holds a connection
    data['isOnline'] = data['isOnline'] or chat.presence.is_online(user_id)
    return JSONResponse(data)


@router.websocket('/ws')
async def websocket_endpoint(websocket: WebSocket):
    chat: ChatServer = websocket.app.state.chat
    await websocket.accept()
    conn = Connection(websocket)
    chat.open(conn)
    try:
        while True:
            text = await websocket.receive_text()
            try:
                frame = json.loads(text)
            except ValueError:
                logger.warning('invalid json from %s', conn.id)
                continue
            if not isinstance(frame, dict) or not isinstance(frame.get('type'), str):
                logger.warning('frame without event type from %s', conn.id)
                continue
            conn.spawn(chat.dispatch(conn, frame['type'], frame.get('data')))
    except WebSocketDisconnect:
        pass
    finally:
        # presence must be released even when this handler is cancelled
        await asyncio.shield(chat.close(conn))


def create_app(settings: Settings = None, store=None) -> FastAPI:
    """Build the application. ``store`` replaces the MongoDB store when given."""
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        chat_store = store
        if chat_store is None:
            chat_store = MongoStore.from_url(settings.mongo_url, settings.mongo_db)
            try:
                await chat_store.ping()
                await chat_store.ensure_indexes()
            except StoreError:
                # keep serving; each store call will fail and be logged on its own
                logger.exception('MongoDB at %s not ready', settings.mongo_url)
        app.state.chat = ChatServer(chat_store, history_limit=settings.history_limit)
        logger.info('chat server ready (history limit %d)', settings.history_limit)
        yield
        if store is None:
            chat_store.close()

    app = FastAPI(title='roomchat', lifespan=lifespan)
    app.state.settings = settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=['GET', 'POST'],
        allow_headers=['*'],
    )
    app.include_router(router)
    return app


settings = Settings.from_env()
app = create_app(settings)


def main():
    setup_logging(settings.log_level, settings.log_file)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == '__main__':
    main()
