"""Runtime settings, read from the environment."""
import os
from dataclasses import dataclass, field
from typing import List


# history never exceeds this many messages
MAX_HISTORY = 50


def clamp_history_limit(value) -> int:
    return max(1, min(int(value), MAX_HISTORY))


def _split_origins(raw: str) -> List[str]:
    return [o.strip() for o in raw.split(',') if o.strip()]


@dataclass
class Settings:
    host: str = '0.0.0.0'
    port: int = 4000
    mongo_url: str = 'mongodb://localhost:27017'
    mongo_db: str = 'roomchat'
    cors_origins: List[str] = field(default_factory=lambda: ['http://localhost:3000'])
    history_limit: int = MAX_HISTORY
    log_level: str = 'INFO'
    log_file: str = None

    @classmethod
    def from_env(cls, environ=None):
        env = os.environ if environ is None else environ
        return cls(
            host=env.get('HOST', '0.0.0.0'),
            port=int(env.get('PORT', 4000)),
            mongo_url=env.get('MONGODB_URI', 'mongodb://localhost:27017'),
            mongo_db=env.get('MONGODB_DB', 'roomchat'),
            cors_origins=_split_origins(env.get('CORS_ORIGIN', 'http://localhost:3000')),
            history_limit=clamp_history_limit(env.get('HISTORY_LIMIT', MAX_HISTORY)),
            log_level=env.get('LOG_LEVEL', 'INFO'),
            log_file=env.get('LOG_FILE') or None,
        )
