import pytest

from backend.config import Settings


def test_defaults() -> None:
    settings = Settings.from_env({})
    assert settings.port == 4000
    assert settings.mongo_url == 'mongodb://localhost:27017'
    assert settings.cors_origins == ['http://localhost:3000']
    assert settings.history_limit == 50
    assert settings.log_file is None


def test_overrides() -> None:
    settings = Settings.from_env({
        'PORT': '8080',
        'MONGODB_URI': 'mongodb://db:27017',
        'MONGODB_DB': 'chat_test',
        'CORS_ORIGIN': 'https://a.example, https://b.example',
        'HISTORY_LIMIT': '20',
        'LOG_LEVEL': 'debug',
    })
    assert settings.port == 8080
    assert settings.mongo_url == 'mongodb://db:27017'
    assert settings.mongo_db == 'chat_test'
    assert settings.cors_origins == ['https://a.example', 'https://b.example']
    assert settings.history_limit == 20
    assert settings.log_level == 'debug'


@pytest.mark.parametrize('raw, expected', [('500', 50), ('0', 1), ('-3', 1), ('25', 25)])
def test_history_limit_is_clamped(raw, expected) -> None:
    assert Settings.from_env({'HISTORY_LIMIT': raw}).history_limit == expected
