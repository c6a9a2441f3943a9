from vendorhub.core.config import settings
from vendorhub.core.database import Base, async_session_maker, engine, get_db
from vendorhub.core.redis import close_redis, get_redis
from vendorhub.core.security import create_access_token, decode_access_token
from vendorhub.core.transaction import atomic, for_update

__all__ = [
    "settings",
    "Base",
    "engine",
    "async_session_maker",
    "get_db",
    "get_redis",
    "close_redis",
    "create_access_token",
    "decode_access_token",
    "atomic",
    "for_update",
]
