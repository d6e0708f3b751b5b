# catalog_search/api/deps.py
import secrets
from typing import Optional

from fastapi import Depends, Header

from catalog_search.core.config import Settings, get_settings
from catalog_search.core.errors import AdminRequired, AuthenticationRequired
from catalog_search.db.mongo import get_db
from catalog_search.db.redis import get_redis
from catalog_search.domain.repositories.catalog import CatalogRepos, build_repos

# Dependency for injecting the MongoDB database into endpoints/services
async def mongo_db(db = Depends(get_db)):
    return db

# Dependency for injecting the Redis client (None when Redis is not configured)
def redis_dep():
    return get_redis()

def settings_dep() -> Settings:
    return get_settings()

# Repositories over the catalog store, built per request (no shared mutable state)
def catalog_repos(db = Depends(mongo_db), settings: Settings = Depends(settings_dep)) -> CatalogRepos:
    return build_repos(db, settings)


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def is_admin_key(key: str, settings: Settings) -> bool:
    return any(secrets.compare_digest(key, k) for k in settings.admin_api_keys)


async def require_admin(
    x_api_key: Optional[str] = Header(default=None),
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(settings_dep),
) -> None:
    """
    Admin gate for privileged operations.
    Accepts 'X-API-Key: <key>' or 'Authorization: Bearer <key>'.
    """
    key = x_api_key or _bearer(authorization)
    if not key:
        raise AuthenticationRequired()
    if not is_admin_key(key, settings):
        raise AdminRequired()
