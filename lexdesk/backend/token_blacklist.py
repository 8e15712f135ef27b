"""
Token Blacklist Management
==========================

Revoked session tokens. The token_blacklist table is the source of truth;
when REDIS_URL is configured, revocations are mirrored to Redis with a TTL
and checked there first.
"""

import logging
from datetime import datetime
from typing import Dict, Optional

from redis import Redis
from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from ..db.models import TokenBlacklist

logger = logging.getLogger(__name__)

BLACKLIST_PREFIX = "token:blacklist:"

_redis_clients: Dict[str, Redis] = {}


def get_redis_client(redis_url: Optional[str]) -> Optional[Redis]:
    """Get a Redis client for the URL, or None when unset or unreachable."""
    if not redis_url:
        return None

    client = _redis_clients.get(redis_url)
    if client is None:
        try:
            client = Redis.from_url(redis_url, decode_responses=True)
            client.ping()
        except RedisError as e:
            logger.warning(f"Redis connection failed: {e}. Using database only.")
            return None
        _redis_clients[redis_url] = client

    return client


def add_to_blacklist(
    db: Session,
    jti: str,
    expires_at: datetime,
    token_type: str = "access",
    user_id: Optional[str] = None,
    redis_url: Optional[str] = None,
) -> bool:
    """
    Revoke a token by its JTI.

    Returns:
        True if the revocation was also mirrored to Redis
    """
    if not db.query(TokenBlacklist).filter(TokenBlacklist.jti == jti).first():
        db.add(TokenBlacklist(jti=jti, token_type=token_type, user_id=user_id, expires_at=expires_at))
        db.commit()

    redis = get_redis_client(redis_url)
    if redis:
        try:
            ttl_seconds = max(int((expires_at - datetime.utcnow()).total_seconds()), 60)
            redis.setex(f"{BLACKLIST_PREFIX}{jti}", ttl_seconds, token_type)
            return True
        except RedisError as e:
            logger.warning(f"Redis blacklist add failed: {e}")

    return False


def is_blacklisted(db: Session, jti: str, redis_url: Optional[str] = None) -> bool:
    """Check Redis first, then the database."""
    redis = get_redis_client(redis_url)
    if redis:
        try:
            if redis.exists(f"{BLACKLIST_PREFIX}{jti}"):
                return True
        except RedisError as e:
            logger.warning(f"Redis blacklist check failed: {e}")

    return db.query(TokenBlacklist).filter(TokenBlacklist.jti == jti).first() is not None


def remove_expired_blacklist_entries(db: Session) -> int:
    """Delete entries whose tokens have expired anyway. Returns the count removed."""
    removed = db.query(TokenBlacklist).filter(
        TokenBlacklist.expires_at < datetime.utcnow()
    ).delete()
    db.commit()
    if removed:
        logger.info(f"Removed {removed} expired blacklist entries")
    return removed
