"""
Session store: opaque tokens mapped to user ids with a fixed time to live.

Sessions are documents in the ``sessions`` collection keyed ``session:<token>``.
Expired entries never authorize a request; they are purged lazily whenever a
new session is created.
"""

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Optional

from database import DocumentAdapter

logger = logging.getLogger(__name__)

_TOKEN_BYTES = 16
_COLLECTION = 'sessions'


@dataclass(frozen=True)
class Session:
    token: str
    user_id: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


def session_key(token: str) -> str:
    return f"session:{token}"


class SessionStore:
    """Issues, resolves and revokes authentication tokens"""

    def __init__(self, adapter: DocumentAdapter, ttl_seconds: int, clock: Callable[[], float] = time.time):
        self.adapter = adapter
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def create(self, user_id: str) -> Session:
        """Create a session for user_id under a fresh random token"""
        self.cleanup_expired()

        now = self.clock()
        session = Session(
            token=secrets.token_hex(_TOKEN_BYTES),
            user_id=user_id,
            expires_at=now + self.ttl_seconds,
        )
        self.adapter.create_document(_COLLECTION, {
            "session_key": session_key(session.token),
            "user_id": session.user_id,
            "expires_at": session.expires_at,
        })
        logger.info(f"Session created for user {user_id}: {session.token[:8]}")
        return session

    def get(self, token: str) -> Optional[Session]:
        """Return the live session for token, or None if absent or expired"""
        if not token:
            return None

        document = self.adapter.get_document(_COLLECTION, session_key(token))
        if not document:
            return None

        session = Session(token=token, user_id=document["user_id"], expires_at=document["expires_at"])
        if session.is_expired(self.clock()):
            logger.debug(f"Session {token[:8]} expired")
            return None
        return session

    def delete(self, token: str) -> bool:
        """Remove the session; deleting an absent token is not an error"""
        deleted = self.adapter.delete_document(_COLLECTION, session_key(token))
        if deleted:
            logger.info(f"Session ended: {token[:8]}")
        return deleted

    def cleanup_expired(self) -> int:
        """Remove sessions whose TTL elapsed"""
        removed = self.adapter.delete_documents(_COLLECTION, {"expires_at": {"$lte": self.clock()}})
        if removed:
            logger.info(f"Cleaned up {removed} expired sessions")
        return removed

    def is_alive(self) -> bool:
        return self.adapter.ping()
