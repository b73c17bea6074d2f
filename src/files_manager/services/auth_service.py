"""
Authentication and access control.

Users register with an email and a password, exchange them for an opaque
session token, and present that token on every other request.
"""

import base64
import binascii
import hashlib
import hmac
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from bson import ObjectId

from database import DocumentAdapter, DuplicateDocumentError
from files_manager.adapters.sessions import SessionStore
from files_manager.errors import Unauthorized, ValidationError

logger = logging.getLogger(__name__)


class AccessMode(str, Enum):
    READ = 'read'
    WRITE = 'write'


@dataclass(frozen=True)
class User:
    id: str
    email: str


def hash_password(password: str) -> str:
    """Unsalted SHA-1 hex digest.

    Kept for compatibility with existing user records. It is fast and
    unsalted, so it needs to move to a salted slow hash (bcrypt/argon2)
    together with a migration of stored digests.
    """
    return hashlib.sha1(password.encode('utf-8')).hexdigest()


def authorize(user: User, node: Dict[str, Any], mode: AccessMode) -> bool:
    """Write requires ownership; read requires ownership or a public node"""
    is_owner = node.get('user_id') == user.id
    if mode == AccessMode.WRITE:
        return is_owner
    return is_owner or bool(node.get('is_public'))


def parse_basic_auth(header: Optional[str]) -> Tuple[str, str]:
    """Extract (email, password) from an ``Authorization: Basic`` header"""
    if not header:
        raise Unauthorized()

    scheme, _, encoded = header.partition(' ')
    if scheme.lower() != 'basic' or not encoded.strip():
        raise Unauthorized()

    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode('utf-8')
    except (binascii.Error, UnicodeDecodeError):
        raise Unauthorized()

    email, separator, password = decoded.partition(':')
    if not separator:
        raise Unauthorized()
    return email, password


class AuthService:
    """Registers users, issues sessions and resolves tokens to users"""

    def __init__(self, adapter: DocumentAdapter, session_store: SessionStore):
        self.adapter = adapter
        self.session_store = session_store

    def register(self, email: Optional[str], password: Optional[str]) -> User:
        if not email:
            raise ValidationError("Missing email")
        if not password:
            raise ValidationError("Missing password")

        if self.adapter.find_one('users', {'email': email}):
            raise ValidationError("Already exist")

        user_id = str(ObjectId())
        try:
            self.adapter.create_document('users', {
                'user_id': user_id,
                'email': email,
                'password': hash_password(password),
            })
        except DuplicateDocumentError:
            # Lost a race against a concurrent registration
            raise ValidationError("Already exist")

        logger.info(f"User registered: {user_id}")
        return User(id=user_id, email=email)

    def login(self, email: str, password: str) -> str:
        """Verify credentials and return a fresh session token"""
        document = self.adapter.find_one('users', {'email': email})
        if not document:
            logger.info("Login rejected: unknown email")
            raise Unauthorized()

        if not hmac.compare_digest(document['password'], hash_password(password)):
            logger.info(f"Login rejected for user {document['user_id']}: bad password")
            raise Unauthorized()

        session = self.session_store.create(document['user_id'])
        return session.token

    def logout(self, token: str) -> bool:
        return self.session_store.delete(token)

    def authenticate(self, token: Optional[str]) -> User:
        """Resolve a token to its user or fail Unauthorized"""
        session = self.session_store.get(token) if token else None
        if session is None:
            raise Unauthorized()

        user = self.get_user(session.user_id)
        if user is None:
            logger.warning(f"Session {token[:8]} references missing user {session.user_id}")
            raise Unauthorized()
        return user

    def authorize(self, user: User, node: Dict[str, Any], mode: AccessMode) -> bool:
        return authorize(user, node, mode)

    def get_user(self, user_id: str) -> Optional[User]:
        document = self.adapter.get_document('users', user_id)
        if not document:
            return None
        return User(id=document['user_id'], email=document['email'])

    def count_users(self) -> int:
        return self.adapter.count_documents('users')
