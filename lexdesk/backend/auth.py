"""
Auth Provider
=============

Email/password identities with JWT sessions.

- Passwords: passlib bcrypt (72-byte limit enforced)
- Sessions: PyJWT access/refresh pair, each token carrying a jti
- Sign-out and refresh rotation revoke tokens via the token blacklist
- on_auth_state_change listeners receive (event, session) synchronously

Events: SIGNED_IN, SIGNED_OUT, TOKEN_REFRESHED, USER_UPDATED
"""

import re
import uuid
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

import jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session as DbSession

from ..config import Settings
from ..db.models import AuthUser as AuthUserRow
from .errors import AuthApiError
from .token_blacklist import add_to_blacklist, is_blacklisted

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"
USER_UPDATED = "USER_UPDATED"

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# =============================================================================
# PASSWORD HASHING
# =============================================================================

# bcrypt truncates passwords at 72 bytes; enforce to avoid 500s.
MAX_PASSWORD_BYTES = 72

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def is_password_too_long(password: str) -> bool:
    """Return True if password exceeds bcrypt 72-byte limit."""
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash"""
    if is_password_too_long(plain_password):
        logger.warning("Auth failed: password exceeds bcrypt 72-byte limit")
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.warning(f"Auth failed: invalid password format ({e})")
        return False


def get_password_hash(password: str) -> str:
    """Hash a password"""
    if is_password_too_long(password):
        raise ValueError("Password exceeds bcrypt 72-byte limit")
    return pwd_context.hash(password)


# =============================================================================
# SESSION TYPES
# =============================================================================

@dataclass
class User:
    """Authenticated identity as seen by the application"""
    id: str
    email: str
    user_metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    last_sign_in_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: AuthUserRow) -> "User":
        return cls(
            id=row.id,
            email=row.email,
            user_metadata=dict(row.user_metadata or {}),
            created_at=row.created_at,
            last_sign_in_at=row.last_sign_in_at,
        )


@dataclass
class AuthSession:
    access_token: str
    refresh_token: Optional[str]
    expires_at: datetime
    user: User
    token_type: str = "bearer"

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expires_at": self.expires_at.isoformat(),
            "user": {"id": self.user.id, "email": self.user.email, "user_metadata": self.user.user_metadata},
        }


@dataclass
class AuthResponse:
    user: Optional[User]
    session: Optional[AuthSession]


AuthListener = Callable[[str, Optional[AuthSession]], None]


class Subscription:
    """Handle returned by on_auth_state_change"""

    def __init__(self, listeners: Dict[str, AuthListener], key: str):
        self._listeners = listeners
        self.id = key

    def unsubscribe(self):
        self._listeners.pop(self.id, None)


# =============================================================================
# AUTH CLIENT
# =============================================================================

class AuthClient:
    """Auth provider bound to one database session."""

    def __init__(self, db: DbSession, settings: Settings, access_token: Optional[str] = None):
        self.db = db
        self.settings = settings
        self._session: Optional[AuthSession] = None
        self._listeners: Dict[str, AuthListener] = {}
        self._pending_token = access_token

    # -------------------------------------------------------------------------
    # Tokens
    # -------------------------------------------------------------------------

    def _encode(self, user: User, token_type: str, expires_at: datetime) -> str:
        payload = {
            "sub": user.id,
            "email": user.email,
            "type": token_type,
            "jti": uuid.uuid4().hex,
            "iat": datetime.utcnow(),
            "exp": expires_at,
        }
        return jwt.encode(payload, self.settings.jwt_secret_key, algorithm=self.settings.jwt_algorithm)

    def decode_token(self, token: str, token_type: str = "access") -> Optional[dict]:
        """Decode and validate a token; None when invalid, expired, revoked or of another type."""
        try:
            payload = jwt.decode(token, self.settings.jwt_secret_key, algorithms=[self.settings.jwt_algorithm])
        except jwt.ExpiredSignatureError:
            logger.info(f"Expired {token_type} token")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid JWT token: {e}")
            return None

        if payload.get("type") != token_type:
            logger.warning(f"Token type mismatch: expected {token_type}, got {payload.get('type')}")
            return None
        if is_blacklisted(self.db, payload.get("jti", ""), self.settings.redis_url):
            logger.warning(f"Revoked {token_type} token used for user {payload.get('sub')}")
            return None
        return payload

    def _issue_session(self, user: User) -> AuthSession:
        now = datetime.utcnow()
        expires_at = now + timedelta(minutes=self.settings.access_token_expire_minutes)
        refresh_expires_at = now + timedelta(days=self.settings.refresh_token_expire_days)
        return AuthSession(
            access_token=self._encode(user, "access", expires_at),
            refresh_token=self._encode(user, "refresh", refresh_expires_at),
            expires_at=expires_at,
            user=user,
        )

    def _revoke(self, token: Optional[str], token_type: str):
        if not token:
            return
        try:
            payload = jwt.decode(
                token, self.settings.jwt_secret_key, algorithms=[self.settings.jwt_algorithm],
                options={"verify_exp": False},
            )
        except jwt.InvalidTokenError:
            return
        add_to_blacklist(
            self.db,
            payload["jti"],
            datetime.utcfromtimestamp(payload["exp"]),
            token_type=token_type,
            user_id=payload.get("sub"),
            redis_url=self.settings.redis_url,
        )

    def _load_user(self, user_id: str) -> Optional[User]:
        row = self.db.query(AuthUserRow).filter(AuthUserRow.id == user_id).first()
        if not row or not row.is_active:
            return None
        return User.from_row(row)

    def _session_from_access_token(self, access_token: str) -> Optional[AuthSession]:
        payload = self.decode_token(access_token, "access")
        if not payload:
            return None
        user = self._load_user(payload["sub"])
        if not user:
            logger.warning(f"Auth failed: user {payload['sub']} not found or inactive")
            return None
        return AuthSession(
            access_token=access_token,
            refresh_token=None,
            expires_at=datetime.utcfromtimestamp(payload["exp"]),
            user=user,
        )

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def on_auth_state_change(self, callback: AuthListener) -> Subscription:
        key = uuid.uuid4().hex
        self._listeners[key] = callback
        return Subscription(self._listeners, key)

    def _emit(self, event: str, session: Optional[AuthSession]):
        for callback in list(self._listeners.values()):
            try:
                callback(event, session)
            except Exception as e:
                logger.error(f"Auth listener failed on {event}: {e}", exc_info=True)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def sign_up(self, email: str, password: str, data: Optional[Dict[str, Any]] = None) -> AuthResponse:
        email = (email or "").strip().lower()
        if not EMAIL_PATTERN.match(email):
            raise AuthApiError("Unable to validate email address: invalid format", status=422)
        if len(password or "") < self.settings.min_password_length:
            raise AuthApiError(
                f"Password should be at least {self.settings.min_password_length} characters", status=422
            )
        if is_password_too_long(password):
            raise AuthApiError("Password cannot be longer than 72 bytes", status=422)
        if self.db.query(AuthUserRow).filter(AuthUserRow.email == email).first():
            raise AuthApiError("User already registered", status=422)

        row = AuthUserRow(
            email=email,
            password_hash=get_password_hash(password),
            user_metadata=dict(data or {}),
            last_sign_in_at=datetime.utcnow(),
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        logger.info(f"Registered user {row.id}")

        user = User.from_row(row)
        self._session = self._issue_session(user)
        self._emit(SIGNED_IN, self._session)
        return AuthResponse(user=user, session=self._session)

    def sign_in_with_password(self, email: str, password: str) -> AuthResponse:
        email = (email or "").strip().lower()
        row = self.db.query(AuthUserRow).filter(AuthUserRow.email == email).first()
        if not row or not row.is_active or not verify_password(password or "", row.password_hash):
            logger.warning(f"Auth failed: invalid credentials for {email}")
            raise AuthApiError("Invalid login credentials", status=400)

        row.last_sign_in_at = datetime.utcnow()
        self.db.commit()

        user = User.from_row(row)
        self._session = self._issue_session(user)
        self._emit(SIGNED_IN, self._session)
        return AuthResponse(user=user, session=self._session)

    def get_session(self) -> Optional[AuthSession]:
        """Current session, or None. An expired or revoked token yields None."""
        if self._pending_token:
            token, self._pending_token = self._pending_token, None
            self._session = self._session_from_access_token(token)
        if self._session and self._session.expires_at <= datetime.utcnow():
            self._session = None
        return self._session

    def get_user(self, access_token: Optional[str] = None) -> User:
        token = access_token
        if token is None:
            session = self.get_session()
            token = session.access_token if session else None
        if not token:
            raise AuthApiError("Auth session missing!", status=401)

        session = self._session_from_access_token(token)
        if not session:
            raise AuthApiError("Invalid JWT", status=401)
        return session.user

    def set_session(self, access_token: str, refresh_token: Optional[str] = None) -> AuthSession:
        session = self._session_from_access_token(access_token)
        if not session:
            raise AuthApiError("Invalid JWT", status=401)
        session.refresh_token = refresh_token
        self._pending_token = None
        self._session = session
        self._emit(SIGNED_IN, session)
        return session

    def refresh_session(self, refresh_token: Optional[str] = None) -> AuthSession:
        """Rotate the refresh token and issue a new session."""
        token = refresh_token or (self._session.refresh_token if self._session else None)
        if not token:
            raise AuthApiError("Auth session missing!", status=401)

        payload = self.decode_token(token, "refresh")
        if not payload:
            raise AuthApiError("Invalid Refresh Token", status=401)
        user = self._load_user(payload["sub"])
        if not user:
            raise AuthApiError("User not found", status=401)

        self._revoke(token, "refresh")
        self._session = self._issue_session(user)
        self._emit(TOKEN_REFRESHED, self._session)
        return self._session

    def update_user(self, data: Dict[str, Any]) -> User:
        """Merge data into the current user's metadata."""
        session = self.get_session()
        if not session:
            raise AuthApiError("Auth session missing!", status=401)

        row = self.db.query(AuthUserRow).filter(AuthUserRow.id == session.user.id).first()
        if not row:
            raise AuthApiError("User not found", status=404)
        metadata = dict(row.user_metadata or {})
        metadata.update(data)
        row.user_metadata = metadata
        self.db.commit()
        self.db.refresh(row)

        session.user = User.from_row(row)
        self._emit(USER_UPDATED, session)
        return session.user

    def sign_out(self):
        """Revoke the current tokens and clear the session."""
        session = self._session or self.get_session()
        if session:
            self._revoke(session.access_token, "access")
            self._revoke(session.refresh_token, "refresh")
            logger.info(f"User {session.user.id} signed out")
        self._session = None
        self._pending_token = None
        self._emit(SIGNED_OUT, None)
