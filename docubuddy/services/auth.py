import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from uuid import uuid4
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select
from ..config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, ROLES, DEFAULT_ROLE
from ..errors import AlreadyExists, NotAuthenticated, TransientIOFailure, ValidationError
from ..models import AuthUser, Profile
from ..utils.security import hash_password, verify_password
from ..utils.time import get_time_stamp


logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login", auto_error=False)

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")
SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class SessionUser:
    """The user attached to a live session, as the token describes it."""
    id: str
    email: str
    sid: str
    user_metadata: dict = field(default_factory=dict)
    expires_at: Optional[datetime] = None

    @property
    def expired(self) -> bool:
        return self.expires_at is not None and self.expires_at <= get_time_stamp()


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = (get_time_stamp() +
              (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


def _find_user(session: Session, email: str) -> Optional[AuthUser]:
    try:
        return session.exec(select(AuthUser).where(AuthUser.email == email)).first()
    except SQLAlchemyError as e:
        logger.error(f"Error looking up account {email}: {e}")
        raise TransientIOFailure(f"Failed to look up account: {e}")


def _session_user(payload: Optional[dict]) -> Optional[SessionUser]:
    if not payload or payload.get("id") is None or payload.get("sid") is None:
        return None
    exp = payload.get("exp")
    return SessionUser(id=payload["id"],
                       email=payload.get("email", ""),
                       sid=payload["sid"],
                       user_metadata=payload.get("user_metadata") or {},
                       expires_at=datetime.fromtimestamp(exp, timezone.utc) if exp else None)


class AuthProvider:
    """Password sign-up/sign-in with JWT sessions and auth state listeners."""

    def __init__(self):
        self._listeners: list[Callable[[str, SessionUser], None]] = []
        # Revoked sid -> token expiry; an expired token is rejected anyway
        self._revoked_sessions: dict[str, Optional[datetime]] = {}

    def sign_up(self, session: Session, email: str, password: str,
                metadata: Optional[dict] = None) -> AuthUser:
        metadata = dict(metadata or {})
        email = (email or "").strip()
        full_name = (metadata.get("full_name") or "").strip()
        role = metadata.get("role") or DEFAULT_ROLE

        if not full_name:
            raise ValidationError("Full name is required")
        if not EMAIL_PATTERN.fullmatch(email):
            raise ValidationError("Please enter a valid email")
        if len(password or "") < 8:
            raise ValidationError("Password must be at least 8 characters")
        if role not in ROLES:
            raise ValidationError(f"Unknown role: {role}")

        if _find_user(session, email):
            raise AlreadyExists("Email already registered")

        new_user = AuthUser(
            email=email,
            hashed_password=hash_password(password),
            user_metadata={"full_name": full_name, "role": role},
        )
        # Every account gets a profile row carrying its database role
        profile = Profile(id=new_user.id, full_name=full_name, email=email, role=role)
        session.add(new_user)
        session.add(profile)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise AlreadyExists("Email already registered")
        session.refresh(new_user)
        logger.info(f"Signed up {email} as {role}")
        return new_user

    def sign_in_with_password(self, session: Session, email: str, password: str) -> str:
        user = _find_user(session, (email or "").strip())
        if not user or not verify_password(password, user.hashed_password):
            raise NotAuthenticated("Invalid login credentials")

        sid = str(uuid4())
        access_token = create_access_token(data={"sub": user.email,
                                                 "id": user.id,
                                                 "email": user.email,
                                                 "sid": sid,
                                                 "user_metadata": user.user_metadata or {}})
        self._emit(SIGNED_IN, _session_user(decode_access_token(access_token)))
        return access_token

    def get_session(self, token: Optional[str]) -> Optional[SessionUser]:
        if not token:
            return None
        user = _session_user(decode_access_token(token))
        if user is None or user.sid in self._revoked_sessions:
            return None
        return user

    def sign_out(self, token: Optional[str]) -> None:
        user = self.get_session(token)
        if user is None:
            return
        self._prune_revoked()
        self._revoked_sessions[user.sid] = user.expires_at
        self._emit(SIGNED_OUT, user)

    def _prune_revoked(self) -> None:
        now = get_time_stamp()
        for sid, expires_at in list(self._revoked_sessions.items()):
            if expires_at is not None and expires_at <= now:
                del self._revoked_sessions[sid]

    def on_auth_state_change(self, callback: Callable[[str, SessionUser], None]):
        """Register ``callback(event, user)``; returns the unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, event: str, user: SessionUser):
        for listener in list(self._listeners):
            try:
                listener(event, user)
            except Exception as e:
                logger.warning(f"Auth state listener failed on {event}: {e}")


auth_provider = AuthProvider()
