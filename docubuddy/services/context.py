import logging
from collections import OrderedDict
from datetime import datetime
from typing import Annotated, Callable, Optional
from fastapi import Depends, Header
from sqlmodel import Session
from ..config import DEFAULT_DEVICE, PREFERENCE_CACHE_SIZE
from ..database import get_session
from ..errors import NotAuthenticated
from ..utils.time import get_time_stamp
from .auth import SIGNED_OUT, SessionUser, auth_provider, oauth2_scheme
from .identity import Actor, RoleResolution, resolve_actor
from .preferences import PreferenceStore, device_preferences
from .workflow import WorkflowMachine


logger = logging.getLogger(__name__)


class SessionContext:
    """Everything one signed-in session knows locally.

    Holds the cached role, the views loaded for the actor and the workflow
    machine. ``close`` drops all of it on sign-out; results of asynchronous
    work that arrive afterwards must be discarded by checking ``closed``.
    """

    def __init__(self, sid: str, user_id: str, preferences: PreferenceStore,
                 device_id: str = DEFAULT_DEVICE, expires_at: Optional[datetime] = None):
        self.sid = sid
        self.expires_at = expires_at
        self.user_id = user_id
        self.device_id = device_id
        self.actor: Optional[Actor] = None
        self.role: Optional[RoleResolution] = None
        self.teams: list = []
        self.user_team_ids: set[str] = set()
        self.documents: list = []
        self.members: list = []
        self.upload_progress: dict[str, dict] = {}
        self.workflow = WorkflowMachine(preferences)
        self.closed = False

    @property
    def expired(self) -> bool:
        return self.expires_at is not None and self.expires_at <= get_time_stamp()

    @property
    def is_admin(self) -> bool:
        return self.role is not None and self.role.role == "admin"

    def team_name(self, team_id: Optional[str]) -> Optional[str]:
        for team in self.teams:
            if team.id == team_id:
                return team.name
        return None

    def close(self):
        self.closed = True
        self.actor = None
        self.role = None
        self.teams = []
        self.user_team_ids = set()
        self.documents = []
        self.members = []
        self.upload_progress = {}


class SessionRegistry:
    """Session contexts by session id, plus a bounded cache of device preference stores.

    Contexts are dropped on sign-out or once their token has expired.
    """

    def __init__(self, preferences_factory: Callable[[str], PreferenceStore] = device_preferences,
                 cache_size: int = PREFERENCE_CACHE_SIZE):
        self.preferences_factory = preferences_factory
        self.cache_size = cache_size
        self._contexts: dict[str, SessionContext] = {}
        self._preferences: OrderedDict[str, PreferenceStore] = OrderedDict()

    def preferences_for(self, device_id: str) -> PreferenceStore:
        if device_id in self._preferences:
            self._preferences.move_to_end(device_id)
            return self._preferences[device_id]
        store = self.preferences_factory(device_id)
        self._preferences[device_id] = store
        while len(self._preferences) > self.cache_size:
            self._preferences.popitem(last=False)
        return store

    def prune_expired(self) -> int:
        expired = [sid for sid, context in self._contexts.items() if context.expired]
        for sid in expired:
            self.close(sid)
        return len(expired)

    def open(self, user: SessionUser, device_id: str = DEFAULT_DEVICE) -> SessionContext:
        self.prune_expired()
        context = self._contexts.get(user.sid)
        if context is None or context.closed:
            context = SessionContext(sid=user.sid, user_id=user.id,
                                     preferences=self.preferences_for(device_id),
                                     device_id=device_id,
                                     expires_at=user.expires_at)
            self._contexts[user.sid] = context
        return context

    def get(self, sid: str) -> Optional[SessionContext]:
        return self._contexts.get(sid)

    def close(self, sid: str) -> None:
        context = self._contexts.pop(sid, None)
        if context is not None:
            context.close()
            logger.info(f"Closed session context {sid}")

    def handle_auth_event(self, event: str, user: SessionUser) -> None:
        if event == SIGNED_OUT:
            self.close(user.sid)


session_registry = SessionRegistry()
auth_provider.on_auth_state_change(session_registry.handle_auth_event)


def get_session_registry() -> SessionRegistry:
    return session_registry


async def get_session_context(
        token: Annotated[Optional[str], Depends(oauth2_scheme)],
        session: Annotated[Session, Depends(get_session)],
        registry: Annotated[SessionRegistry, Depends(get_session_registry)],
        x_device_id: Annotated[Optional[str], Header()] = None) -> SessionContext:
    user = auth_provider.get_session(token)
    if user is None:
        raise NotAuthenticated("Could not validate credentials")
    context = registry.open(user, x_device_id or DEFAULT_DEVICE)
    context.actor = resolve_actor(user, session, context)
    return context
