"""Per-client swap sessions, each owning one lifecycle manager."""

from __future__ import annotations

import logging
import uuid
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field

from ..auth.auth_service import UserIdentity
from .task_manager import TaskLifecycleManager

logger = logging.getLogger(__name__)

ManagerFactory = Callable[[UserIdentity | None], TaskLifecycleManager]

DEFAULT_MAX_SESSIONS = 500


@dataclass(slots=True)
class SwapSession:
    session_id: str
    manager: TaskLifecycleManager
    owner_uid: str | None = None


@dataclass(slots=True)
class SwapSessionRegistry:
    """Keep managers addressable by an opaque id.

    Sessions are visible only to the identity that created them (or to any
    signed-out caller for anonymous sessions). Once ``max_sessions`` is
    reached the oldest session is reset and dropped.
    """

    factory: ManagerFactory
    max_sessions: int = DEFAULT_MAX_SESSIONS
    log: logging.Logger = field(default_factory=lambda: logger)
    _sessions: OrderedDict[str, SwapSession] = field(default_factory=OrderedDict, init=False)

    def create(self, identity: UserIdentity | None) -> SwapSession:
        manager = self.factory(identity)
        session = SwapSession(
            session_id=uuid.uuid4().hex,
            manager=manager,
            owner_uid=identity.uid if identity else None,
        )
        self._sessions[session.session_id] = session
        while len(self._sessions) > self.max_sessions:
            _, evicted = self._sessions.popitem(last=False)
            evicted.manager.reset()
            self.log.info("swap.session.evicted", extra={"session_id": evicted.session_id})
        self.log.info(
            "swap.session.created",
            extra={"session_id": session.session_id, "owner": session.owner_uid},
        )
        return session

    def get(self, session_id: str, identity: UserIdentity | None) -> SwapSession:
        session = self._sessions.get(session_id)
        owner = identity.uid if identity else None
        if session is None or session.owner_uid != owner:
            raise KeyError(f"Swap session '{session_id}' not found")
        return session

    def discard(self, session_id: str, identity: UserIdentity | None) -> None:
        session = self.get(session_id, identity)
        session.manager.reset()
        del self._sessions[session_id]
        self.log.info("swap.session.discarded", extra={"session_id": session_id})

    def __len__(self) -> int:
        return len(self._sessions)
