"""Per-session conversation history held in process memory."""

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field

from .config import config
from .models import Turn

logger = config.get_logger(__name__)


@dataclass
class _Session:
    lock: threading.Lock = field(default_factory=threading.Lock)
    turns: list[Turn] = field(default_factory=list)


class SessionManager:
    """Owns the ordered transcript of every conversation session.

    Sessions are created on first append and live until the process exits.
    Each session has its own lock; the registry lock is only held to find or
    create a session, so unrelated sessions never contend.
    """

    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        self._sessions: dict[str, _Session] = {}

    def _get(self, session_id: str, *, create: bool) -> _Session | None:
        with self._registry_lock:
            session = self._sessions.get(session_id)
            if session is None and create:
                session = _Session()
                self._sessions[session_id] = session
                logger.info("Created session %s", session_id)
            return session

    def append_turn(self, session_id: str, turn: Turn) -> None:
        """Append one turn, creating the session if needed."""
        self.append_turns(session_id, [turn])

    def append_turns(self, session_id: str, turns: Iterable[Turn]) -> None:
        """Append several turns as one step: all of them land, or none do."""
        batch = list(turns)
        session = self._get(session_id, create=True)
        with session.lock:
            session.turns.extend(batch)

    def get_transcript(self, session_id: str, max_turns: int | None = None) -> list[Turn]:
        """Return the most recent turns, oldest first.

        Args:
            session_id: Session to read.
            max_turns: Upper bound on the number of turns returned. If None,
                the whole transcript is returned.

        Returns:
            A copy of the selected turns; empty for unknown sessions.
        """
        session = self._get(session_id, create=False)
        if session is None:
            return []
        with session.lock:
            if max_turns is None:
                return list(session.turns)
            if max_turns <= 0:
                return []
            return session.turns[-max_turns:]

    def clear(self, session_id: str) -> None:
        """Empty a session's transcript while keeping the session id."""
        session = self._get(session_id, create=False)
        if session is None:
            return
        with session.lock:
            session.turns.clear()
        logger.info("Conversation history cleared for session %s", session_id)

    def has_session(self, session_id: str) -> bool:
        with self._registry_lock:
            return session_id in self._sessions

    def session_ids(self) -> list[str]:
        with self._registry_lock:
            return list(self._sessions)

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._sessions)
