"""Session I/O and retention management."""

import json
import os

from gptcli.errors import PersistenceError
from gptcli.globals import MAX_HISTORY_SESSIONS, SESSIONS_DIR, log_exception
from gptcli.models import Session


class SessionStore:
    """Handles session-related I/O. One JSON file per session, named by id."""

    def __init__(self, directory: str = SESSIONS_DIR):
        self.directory = directory

    def _json_helper(self, session_id: str) -> str:
        """JSON extension helper"""
        file_name = session_id
        if not file_name.endswith(".json"):
            file_name += ".json"
        return os.path.join(self.directory, file_name)

    def _read(self, file_path: str) -> Session:
        with open(file_path, "r", encoding="utf-8") as f:
            return Session.from_dict(json.load(f))

    def _scan(self) -> list[Session]:
        """Reads every parsable session in the directory. Broken files are skipped."""
        try:
            files = [f for f in os.listdir(self.directory) if f.endswith(".json")]
        except OSError:
            return []
        sessions = []
        for file in files:
            try:
                sessions.append(self._read(os.path.join(self.directory, file)))
            except (OSError, ValueError, KeyError, TypeError):
                continue
        return sessions

    def save(self, session: Session):
        """Upserts a session. Failures are logged and otherwise ignored."""
        try:
            self.write(session)
        except PersistenceError as e:
            log_exception(e, f"Error in SessionStore.save() - session: {session.id}")

    def write(self, session: Session):
        """Writes a session to disk, raising PersistenceError on failure."""
        file_path = self._json_helper(session.id)
        try:
            os.makedirs(self.directory, exist_ok=True)
            with open(file_path, "w", encoding="utf-8") as f:
                json.dump(session.to_dict(), f, indent=2)
        except (OSError, TypeError) as e:
            raise PersistenceError(f"Could not write {file_path}: {e}") from e

    def load(self, session_id: str) -> Session | None:
        """Exact-id lookup"""
        try:
            return self._read(self._json_helper(session_id))
        except (OSError, ValueError, KeyError, TypeError):
            return None

    def list(self, limit: int | None = 10) -> list[Session]:
        """Returns the most recently updated sessions, newest first."""
        sessions = sorted(self._scan(), key=lambda s: s.updated_at, reverse=True)
        if limit is None:
            return sessions
        return sessions[:limit]

    def resolve(self, id_or_prefix: str) -> Session | None:
        """Finds a recent session by id prefix, falling back to an exact load."""
        id_or_prefix = id_or_prefix.strip()
        if not id_or_prefix:
            return None
        for session in self.list():
            if session.id.startswith(id_or_prefix):
                return session
        return self.load(id_or_prefix)

    def delete(self, session_id: str) -> bool:
        """Used to remove a session file"""
        try:
            os.remove(self._json_helper(session_id))
        except OSError as e:
            log_exception(e, f"Error in SessionStore.delete() - session: {session_id}")
            return False
        return True

    def cleanup(self, max_retained: int = MAX_HISTORY_SESSIONS) -> int:
        """Deletes the oldest sessions beyond the retention cap. Returns the count removed."""
        sessions = sorted(self._scan(), key=lambda s: s.updated_at)
        excess = len(sessions) - max_retained
        if excess <= 0:
            return 0
        removed = 0
        for session in sessions[:excess]:
            if self.delete(session.id):
                removed += 1
        return removed
