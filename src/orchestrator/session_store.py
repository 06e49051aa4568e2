"""Session load/save to .compell/sessions/*.json."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from .config import SESSIONS_DIR
from .errors import SessionCorruptError, SessionNotFoundError
from .models import Session

logger = logging.getLogger(__name__)


class SessionStore:
    """Durable storage for sessions, one JSON file per session id."""

    def __init__(self, sessions_dir: Path | str = SESSIONS_DIR) -> None:
        self.sessions_dir = Path(sessions_dir)

    def _session_path(self, session_id: str) -> Path:
        return self.sessions_dir / f"{session_id}.json"

    def new(self, session_id: str) -> Session:
        """Create an empty, unsaved session."""
        return Session(name=session_id)

    def exists(self, session_id: str) -> bool:
        return self._session_path(session_id).exists()

    def load(self, session_id: str) -> Session:
        """Load session by id. Raises SessionNotFoundError if there is no such file."""
        if not session_id or Path(session_id).name != session_id:
            raise SessionNotFoundError(session_id, "invalid session id")
        path = self._session_path(session_id)
        try:
            with open(path, "rb") as f:
                raw = f.read()
        except FileNotFoundError as e:
            raise SessionNotFoundError(session_id) from e
        except OSError as e:
            raise SessionNotFoundError(session_id, str(e)) from e
        except ValueError as e:
            # e.g. an embedded NUL byte in the id
            raise SessionNotFoundError(session_id, "invalid session id") from e
        # Bytes go to pydantic so bad UTF-8 surfaces as a ValidationError.
        try:
            session = Session.model_validate_json(raw)
        except ValidationError as e:
            raise SessionCorruptError(f"could not parse session file {path}: {e}") from e
        logger.debug("loaded session %s with %d messages", session_id, len(session.messages))
        return session

    def save(self, session: Session) -> None:
        """Persist session to <sessions_dir>/{name}.json."""
        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        path = self._session_path(session.name)
        payload = session.model_dump(mode="json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        logger.debug("saved session %s (%d messages)", session.name, len(session.messages))
