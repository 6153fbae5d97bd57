"""
Saved conversations.

Each session is one executor conversation stored as a JSON file, keyed by
the directory it ran in and a user-chosen name, so `--session NAME` can pick
the conversation up again with a follow-up task.
"""

import hashlib
import json
import logging
import os
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from api_client import Message, Role
from config import app_config

logger = logging.getLogger(__name__)

SESSION_VERSION = 1


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Session:
    session_id: str = ""
    version: int = SESSION_VERSION
    name: str = "default"
    working_directory: str = ""
    model_id: str = ""
    created_at: str = ""
    updated_at: str = ""
    history: List[Dict[str, Any]] = field(default_factory=list)
    # status and round count of the most recent execute()
    last_status: str = ""
    rounds: int = 0

    @property
    def task_count(self) -> int:
        return sum(1 for m in self.history if m.get("role") == Role.USER.value)

    def messages(self) -> List[Message]:
        return [Message.from_dict(m) for m in self.history]

    def set_messages(self, messages: List[Message]) -> None:
        self.history = [m.to_dict() for m in messages]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


def session_key(working_directory: str, name: str) -> str:
    """`<12 hex chars of the directory's sha256>_<slug of name>`"""
    digest = hashlib.sha256(os.path.abspath(working_directory).encode()).hexdigest()[:12]
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower().strip()).strip("-")[:50] or "default"
    return f"{digest}_{slug}"


class SessionStore:
    """JSON files under one directory (SESSIONS_DIR by default)."""

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = base_dir or app_config.sessions_dir
        os.makedirs(self.base_dir, exist_ok=True)

    def _file(self, session_id: str) -> str:
        return os.path.join(self.base_dir, session_id + ".json")

    def _read(self, path: str) -> Optional[Session]:
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Skipping unreadable session file {path}: {e}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Skipping session file {path}: not a JSON object")
            return None
        return Session.from_dict(data)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_session(self, working_directory: str, model_id: str, name: str = "default") -> Session:
        """A fresh, unsaved session."""
        stamp = _utc_now()
        return Session(
            session_id=session_key(working_directory, name),
            name=name,
            working_directory=os.path.abspath(working_directory),
            model_id=model_id,
            created_at=stamp,
            updated_at=stamp,
        )

    def open(self, working_directory: str, model_id: str, name: str = "default") -> Session:
        """The named session for a directory; a new one if none was saved yet."""
        existing = self.find_by_name(working_directory, name)
        return existing if existing is not None else self.create_session(working_directory, model_id, name)

    def save(self, session: Session) -> str:
        """Write the session via a temp file and rename. Returns the path."""
        session.session_id = session.session_id or session_key(session.working_directory, session.name)
        session.updated_at = _utc_now()
        session.created_at = session.created_at or session.updated_at

        target = self._file(session.session_id)
        staging = target + ".tmp"
        try:
            with open(staging, "w", encoding="utf-8") as f:
                json.dump(asdict(session), f, indent=2, ensure_ascii=False)
            os.replace(staging, target)
        except OSError:
            if os.path.exists(staging):
                os.remove(staging)
            raise
        logger.info(f"Saved session '{session.name}' ({len(session.history)} messages) to {target}")
        return target

    def load(self, session_id: str) -> Optional[Session]:
        path = self._file(session_id)
        return self._read(path) if os.path.exists(path) else None

    def delete(self, session_id: str) -> bool:
        path = self._file(session_id)
        if not os.path.exists(path):
            return False
        os.remove(path)
        logger.info(f"Deleted session file {path}")
        return True

    def list_sessions(self, working_directory: str) -> List[Session]:
        """Sessions saved for this directory, most recently updated first."""
        prefix = session_key(working_directory, "x").rsplit("_", 1)[0] + "_"
        found = []
        for entry in sorted(os.listdir(self.base_dir)):
            if entry.startswith(prefix) and entry.endswith(".json"):
                session = self._read(os.path.join(self.base_dir, entry))
                if session is not None:
                    found.append(session)
        return sorted(found, key=lambda s: s.updated_at or "", reverse=True)

    def get_latest(self, working_directory: str) -> Optional[Session]:
        return next(iter(self.list_sessions(working_directory)), None)

    def find_by_name(self, working_directory: str, name: str) -> Optional[Session]:
        """Case-insensitive name lookup within one directory."""
        wanted = name.strip().lower()
        return next(
            (s for s in self.list_sessions(working_directory) if s.name.strip().lower() == wanted),
            None,
        )
