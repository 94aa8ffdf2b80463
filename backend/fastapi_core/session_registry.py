"""
FastAPI Character Session Registry

Holds the in-memory character editing sessions, one per public id, for the
life of the process (or until explicitly closed).

Every session carries its own lock: requests touching the same character
are serialized, requests for different characters never contend. A request
that cannot get the lock within the configured timeout, or whose If-Match
version is stale, fails with ConflictError instead of interleaving.
"""

import threading
import time
import uuid
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from loguru import logger

from character.character_manager import CharacterManager
from character.factory import new_character_manager
from config.settings import settings
from fastapi_core.exceptions import (
    CharacterNotFoundException, ConflictError, SystemNotReadyException,
)
from fastapi_core.shared_services import get_shared_catalog


class CharacterSession:
    """One character's manager plus the lock guarding it"""

    def __init__(self, character_manager: CharacterManager):
        self.character_manager = character_manager
        self.public_id = character_manager.character.public_id
        self.created_at = time.time()
        self.last_access = self.created_at
        self._lock = threading.Lock()

    @property
    def version(self) -> int:
        return self.character_manager.character.version

    @contextmanager
    def locked(self, expected_version: Optional[int] = None,
               timeout: Optional[float] = None) -> Iterator[CharacterManager]:
        """
        Hold the character exclusively.

        Args:
            expected_version: Version from an If-Match header; must equal the current one
            timeout: Seconds to wait for the lock (defaults to settings)

        Raises:
            ConflictError: Lock not acquired in time, or stale expected_version
        """
        wait = settings.character_lock_timeout if timeout is None else timeout
        if not self._lock.acquire(timeout=wait):
            logger.warning(f"Timed out waiting {wait}s for character {self.public_id}")
            raise ConflictError(self.public_id, current_version=self.version)
        try:
            if expected_version is not None and expected_version != self.version:
                raise ConflictError(
                    self.public_id,
                    f"Character {self.public_id} is at version {self.version}, not {expected_version}",
                    current_version=self.version,
                )
            self.last_access = time.time()
            yield self.character_manager
        finally:
            self._lock.release()


# Global registry of active character sessions
_character_sessions: Dict[str, CharacterSession] = {}
_registry_lock = threading.Lock()


def create_character_session(public_id: Optional[str] = None, **initial) -> CharacterSession:
    """
    Create a character and register its session.

    Args:
        public_id: Opaque id; generated when omitted
        **initial: name, race_slug, class_slug, background_slug

    Raises:
        ConflictError: A session with this id already exists
        SystemNotReadyException: No catalog loaded
    """
    catalog = get_shared_catalog()
    if catalog is None:
        raise SystemNotReadyException()

    public_id = public_id or uuid.uuid4().hex
    with _registry_lock:
        if public_id in _character_sessions:
            raise ConflictError(public_id, f"Character {public_id} already exists")
        # Reserve the id so a concurrent create with the same id fails fast
        _character_sessions[public_id] = None

    try:
        manager = new_character_manager(public_id, catalog, **initial)
    except Exception:
        with _registry_lock:
            _character_sessions.pop(public_id, None)
        raise

    session = CharacterSession(manager)
    with _registry_lock:
        _character_sessions[public_id] = session
    logger.info(f"Created character session {public_id}")
    return session


def get_character_session(public_id: str) -> CharacterSession:
    """
    Raises:
        CharacterNotFoundException: No session with this id
    """
    with _registry_lock:
        session = _character_sessions.get(public_id)
    if session is None:
        raise CharacterNotFoundException(public_id)
    return session


def close_character_session(public_id: str) -> bool:
    """
    Close and discard a session.

    Returns:
        True if session was closed, False if no session existed
    """
    with _registry_lock:
        session = _character_sessions.pop(public_id, None)
    if session:
        logger.info(f"Closed character session {public_id}")
        return True
    logger.debug(f"No session to close for character {public_id}")
    return False


def has_active_session(public_id: str) -> bool:
    with _registry_lock:
        return _character_sessions.get(public_id) is not None


def get_active_sessions() -> Dict[str, dict]:
    """
    Get information about all active sessions.

    Returns:
        Dict mapping public id to session info
    """
    with _registry_lock:
        sessions = [s for s in _character_sessions.values() if s is not None]
    return {
        session.public_id: {
            'name': session.character_manager.character.name,
            'version': session.version,
            'created_at': session.created_at,
            'last_access': session.last_access,
        }
        for session in sessions
    }


def get_session_stats() -> dict:
    with _registry_lock:
        ids = [public_id for public_id, s in _character_sessions.items() if s is not None]
    return {
        'total_active_sessions': len(ids),
        'character_ids': ids,
    }


def cleanup_all_sessions():
    """
    Close all active sessions. Used for testing or shutdown.
    """
    with _registry_lock:
        count = len(_character_sessions)
        _character_sessions.clear()
    logger.info(f"Cleaned up {count} character sessions")
