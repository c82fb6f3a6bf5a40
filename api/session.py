"""
api/session.py — per-browser in-memory sessions (cookie based)

Each browser gets a UUID session id. A session holds at most one pending
test definition (instructions on screen) and one TestAttempt.
Sessions expire after SESSION_TTL seconds without access; an expired or
reset session's attempt has its countdown cancelled.
"""

import threading
import time
import uuid
from typing import Any, Dict, List, Optional

from config import SESSION_TTL
from exam_prep_cbt.services.attempt import TestAttempt

_lock = threading.Lock()
_sessions: Dict[str, Dict[str, Any]] = {}
_timestamps: Dict[str, float] = {}


def _new_state() -> Dict[str, Any]:
    return {
        "pending_definition": None,
        "attempt": None,
    }


def create_session() -> str:
    """Create a session and return its id."""
    sid = uuid.uuid4().hex
    with _lock:
        _sessions[sid] = _new_state()
        _timestamps[sid] = time.time()
    return sid


def get_session(sid: str) -> Optional[Dict[str, Any]]:
    """Session data for `sid`, or None when unknown or expired."""
    expired = None
    with _lock:
        if sid not in _sessions:
            return None
        if time.time() - _timestamps[sid] > SESSION_TTL:
            expired = _sessions.pop(sid)
            del _timestamps[sid]
        else:
            _timestamps[sid] = time.time()  # refresh on access
            return _sessions[sid]
    _close_attempt(expired)
    return None


def get(sid: str, key: str, default=None):
    session = get_session(sid)
    if session is None:
        return default
    return session.get(key, default)


def put(sid: str, key: str, value) -> None:
    with _lock:
        if sid in _sessions:
            _sessions[sid][key] = value
            _timestamps[sid] = time.time()


def set_attempt(sid: str, attempt: TestAttempt) -> None:
    """Install a new attempt, closing the one it replaces."""
    with _lock:
        if sid not in _sessions:
            return
        previous = _sessions[sid].get("attempt")
        _sessions[sid]["attempt"] = attempt
        _sessions[sid]["pending_definition"] = None
        _timestamps[sid] = time.time()
    if previous is not None and previous is not attempt:
        previous.close()


def reset(sid: str) -> None:
    """Drop everything in the session, stopping any running countdown."""
    with _lock:
        old = _sessions.get(sid)
        if old is None:
            return
        _sessions[sid] = _new_state()
        _timestamps[sid] = time.time()
    _close_attempt(old)


def cleanup_expired() -> int:
    """Remove expired sessions. Returns how many were removed."""
    now = time.time()
    removed: List[Dict[str, Any]] = []
    with _lock:
        expired = [sid for sid, ts in _timestamps.items() if now - ts > SESSION_TTL]
        for sid in expired:
            removed.append(_sessions.pop(sid))
            del _timestamps[sid]
    for state in removed:
        _close_attempt(state)
    return len(removed)


def close_all() -> None:
    """Stop every countdown and forget all sessions (server shutdown)."""
    with _lock:
        states = list(_sessions.values())
        _sessions.clear()
        _timestamps.clear()
    for state in states:
        _close_attempt(state)


def _close_attempt(state: Optional[Dict[str, Any]]) -> None:
    attempt = state.get("attempt") if state else None
    if attempt is not None:
        attempt.close()
