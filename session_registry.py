"""
Scrcpy Deck - Session Registry

Owns the table of running scrcpy processes. One lock guards the map and is
held only while the map is read or mutated; kill/poll/wait happen outside it so
a hung process cannot stall other registry calls.

remove() is the only ownership transfer: once a caller has removed a session,
no other caller can see it.
"""

import logging
import subprocess
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Tuple

from utils.error_handler import RegistryConflictError

logger = logging.getLogger(__name__)

KILL_WAIT_TIMEOUT = 5.0  # seconds to reap a killed process


class ProcessHandle(Protocol):
    """The part of subprocess.Popen the registry relies on"""
    pid: int

    def kill(self) -> None: ...

    def poll(self) -> Optional[int]: ...

    def wait(self, timeout: Optional[float] = None) -> int: ...


def make_session_id(device_id: str, pid: int) -> str:
    return f"session_{device_id}_{pid}"


@dataclass
class Session:
    """A tracked scrcpy process"""
    session_id: str
    device_id: str
    process: ProcessHandle
    started_at: datetime = field(default_factory=datetime.now)


def has_exited(session: Session) -> bool:
    """Non-blocking exit check. A status that cannot be read counts as exited."""
    try:
        return session.process.poll() is not None
    except OSError as e:
        logger.warning(f"[SessionRegistry] Could not poll {session.session_id}, assuming dead: {e}")
        return True


def kill_process(session: Session) -> bool:
    """
    Kill and reap a session's process.

    Returns:
        True if the process was killed or had already exited, False if it was
        still running when the wait after kill timed out

    Raises:
        OSError: kill failed and the process may still be alive
    """
    try:
        session.process.kill()
    except ProcessLookupError:
        logger.debug(f"[SessionRegistry] {session.session_id} already exited")
        return True

    try:
        session.process.wait(timeout=KILL_WAIT_TIMEOUT)
    except subprocess.TimeoutExpired:
        logger.warning(f"[SessionRegistry] {session.session_id} did not exit {KILL_WAIT_TIMEOUT:g}s after kill")
        return False
    return True


class SessionRegistry:
    """
    Thread-safe map of session_id -> Session.

    Safe to call from request handlers and worker threads at the same time.
    """

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def add(self, session_id: str, session: Session) -> None:
        """
        Track a session. Re-adding an id replaces the previous entry.

        Raises:
            RegistryConflictError: session_id does not belong to the session
        """
        if session_id != session.session_id:
            raise RegistryConflictError(
                f"Session id '{session_id}' does not match session '{session.session_id}'",
                session_id,
            )

        with self._lock:
            replaced = self._sessions.get(session_id)
            self._sessions[session_id] = session

        if replaced is not None and replaced is not session:
            logger.warning(f"[SessionRegistry] Replaced existing entry for {session_id}")
        logger.debug(f"[SessionRegistry] Added {session_id} (pid {session.process.pid})")

    def remove(self, session_id: str) -> Optional[Session]:
        """Detach a session and hand its process to the caller"""
        with self._lock:
            return self._sessions.pop(session_id, None)

    def is_running(self, session_id: str) -> bool:
        """Presence check only; the process may have exited since cleanup() last ran"""
        with self._lock:
            return session_id in self._sessions

    def cleanup(self) -> List[str]:
        """
        Drop sessions whose process has exited.

        Returns:
            Ids of the sessions removed
        """
        with self._lock:
            tracked = list(self._sessions.items())

        dead = [(session_id, session) for session_id, session in tracked if has_exited(session)]

        removed = []
        with self._lock:
            for session_id, session in dead:
                # Skip ids that were removed or re-added while we polled
                if self._sessions.get(session_id) is session:
                    del self._sessions[session_id]
                    removed.append(session_id)

        for session_id in removed:
            logger.info(f"[SessionRegistry] Cleaned up exited session {session_id}")
        return removed

    def stop_all(self) -> int:
        """
        Kill every tracked process. Kill failures are logged, never raised.

        Returns:
            Number of sessions drained
        """
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()

        for session in sessions:
            try:
                if not kill_process(session):
                    logger.error(f"[SessionRegistry] {session.session_id} still running after kill, no longer tracked")
            except OSError as e:
                logger.error(f"[SessionRegistry] Failed to kill {session.session_id}: {e}")

        if sessions:
            logger.info(f"[SessionRegistry] Stopped {len(sessions)} session(s)")
        return len(sessions)

    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def list_session_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions.keys())

    def describe(self, session_id: str) -> Optional[Tuple[str, datetime]]:
        """(device_id, started_at) for a tracked session"""
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            return None
        return session.device_id, session.started_at

    def snapshot(self) -> List[Session]:
        """Tracked sessions, oldest first"""
        with self._lock:
            sessions = list(self._sessions.values())
        return sorted(sessions, key=lambda s: s.started_at)
