"""
Scrcpy Deck - Mirror Manager

Starts and stops scrcpy sessions. Process spawn, kill and wait are blocking and
run on the bridge executor; the registry lock is never held across them.
"""

import asyncio
import functools
import logging
from concurrent.futures import Executor
from typing import List, Optional

from device_models import MirrorSession, ScrcpyOptions, SessionStatus
from scrcpy_launcher import ScrcpyLauncher
from session_registry import Session, SessionRegistry, kill_process, make_session_id
from utils.error_handler import ProcessSpawnError, SessionNotFoundError

logger = logging.getLogger(__name__)


class MirrorManager:
    """Session lifecycle on top of ScrcpyLauncher and SessionRegistry"""

    def __init__(
        self,
        launcher: ScrcpyLauncher,
        registry: SessionRegistry,
        executor: Optional[Executor] = None,
    ):
        self.launcher = launcher
        self.registry = registry
        self._executor = executor

    async def _blocking(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    async def start_mirroring(self, device_id: str, options: Optional[ScrcpyOptions] = None) -> str:
        """
        Launch scrcpy for a device and track it.

        The spawn keeps running in the worker even if the caller is cancelled;
        a process started that way is still registered.

        Returns:
            The new session id
        """
        opts = options or ScrcpyOptions()
        loop = asyncio.get_running_loop()
        spawn = loop.run_in_executor(self._executor, self.launcher.spawn, device_id, opts)

        try:
            process = await asyncio.shield(spawn)
        except asyncio.CancelledError:
            spawn.add_done_callback(functools.partial(self._track_orphan, device_id))
            raise

        return self._track(device_id, process)

    def _track(self, device_id: str, process) -> str:
        session_id = make_session_id(device_id, process.pid)
        self.registry.add(session_id, Session(session_id=session_id, device_id=device_id, process=process))
        logger.info(f"[MirrorManager] Started {session_id}")
        return session_id

    def _track_orphan(self, device_id: str, spawn: asyncio.Future) -> None:
        if spawn.cancelled() or spawn.exception() is not None:
            return
        session_id = self._track(device_id, spawn.result())
        logger.warning(f"[MirrorManager] Start of {session_id} was cancelled after spawn, session kept")

    async def stop_mirroring(self, session_id: str) -> bool:
        """
        Stop one session.

        The session is detached first. If the kill fails for any reason other
        than the process already being gone, it goes back into the registry so
        the still-running process stays tracked, and the error is raised.

        Raises:
            SessionNotFoundError: session is not tracked
            ProcessSpawnError: kill failed; session is tracked again
        """
        session = self.registry.remove(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        try:
            reaped = await self._blocking(kill_process, session)
        except OSError as e:
            self.registry.add(session_id, session)
            logger.error(f"[MirrorManager] Failed to stop {session_id}, still tracked: {e}")
            raise ProcessSpawnError(f"Failed to stop session {session_id}: {e}", session.device_id) from e

        if not reaped:
            self.registry.add(session_id, session)
            logger.error(f"[MirrorManager] {session_id} did not exit after kill, still tracked")
            raise ProcessSpawnError(f"Session {session_id} did not exit after kill", session.device_id)

        logger.info(f"[MirrorManager] Stopped {session_id}")
        return True

    async def get_active_sessions(self) -> List[MirrorSession]:
        """Sessions still running, after dropping the ones whose process exited"""
        await self._blocking(self.registry.cleanup)
        return [
            MirrorSession(
                session_id=session.session_id,
                device_id=session.device_id,
                status=SessionStatus.RUNNING,
                started_at=session.started_at.isoformat(),
            )
            for session in self.registry.snapshot()
        ]

    async def scrcpy_version(self) -> str:
        """`scrcpy --version`, run on the bridge executor"""
        return await self._blocking(self.launcher.get_version)

    async def shutdown(self) -> int:
        """Kill every tracked scrcpy process"""
        count = await self._blocking(self.registry.stop_all)
        logger.info(f"[MirrorManager] Shutdown stopped {count} session(s)")
        return count
