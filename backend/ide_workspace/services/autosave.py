"""
IDE Workspace — Debounced Autosave
===================================

What:  Holds the latest unsaved snapshot of each project and writes it to the
       ProjectStore once edits have paused for `autosave_delay_seconds`.
How:   One asyncio timer task per project. Each schedule() replaces the
       pending snapshot and restarts the timer, so a burst of keystrokes
       produces a single save of the final state.
Who:   WorkspaceService schedules after content edits and flushes before
       structural edits, syncs, and at shutdown.

The pending snapshot is the authoritative in-memory table: reads go through
`pending()` first, so a push always sends what the editor last showed rather
than the store's last write.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from ide_workspace.config import settings
from ide_workspace.schemas.project import Project

logger = logging.getLogger(__name__)

SaveCallback = Callable[[Project], Awaitable[object]]


class AutosaveScheduler:
    def __init__(self, save: SaveCallback, delay: Optional[float] = None):
        self._save = save
        self.delay = settings.autosave_delay_seconds if delay is None else delay
        self._pending: Dict[str, Project] = {}
        self._timers: Dict[str, asyncio.Task] = {}

    def pending(self, project_id: str) -> Optional[Project]:
        return self._pending.get(project_id)

    @property
    def pending_ids(self) -> List[str]:
        return list(self._pending)

    def schedule(self, project: Project) -> None:
        """Remember `project` as the latest snapshot and restart its timer."""
        self._pending[project.id] = project
        timer = self._timers.pop(project.id, None)
        if timer is not None:
            timer.cancel()
        self._timers[project.id] = asyncio.get_running_loop().create_task(
            self._fire(project.id)
        )

    async def _fire(self, project_id: str) -> None:
        await asyncio.sleep(self.delay)
        if self._timers.get(project_id) is asyncio.current_task():
            del self._timers[project_id]
        project = self._pending.pop(project_id, None)
        if project is None:
            return
        try:
            await self._save(project)
            logger.debug("Autosaved project %s", project_id)
        except Exception:
            # Keep the snapshot so the next flush retries it
            self._pending.setdefault(project_id, project)
            logger.error("Autosave failed for project %s", project_id, exc_info=True)

    async def flush(self, project_id: Optional[str] = None) -> List[Project]:
        """
        Saves pending snapshots now (one project, or all of them).

        Errors from the save callback propagate to the caller.
        """
        ids = [project_id] if project_id is not None else list(self._pending)
        saved = []
        for pid in ids:
            timer = self._timers.pop(pid, None)
            if timer is not None:
                timer.cancel()
            project = self._pending.pop(pid, None)
            if project is None:
                continue
            await self._save(project)
            saved.append(project)
        if saved:
            logger.info("Flushed %d pending autosave(s)", len(saved))
        return saved

    def cancel(self, project_id: Optional[str] = None) -> None:
        """Drops pending snapshots without saving them."""
        ids = [project_id] if project_id is not None else list(self._timers)
        for pid in ids:
            timer = self._timers.pop(pid, None)
            if timer is not None:
                timer.cancel()
        if project_id is None:
            self._pending.clear()
        else:
            self._pending.pop(project_id, None)
