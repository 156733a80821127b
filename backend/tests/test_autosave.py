"""
IDE Workspace — Autosave Scheduler Tests
=========================================

What:  Tests for debounced saving of content edits.
How:   Short delays and an AsyncMock save callback.

What we test:
    ✅ A burst of edits produces one save of the final snapshot
    ✅ flush() saves immediately and disarms the timer
    ✅ cancel() drops pending snapshots
    ✅ A failed autosave keeps the snapshot for the next flush
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from ide_workspace.schemas.project import FileEntry, Project
from ide_workspace.services.autosave import AutosaveScheduler


def snapshot(project: Project, contents: str) -> Project:
    return project.model_copy(update={"files": [FileEntry.file("main.py", contents)]})


class TestAutosaveScheduler:
    def setup_method(self):
        self.project = Project(name="demo", files=[FileEntry.file("main.py", "")])

    @pytest.mark.asyncio
    async def test_burst_of_edits_saves_once(self):
        save = AsyncMock()
        scheduler = AutosaveScheduler(save, delay=0.05)

        for text in ("p", "pr", "print(1)"):
            scheduler.schedule(snapshot(self.project, text))
        assert scheduler.pending(self.project.id).files[0].contents == "print(1)"

        await asyncio.sleep(0.2)
        save.assert_awaited_once()
        assert save.await_args.args[0].files[0].contents == "print(1)"
        assert scheduler.pending(self.project.id) is None

    @pytest.mark.asyncio
    async def test_flush_saves_now_and_disarms_timer(self):
        save = AsyncMock()
        scheduler = AutosaveScheduler(save, delay=0.05)
        scheduler.schedule(snapshot(self.project, "x = 1"))

        flushed = await scheduler.flush(self.project.id)
        assert [p.id for p in flushed] == [self.project.id]

        await asyncio.sleep(0.15)
        save.assert_awaited_once()
        assert scheduler.pending_ids == []

    @pytest.mark.asyncio
    async def test_flush_all(self):
        save = AsyncMock()
        scheduler = AutosaveScheduler(save, delay=10)
        other = Project(name="other", files=[FileEntry.file("main.py", "")])
        scheduler.schedule(snapshot(self.project, "a"))
        scheduler.schedule(snapshot(other, "b"))

        flushed = await scheduler.flush()
        assert {p.id for p in flushed} == {self.project.id, other.id}
        assert save.await_count == 2

    @pytest.mark.asyncio
    async def test_cancel_drops_snapshot(self):
        save = AsyncMock()
        scheduler = AutosaveScheduler(save, delay=0.05)
        scheduler.schedule(snapshot(self.project, "draft"))
        scheduler.cancel(self.project.id)

        await asyncio.sleep(0.15)
        save.assert_not_awaited()
        assert scheduler.pending(self.project.id) is None

    @pytest.mark.asyncio
    async def test_failed_autosave_keeps_snapshot(self):
        save = AsyncMock(side_effect=RuntimeError("disk full"))
        scheduler = AutosaveScheduler(save, delay=0.01)
        scheduler.schedule(snapshot(self.project, "keep me"))

        await asyncio.sleep(0.1)
        assert scheduler.pending(self.project.id).files[0].contents == "keep me"

        with pytest.raises(RuntimeError):
            await scheduler.flush(self.project.id)
