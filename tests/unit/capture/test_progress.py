"""Tests for the batch progress collections."""

import threading

import pytest

from batch_capture.capture.progress import CaptureUnitIndex, CompletedScreenshots, JobRegistry
from batch_capture.enums import JobState
from batch_capture.models.domain import BrowserProfile, CaptureUnit, Job, Screenshot

CHROME = BrowserProfile(os="Windows", os_version="10", browser_name="chrome", browser_version="49.0")


class TestJobRegistry:
    def test_add_and_get_case_insensitive(self):
        registry = JobRegistry()
        registry.add(Job(id="ABC"))

        assert registry.get("abc").id == "ABC"
        assert "aBc" in registry
        assert len(registry) == 1

    def test_add_twice_raises(self):
        registry = JobRegistry()
        registry.add(Job(id="a"))
        with pytest.raises(KeyError):
            registry.add(Job(id="A"))

    def test_replace_keeps_position_and_returns_previous(self):
        registry = JobRegistry()
        registry.add(Job(id="a"))
        registry.add(Job(id="b"))

        previous = registry.replace(Job(id="a", state=JobState.DONE))

        assert previous.state == JobState.PENDING
        assert [(j.id, j.state) for j in registry.snapshot()] == [
            ("a", JobState.DONE),
            ("b", JobState.PENDING),
        ]

    def test_replace_unknown_raises(self):
        with pytest.raises(KeyError):
            JobRegistry().replace(Job(id="missing"))

    def test_snapshot_is_a_copy(self):
        registry = JobRegistry()
        registry.add(Job(id="a"))

        snapshot = registry.snapshot()
        registry.clear()

        assert len(snapshot) == 1
        assert len(registry) == 0


class TestCompletedScreenshots:
    def test_concurrent_appends_are_all_kept(self):
        completed = CompletedScreenshots()

        def worker(offset: int) -> None:
            for i in range(100):
                completed.append(Screenshot(id=f"{offset}-{i}", browser=CHROME))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(completed) == 400
        assert len({s.id for s in completed.snapshot()}) == 400


class TestCaptureUnitIndex:
    def test_register_once(self):
        index = CaptureUnitIndex()
        unit = CaptureUnit(url="https://example.com/", browsers=(CHROME,))

        index.register("Job-1", unit)

        assert index.get("job-1") is unit
        with pytest.raises(KeyError):
            index.register("job-1", unit)
