"""
Tests for progress records, sinks and the step reporter.
"""

import asyncio
import threading

import pytest

from hqlauncher.install.progress import (
    CallbackSink,
    LoggingSink,
    QueueSink,
    RecordingSink,
    StepReporter,
    TaskError,
    TaskFinished,
    TaskProgress,
    event_to_dict,
    fraction,
    overall_from_step,
)

pytestmark = [pytest.mark.unit]


class TestOverallFromStep:
    def test_endpoints(self):
        assert overall_from_step(1, 0.0, 5) == 0.0
        assert overall_from_step(5, 1.0, 5) == 100.0

    def test_monotonic_in_step_progress(self):
        values = [overall_from_step(3, sp / 10, 5) for sp in range(11)]
        assert values == sorted(values)

    def test_clamps_inputs(self):
        assert overall_from_step(0, -1.0, 2) == 0.0
        assert overall_from_step(9, 2.0, 2) == 100.0

    def test_midpoint(self):
        assert overall_from_step(2, 0.5, 2) == pytest.approx(75.0)

    def test_zero_steps(self):
        assert overall_from_step(1, 1.0, 0) == 0.0


def test_fraction():
    assert fraction(1, 4) == 0.25
    assert fraction(0, 0) == 1.0
    assert fraction(5, 4) == 1.0


def test_event_to_dict():
    payload = event_to_dict(TaskFinished(version=73, path="/x"))
    assert payload == {"version": 73, "path": "/x", "kind": "finished"}


class TestStepReporter:
    def test_progress_fills_overall(self):
        sink = RecordingSink()
        reporter = StepReporter(sink, 73, 5)

        reporter.progress(2, "Download Game", 0.5, detail="half", total_bytes=10)

        event = sink.events[0]
        assert isinstance(event, TaskProgress)
        assert event.overall_percent == pytest.approx(30.0)
        assert event.total_bytes == 10
        assert event.detail == "half"

    def test_clamps_step_progress(self):
        sink = RecordingSink()
        StepReporter(sink, 1, 2).progress(1, "x", 7.0)
        assert sink.progress[0].step_progress == 1.0

    def test_single_terminal_event(self):
        sink = RecordingSink()
        reporter = StepReporter(sink, 73, 5)

        reporter.error("boom")
        reporter.finished("/path")
        reporter.error("again")

        assert sink.terminal == [TaskError(version=73, message="boom")]
        assert reporter.terminated is True

    @pytest.mark.asyncio
    async def test_threadsafe_delivery_in_order(self):
        sink = RecordingSink()
        reporter = StepReporter(sink, 1, 1)
        loop = asyncio.get_running_loop()
        report = reporter.threadsafe(loop)
        seen_threads = []

        def _record(event):
            seen_threads.append(threading.get_ident())
            sink.emit(event)

        reporter.sink = CallbackSink(_record)

        def _worker():
            for i in range(5):
                report(1, "x", i / 4)

        await asyncio.to_thread(_worker)
        await asyncio.sleep(0)

        assert [e.step_progress for e in sink.progress] == [0.0, 0.25, 0.5, 0.75, 1.0]
        assert set(seen_threads) == {threading.get_ident()}


class TestSinks:
    def test_callback_sink_swallows_callback_errors(self):
        def _broken(_event):
            raise RuntimeError("ui gone")

        CallbackSink(_broken).emit(TaskFinished(version=1, path="/"))

    @pytest.mark.asyncio
    async def test_queue_sink(self):
        sink = QueueSink()
        sink.emit(TaskError(version=1, message="x"))
        event = await sink.queue.get()
        assert event.message == "x"

    def test_logging_sink(self, caplog):
        import logging

        from hqlauncher.log_utils import logger

        logger.addHandler(caplog.handler)
        try:
            with caplog.at_level(logging.INFO, logger="hqlauncher"):
                sink = LoggingSink()
                sink.emit(
                    TaskProgress(
                        version=73,
                        steps_total=5,
                        step=1,
                        step_name="Login Check",
                        step_progress=0.0,
                        overall_percent=0.0,
                    )
                )
                sink.emit(TaskFinished(version=73, path="/games/v73"))
        finally:
            logger.removeHandler(caplog.handler)

        assert "[1/5] Login Check (v73)" in caplog.text
        assert "v73 ready at /games/v73" in caplog.text
