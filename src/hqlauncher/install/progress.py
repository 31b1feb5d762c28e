"""
Progress reporting for the install and sync pipelines.

Pipelines write ordered, structured records to an injected ProgressSink:
any number of TaskProgress records followed by exactly one terminal
TaskFinished or TaskError.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from hqlauncher.log_utils import logger


@dataclass
class TaskProgress:
    """One progress record for a pipeline step."""

    version: int
    steps_total: int
    step: int
    step_name: str
    step_progress: float
    overall_percent: float
    detail: Optional[str] = None
    downloaded_bytes: Optional[int] = None
    total_bytes: Optional[int] = None
    extracted_files: Optional[int] = None
    total_files: Optional[int] = None


@dataclass
class TaskFinished:
    """Terminal success record carrying the installed path."""

    version: int
    path: str


@dataclass
class TaskError:
    """Terminal failure record."""

    version: int
    message: str


ProgressEvent = Union[TaskProgress, TaskFinished, TaskError]


def overall_from_step(step: int, step_progress: float, steps_total: int) -> float:
    """
    Map a step-local fraction onto the 0-100 overall scale.

    ``((clamp(step, 1, total) - 1) + clamp(step_progress, 0, 1)) / total * 100``
    """
    if steps_total <= 0:
        return 0.0
    s = min(max(step, 1), steps_total)
    sp = min(max(step_progress, 0.0), 1.0)
    return ((s - 1) + sp) / steps_total * 100.0


def fraction(done: int, total: int) -> float:
    """done/total clamped to [0, 1]; an empty total counts as complete."""
    if total <= 0:
        return 1.0
    return min(max(done / total, 0.0), 1.0)


def event_to_dict(event: ProgressEvent) -> Dict[str, Any]:
    """Serialize an event with its kind, e.g. for a UI bridge."""
    kinds = {TaskProgress: "progress", TaskFinished: "finished", TaskError: "error"}
    payload = asdict(event)
    payload["kind"] = kinds[type(event)]
    return payload


class ProgressSink(ABC):
    """Destination for pipeline events."""

    @abstractmethod
    def emit(self, event: ProgressEvent) -> None:
        """Deliver one event. Must not raise."""


class CallbackSink(ProgressSink):
    """Forwards every event to a plain callable."""

    def __init__(self, callback: Callable[[ProgressEvent], None]) -> None:
        self.callback = callback

    def emit(self, event: ProgressEvent) -> None:
        try:
            self.callback(event)
        except Exception as e:
            logger.debug(f"Progress callback error: {e}")


class RecordingSink(ProgressSink):
    """Keeps events in memory, in emission order."""

    def __init__(self) -> None:
        self.events: List[ProgressEvent] = []

    def emit(self, event: ProgressEvent) -> None:
        self.events.append(event)

    @property
    def progress(self) -> List[TaskProgress]:
        return [e for e in self.events if isinstance(e, TaskProgress)]

    @property
    def terminal(self) -> List[Union[TaskFinished, TaskError]]:
        return [e for e in self.events if isinstance(e, (TaskFinished, TaskError))]


class QueueSink(ProgressSink):
    """
    Channel-style sink backed by an asyncio.Queue.

    Consumers read events with ``await sink.queue.get()`` until they receive a
    TaskFinished or TaskError.
    """

    def __init__(self, queue: Optional["asyncio.Queue[ProgressEvent]"] = None) -> None:
        self.queue: "asyncio.Queue[ProgressEvent]" = queue or asyncio.Queue()

    def emit(self, event: ProgressEvent) -> None:
        self.queue.put_nowait(event)


class LoggingSink(ProgressSink):
    """Logs step transitions and terminal events."""

    def __init__(self) -> None:
        self._last_step: Optional[int] = None

    def emit(self, event: ProgressEvent) -> None:
        if isinstance(event, TaskProgress):
            if event.step != self._last_step:
                self._last_step = event.step
                logger.info(
                    f"[{event.step}/{event.steps_total}] {event.step_name} (v{event.version})"
                )
            elif event.detail:
                logger.debug(f"{event.step_name}: {event.detail}")
        elif isinstance(event, TaskFinished):
            logger.info(f"v{event.version} ready at {event.path}")
        else:
            logger.error(f"v{event.version} failed: {event.message}")


class StepReporter:
    """
    Builds records for one pipeline run and writes them to a sink.

    Guarantees at most one terminal event per run; later terminal calls are
    ignored and logged.

    Parameters:
        sink (ProgressSink): Destination for events.
        version (int): Game version the run targets.
        steps_total (int): Number of steps in the pipeline.
    """

    def __init__(self, sink: ProgressSink, version: int, steps_total: int) -> None:
        self.sink = sink
        self.version = version
        self.steps_total = steps_total
        self.terminated = False

    def progress(
        self,
        step: int,
        step_name: str,
        step_progress: float,
        detail: Optional[str] = None,
        overall_percent: Optional[float] = None,
        **fields: Any,
    ) -> None:
        step_progress = min(max(step_progress, 0.0), 1.0)
        if overall_percent is None:
            overall_percent = overall_from_step(step, step_progress, self.steps_total)
        self.sink.emit(
            TaskProgress(
                version=self.version,
                steps_total=self.steps_total,
                step=step,
                step_name=step_name,
                step_progress=step_progress,
                overall_percent=overall_percent,
                detail=detail,
                **fields,
            )
        )

    def threadsafe(
        self, loop: asyncio.AbstractEventLoop
    ) -> Callable[..., None]:
        """
        Return a `progress` variant callable from worker threads.

        Records are scheduled onto `loop`, so they reach the sink in order and on
        the event loop thread.
        """

        def _progress(*args: Any, **kwargs: Any) -> None:
            loop.call_soon_threadsafe(lambda: self.progress(*args, **kwargs))

        return _progress

    def finished(self, path: str) -> None:
        if self._claim_terminal():
            self.sink.emit(TaskFinished(version=self.version, path=path))

    def error(self, message: str) -> None:
        if self._claim_terminal():
            self.sink.emit(TaskError(version=self.version, message=message))

    def _claim_terminal(self) -> bool:
        if self.terminated:
            logger.warning(f"Ignoring extra terminal event for v{self.version}")
            return False
        self.terminated = True
        return True
