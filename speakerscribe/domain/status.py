"""Run status and the state machine that owns observable session state.

All writes go through the transition methods of :class:`PipelineState`.
It is not thread-safe: the session calls it only from the event loop that
owns it, and background work posts updates there.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from speakerscribe.domain.models import TranscriptionResult

logger = logging.getLogger(__name__)

PROGRESS_FILE_LOADED = 0.1
PROGRESS_AUDIO_DECODED = 0.2
PROGRESS_DIARIZED = 0.5
PROGRESS_TRANSCRIBED = 0.9


class TranscriptionStatus(str, Enum):
    IDLE = "idle"
    LOADING_FILE = "loading_file"
    PROCESSING_DIARIZATION = "processing_diarization"
    PROCESSING_TRANSCRIPTION = "processing_transcription"
    COMBINING = "combining"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_processing(self) -> bool:
        return self in _STAGES

    @property
    def is_terminal(self) -> bool:
        return self in (TranscriptionStatus.COMPLETED, TranscriptionStatus.FAILED)


_STAGES = (
    TranscriptionStatus.LOADING_FILE,
    TranscriptionStatus.PROCESSING_DIARIZATION,
    TranscriptionStatus.PROCESSING_TRANSCRIPTION,
    TranscriptionStatus.COMBINING,
)

_DESCRIPTIONS = {
    TranscriptionStatus.IDLE: "Ready",
    TranscriptionStatus.LOADING_FILE: "Loading audio file...",
    TranscriptionStatus.PROCESSING_DIARIZATION: "Identifying speakers...",
    TranscriptionStatus.PROCESSING_TRANSCRIPTION: "Transcribing speech...",
    TranscriptionStatus.COMBINING: "Combining results...",
    TranscriptionStatus.COMPLETED: "Completed",
}


@dataclass(frozen=True)
class StateSnapshot:
    """Immutable view of the state handed to observers."""
    status: TranscriptionStatus
    progress: float
    error: Optional[str]
    description: str
    has_result: bool


Observer = Callable[[StateSnapshot], None]


class PipelineState:
    def __init__(self):
        self.status = TranscriptionStatus.IDLE
        self.progress = 0.0
        self.error: Optional[str] = None
        self.result: Optional[TranscriptionResult] = None
        self._observers: list[Observer] = []

    @property
    def description(self) -> str:
        if self.status is TranscriptionStatus.FAILED:
            return f"Error: {self.error}"
        return _DESCRIPTIONS[self.status]

    def snapshot(self) -> StateSnapshot:
        return StateSnapshot(
            status=self.status,
            progress=self.progress,
            error=self.error,
            description=self.description,
            has_result=self.result is not None,
        )

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer; returns a callable that unregisters it."""
        self._observers.append(observer)
        return lambda: self._observers.remove(observer)

    def _publish(self) -> None:
        snapshot = self.snapshot()
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception:
                logger.exception("State observer failed")

    # --- transitions -----------------------------------------------------

    def begin(self) -> None:
        if self.status is not TranscriptionStatus.IDLE:
            raise RuntimeError(f"Cannot start a run from {self.status.value!r}; reset first")
        self.status = TranscriptionStatus.LOADING_FILE
        self.progress = 0.0
        self.error = None
        self._publish()

    def advance(self, status: TranscriptionStatus) -> None:
        if not self.status.is_processing or not status.is_processing:
            raise RuntimeError(f"Illegal transition {self.status.value!r} -> {status.value!r}")
        if _STAGES.index(status) < _STAGES.index(self.status):
            raise RuntimeError(f"Stage cannot move backwards: {self.status.value!r} -> {status.value!r}")
        self.status = status
        self._publish()

    def report_progress(self, value: float) -> None:
        """Raise progress during a run. Lower values are ignored."""
        if not self.status.is_processing:
            return
        value = min(max(value, 0.0), 1.0)
        if value > self.progress:
            self.progress = value
            self._publish()

    def complete(self, result: TranscriptionResult) -> None:
        if not self.status.is_processing:
            raise RuntimeError(f"Cannot complete from {self.status.value!r}")
        self.status = TranscriptionStatus.COMPLETED
        self.result = result
        self.progress = 1.0
        self._publish()

    def fail(self, message: str) -> None:
        if self.status.is_terminal:
            raise RuntimeError(f"Cannot fail from terminal state {self.status.value!r}")
        self.status = TranscriptionStatus.FAILED
        self.error = message
        self.result = None
        self.progress = 0.0
        self._publish()

    def loaded(self, result: TranscriptionResult) -> None:
        """A saved transcript replaced the current result."""
        if self.status.is_processing:
            raise RuntimeError("Cannot load a transcript while a run is in progress")
        self.status = TranscriptionStatus.COMPLETED
        self.error = None
        self.result = result
        self.progress = 1.0
        self._publish()

    def replace_result(self, result: TranscriptionResult) -> None:
        if self.result is None:
            raise RuntimeError("No result to replace")
        self.result = result
        self._publish()

    def touch(self) -> None:
        """Notify observers after an in-place mutation of the result."""
        self._publish()

    def reset(self) -> None:
        if self.status.is_processing:
            raise RuntimeError("Cannot reset while a run is in progress")
        self.status = TranscriptionStatus.IDLE
        self.result = None
        self.error = None
        self.progress = 0.0
        self._publish()
