from pathlib import Path
from typing import Optional

import numpy as np
import pytest

from speakerscribe.domain.models import (
    AudioBuffer, DiarizationInterval, DiarizationSettings, SAMPLE_RATE,
)
from speakerscribe.ports.audio import AudioNormalizerPort
from speakerscribe.ports.diarization import DiarizationPort
from speakerscribe.ports.progress import ProgressPort
from speakerscribe.ports.transcription import RecognitionPort
from speakerscribe.session import Session


class FakeRecognizer(RecognitionPort):
    """Returns queued texts in call order; queued exceptions are raised."""

    def __init__(self, texts=None, default: str = ""):
        self.texts = list(texts or [])
        self.default = default
        self.calls: list[int] = []
        self.loaded_from: Optional[str] = None
        self.closed = False

    def load(self, model_dir: str) -> None:
        self.loaded_from = model_dir

    def decode(self, samples: np.ndarray, sample_rate: int) -> str:
        self.calls.append(len(samples))
        item = self.texts.pop(0) if self.texts else self.default
        if isinstance(item, Exception):
            raise item
        return item

    def model_name(self) -> str:
        return "fake"

    def is_loaded(self) -> bool:
        return True

    def close(self) -> None:
        self.closed = True


class FakeDiarizer(DiarizationPort):
    def __init__(
        self,
        intervals=None,
        error: Optional[Exception] = None,
        loads: bool = True,
        load_error: Optional[Exception] = None,
    ):
        self.intervals = list(intervals or [])
        self.error = error
        self.loads = loads
        self.load_error = load_error
        self.settings: Optional[DiarizationSettings] = None
        self.closed = False

    def load(self, settings: DiarizationSettings) -> None:
        if self.load_error is not None:
            raise self.load_error
        if self.loads:
            self.settings = settings

    def diarize(self, samples: np.ndarray, sample_rate: int) -> list[DiarizationInterval]:
        if self.error is not None:
            raise self.error
        return list(self.intervals)

    def is_loaded(self) -> bool:
        return self.settings is not None

    def close(self) -> None:
        self.closed = True


class FakeAudio(AudioNormalizerPort):
    """Silence of a fixed length, or a configured failure."""

    def __init__(self, seconds: float = 20.0, error: Optional[Exception] = None):
        self.seconds = seconds
        self.error = error

    def probe_duration(self, input_path: str) -> float:
        if self.error is not None:
            raise self.error
        return self.seconds

    def normalize(self, input_path: str, sample_rate: int = SAMPLE_RATE) -> AudioBuffer:
        duration = self.probe_duration(input_path)
        return AudioBuffer(
            samples=np.zeros(int(duration * sample_rate), dtype=np.float32),
            file_name=Path(input_path).name,
            location=input_path,
            source_duration=duration,
            sample_rate=sample_rate,
        )


class RecordingProgress(ProgressPort):
    def __init__(self):
        self.reports: list[tuple[str, float]] = []

    def report(self, job_id, stage, progress=0.0, detail=None) -> None:
        self.reports.append((stage, progress))


class DiarizerFactory:
    """Counts engine builds; every build gets the same intervals."""

    def __init__(self, intervals=None, error: Optional[Exception] = None, load_error: Optional[Exception] = None):
        self.intervals = intervals or []
        self.error = error
        self.load_error = load_error
        self.built: list[FakeDiarizer] = []

    def __call__(self) -> FakeDiarizer:
        engine = FakeDiarizer(self.intervals, error=self.error, load_error=self.load_error)
        self.built.append(engine)
        return engine


TWO_SPEAKERS = [
    DiarizationInterval(start=0.0, end=10.0, speaker=0),
    DiarizationInterval(start=10.0, end=20.0, speaker=1),
]


@pytest.fixture
def make_session():
    sessions: list[Session] = []

    def _make(recognizer=None, factory=None, audio=None, progress=None) -> Session:
        session = Session(
            recognition=recognizer or FakeRecognizer(),
            diarization_factory=factory,
            audio=audio or FakeAudio(),
            progress=progress or RecordingProgress(),
        )
        sessions.append(session)
        return session

    yield _make
    for session in sessions:
        session._executor.shutdown(wait=True)
