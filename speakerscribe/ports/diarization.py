"""DiarizationPort — abstract interface for speaker diarization engines."""

from abc import ABC, abstractmethod

import numpy as np

from speakerscribe.domain.models import DiarizationInterval, DiarizationSettings


class DiarizationPort(ABC):
    @abstractmethod
    def load(self, settings: DiarizationSettings) -> None:
        """Build the engine for the given clustering settings."""

    @abstractmethod
    def diarize(self, samples: np.ndarray, sample_rate: int) -> list[DiarizationInterval]:
        """Return speaker turns in engine order. Raises EngineUnavailable if not loaded."""

    @abstractmethod
    def is_loaded(self) -> bool:
        """Whether the engine is built and ready."""

    def close(self) -> None:
        """Release the engine. Safe to call more than once."""
