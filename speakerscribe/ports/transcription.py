"""RecognitionPort — abstract interface for offline ASR engines."""

from abc import ABC, abstractmethod

import numpy as np


class RecognitionPort(ABC):
    @abstractmethod
    def load(self, model_dir: str) -> None:
        """Load the ASR model from ``model_dir``."""

    @abstractmethod
    def decode(self, samples: np.ndarray, sample_rate: int) -> str:
        """Decode one PCM slice to text (may be empty). Raises EngineUnavailable if not loaded."""

    @abstractmethod
    def model_name(self) -> str:
        """Return the human-readable model name."""

    @abstractmethod
    def is_loaded(self) -> bool:
        """Whether the model has been loaded and is ready for inference."""

    def close(self) -> None:
        """Release the model. Safe to call more than once."""
