"""TranscriptCodecPort — one on-disk representation of a TranscriptionResult."""

from abc import ABC, abstractmethod

from speakerscribe.domain.models import TranscriptionResult


class TranscriptCodecPort(ABC):
    name: str = ""

    @abstractmethod
    def encode(self, result: TranscriptionResult) -> bytes:
        """Serialize a result."""

    @abstractmethod
    def decode(self, data: bytes, source: str) -> TranscriptionResult:
        """Parse ``data`` read from ``source``. Raises ProcessingFailed on failure."""
