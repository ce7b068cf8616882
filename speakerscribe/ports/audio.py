"""AudioNormalizerPort — abstract interface for audio decoding and resampling."""

from abc import ABC, abstractmethod

from speakerscribe.domain.models import AudioBuffer, SAMPLE_RATE


class AudioNormalizerPort(ABC):
    @abstractmethod
    def probe_duration(self, input_path: str) -> float:
        """Declared duration in seconds. Raises InvalidAudioFile if missing, zero or NaN."""

    @abstractmethod
    def normalize(self, input_path: str, sample_rate: int = SAMPLE_RATE) -> AudioBuffer:
        """Decode any supported file to mono float32 PCM at ``sample_rate``.

        Raises InvalidAudioFile for an unusable duration and ProcessingFailed
        when decoding or resampling fails or stops short.
        """
