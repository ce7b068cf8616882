"""SoundfileAudioAdapter — decode via libsndfile, downmix and resample with numpy.

Handles the formats libsndfile reads natively (WAV, FLAC, OGG, and MP3 on
recent builds). The FFmpeg adapter reuses the buffer checks for everything else.
"""

import logging
import math
from pathlib import Path

import numpy as np
import soundfile

from speakerscribe.domain.errors import InvalidAudioFile, ProcessingFailed
from speakerscribe.domain.models import AudioBuffer, SAMPLE_RATE
from speakerscribe.ports.audio import AudioNormalizerPort

logger = logging.getLogger(__name__)

# Decoded audio may fall short of the declared duration by this much before
# it is treated as a truncated decode. Smaller shortfalls are logged.
TRUNCATION_TOLERANCE_SECONDS = 0.5


def check_duration(duration: float, input_path: str) -> float:
    if duration is None or math.isnan(duration) or duration <= 0:
        raise InvalidAudioFile(f"Invalid or corrupted audio file: {Path(input_path).name} has no usable duration")
    return duration


class SoundfileAudioAdapter(AudioNormalizerPort):
    def probe_duration(self, input_path: str) -> float:
        try:
            info = soundfile.info(input_path)
        except (RuntimeError, OSError) as e:
            raise InvalidAudioFile(f"Invalid or corrupted audio file: {e}") from e
        duration = info.frames / info.samplerate if info.samplerate else float("nan")
        return check_duration(duration, input_path)

    def normalize(self, input_path: str, sample_rate: int = SAMPLE_RATE) -> AudioBuffer:
        duration = self.probe_duration(input_path)
        try:
            audio, rate = soundfile.read(input_path, dtype="float32", always_2d=True)
        except (RuntimeError, OSError) as e:
            raise ProcessingFailed(f"Failed to decode audio: {e}") from e
        return self.to_buffer(audio, rate, input_path, duration, sample_rate)

    def to_buffer(
        self,
        audio: np.ndarray,
        rate: int,
        input_path: str,
        duration: float,
        sample_rate: int = SAMPLE_RATE,
    ) -> AudioBuffer:
        """Downmix, verify coverage and resample decoded frames."""
        if audio.ndim > 1:
            audio = audio.mean(axis=1)

        if len(audio) == 0:
            raise ProcessingFailed("Failed to process audio: decoder returned no frames")

        decoded = len(audio) / rate
        if decoded + TRUNCATION_TOLERANCE_SECONDS < duration:
            raise ProcessingFailed(
                f"Failed to process audio: decoder stopped at {decoded:.2f}s of {duration:.2f}s"
            )
        if decoded < duration:
            logger.warning(
                f"Decoded {decoded:.3f}s of {duration:.3f}s declared for {Path(input_path).name}; "
                f"the last {duration - decoded:.3f}s is missing"
            )

        if rate != sample_rate:
            # ceil(frames * sample_rate / rate) without float rounding
            target_len = -(-len(audio) * sample_rate // rate)
            logger.info(f"Resampling {rate}Hz -> {sample_rate}Hz ({len(audio)} -> {target_len} frames)")
            indices = np.linspace(0, len(audio) - 1, target_len)
            audio = np.interp(indices, np.arange(len(audio)), audio)

        samples = np.ascontiguousarray(audio, dtype=np.float32)
        logger.info(f"Audio normalized: {Path(input_path).name}, {len(samples) / sample_rate:.2f}s @ {sample_rate}Hz")
        return AudioBuffer(
            samples=samples,
            file_name=Path(input_path).name,
            location=str(Path(input_path).resolve()),
            source_duration=duration,
            sample_rate=sample_rate,
        )
