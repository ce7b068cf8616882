"""FFmpegAudioAdapter — audio preprocessing via ffmpeg (any container/codec ffmpeg reads)."""

import os
import logging
import tempfile
import subprocess
from typing import Optional

import soundfile

from speakerscribe.adapters.libsndfile.audio import SoundfileAudioAdapter, check_duration
from speakerscribe.domain.errors import InvalidAudioFile, ProcessingFailed
from speakerscribe.domain.models import AudioBuffer, SAMPLE_RATE

logger = logging.getLogger(__name__)


class FFmpegAudioAdapter(SoundfileAudioAdapter):
    def __init__(self, temp_dir: Optional[str] = None):
        self._temp_dir = temp_dir

    def probe_duration(self, input_path: str) -> float:
        cmd = [
            "ffprobe", "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            input_path,
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise ProcessingFailed("ffprobe is not installed") from e
        if result.returncode != 0:
            logger.error(f"Error probing audio: {result.stderr.strip()}")
            raise InvalidAudioFile(f"Invalid or corrupted audio file: {result.stderr.strip()}")

        try:
            duration = float(result.stdout.strip())
        except ValueError:
            duration = float("nan")
        return check_duration(duration, input_path)

    def convert_to_wav(self, input_path: str, sample_rate: int = SAMPLE_RATE) -> str:
        temp_file = tempfile.NamedTemporaryFile(suffix=".wav", delete=False, dir=self._temp_dir)
        temp_file.close()
        output_path = temp_file.name

        try:
            cmd = [
                "ffmpeg", "-y",
                "-i", input_path,
                "-c:a", "pcm_f32le",
                "-ar", str(sample_rate),
                "-ac", "1",
                output_path,
            ]
            try:
                result = subprocess.run(cmd, capture_output=True, text=True)
            except FileNotFoundError as e:
                raise ProcessingFailed("ffmpeg is not installed") from e
            if result.returncode != 0:
                logger.error(f"Error converting audio: {result.stderr}")
                raise ProcessingFailed(f"Failed to convert audio: {result.stderr.strip()}")
            return output_path

        except Exception:
            if os.path.exists(output_path):
                os.unlink(output_path)
            raise

    def normalize(self, input_path: str, sample_rate: int = SAMPLE_RATE) -> AudioBuffer:
        duration = self.probe_duration(input_path)
        wav_file = self.convert_to_wav(input_path, sample_rate)
        try:
            audio, rate = soundfile.read(wav_file, dtype="float32", always_2d=True)
            return self.to_buffer(audio, rate, input_path, duration, sample_rate)
        except (RuntimeError, OSError) as e:
            raise ProcessingFailed(f"Failed to read converted audio: {e}") from e
        finally:
            if os.path.exists(wav_file):
                os.unlink(wav_file)
