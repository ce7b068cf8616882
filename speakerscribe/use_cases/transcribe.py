"""TranscribeAudioUseCase — runs one file through the full pipeline.

Accepts all ports via dependency injection. ``execute`` is blocking and is
meant to run on a worker thread; every observable change is handed to the
``on_stage`` / ``on_progress`` callbacks so the caller can marshal it back to
whatever context owns session state.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from speakerscribe.domain.errors import EngineUnavailable, ProcessingFailed, TranscriptionError
from speakerscribe.domain.models import (
    AudioBuffer, DiarizationInterval, TranscriptionResult,
)
from speakerscribe.domain.status import (
    PROGRESS_AUDIO_DECODED, PROGRESS_DIARIZED, PROGRESS_FILE_LOADED, PROGRESS_TRANSCRIBED,
    TranscriptionStatus,
)
from speakerscribe.ports.audio import AudioNormalizerPort
from speakerscribe.ports.diarization import DiarizationPort
from speakerscribe.ports.progress import ProgressPort
from speakerscribe.ports.transcription import RecognitionPort
from speakerscribe.use_cases.reconcile import SegmentReconciler

logger = logging.getLogger(__name__)

StageCallback = Callable[[TranscriptionStatus], None]
ProgressCallback = Callable[[float], None]


def fallback_intervals(buffer: AudioBuffer) -> list[DiarizationInterval]:
    """A single speaker-0 turn covering the whole buffer."""
    return [DiarizationInterval(start=0.0, end=buffer.duration, speaker=0)]


class TranscribeAudioUseCase:
    def __init__(
        self,
        recognition: RecognitionPort,
        diarization: Optional[DiarizationPort],
        audio: AudioNormalizerPort,
        progress: ProgressPort,
        reconciler: Optional[SegmentReconciler] = None,
    ):
        self._recognition = recognition
        self._diarization = diarization
        self._audio = audio
        self._progress = progress
        self._reconciler = reconciler or SegmentReconciler()

    def execute(
        self,
        audio_path: str,
        on_stage: Optional[StageCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> TranscriptionResult:
        job_id = uuid.uuid4().hex[:12]
        try:
            return self._execute(job_id, audio_path, on_stage, on_progress)
        except Exception as e:
            self._progress.report(job_id, TranscriptionStatus.FAILED.value, detail=str(e) or type(e).__name__)
            raise

    def _execute(
        self,
        job_id: str,
        audio_path: str,
        on_stage: Optional[StageCallback],
        on_progress: Optional[ProgressCallback],
    ) -> TranscriptionResult:
        def stage(status: TranscriptionStatus) -> None:
            self._progress.report(job_id, status.value)
            if on_stage:
                on_stage(status)

        def progress(value: float, status: TranscriptionStatus, detail: Optional[str] = None) -> None:
            self._progress.report(job_id, status.value, progress=value, detail=detail)
            if on_progress:
                on_progress(value)

        # 1. Probe and decode
        stage(TranscriptionStatus.LOADING_FILE)
        duration = self._audio.probe_duration(audio_path)
        progress(PROGRESS_FILE_LOADED, TranscriptionStatus.LOADING_FILE, f"{duration:.2f}s")
        buffer = self._audio.normalize(audio_path, sample_rate=self._reconciler.sample_rate)
        progress(PROGRESS_AUDIO_DECODED, TranscriptionStatus.LOADING_FILE, f"{len(buffer)} samples")

        # 2. Diarization
        stage(TranscriptionStatus.PROCESSING_DIARIZATION)
        intervals = self._diarize(buffer)
        progress(PROGRESS_DIARIZED, TranscriptionStatus.PROCESSING_DIARIZATION, f"{len(intervals)} turns")

        # 3. Per-turn recognition
        stage(TranscriptionStatus.PROCESSING_TRANSCRIPTION)
        total = len(intervals)

        def interval_progress(value: float) -> None:
            progress(value, TranscriptionStatus.PROCESSING_TRANSCRIPTION)

        segments = self._reconciler.reconcile(
            buffer.samples,
            intervals,
            lambda pcm: self._recognition.decode(pcm, buffer.sample_rate),
            on_progress=interval_progress if total else None,
        )
        progress(PROGRESS_TRANSCRIBED, TranscriptionStatus.PROCESSING_TRANSCRIPTION, f"{len(segments)} segments")

        # 4. Combine
        stage(TranscriptionStatus.COMBINING)
        result = TranscriptionResult(
            segments=segments,
            audio_file_name=buffer.file_name,
            audio_file_location=buffer.location,
            processing_date=datetime.now(timezone.utc),
            total_duration=buffer.source_duration,
            unique_speaker_count=len({seg.speaker_id for seg in segments}),
        )
        logger.info(
            f"[{job_id}] {result.audio_file_name}: {len(segments)} segments, "
            f"{result.unique_speaker_count} speakers, {result.total_duration:.2f}s"
        )
        return result

    def _diarize(self, buffer: AudioBuffer) -> list[DiarizationInterval]:
        if self._diarization is None or not self._diarization.is_loaded():
            logger.warning("Diarization engine unavailable, using a single speaker turn")
            return fallback_intervals(buffer)

        try:
            intervals = self._diarization.diarize(buffer.samples, buffer.sample_rate)
        except EngineUnavailable:
            logger.warning("Diarization engine unavailable, using a single speaker turn")
            return fallback_intervals(buffer)
        except TranscriptionError:
            raise
        except Exception as e:
            raise ProcessingFailed(f"Speaker diarization failed: {e}") from e

        logger.info(f"Diarization found {len(intervals)} turns, {len({i.speaker for i in intervals})} speakers")
        return intervals
