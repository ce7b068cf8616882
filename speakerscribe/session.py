"""Session — owns the engines, the run state and the one live result.

Blocking work (model loading, decoding, inference, file I/O) runs on the
session's worker pool. Status, progress and result are only written on the
event loop that drives the session; worker threads post their updates back
with ``call_soon_threadsafe``.

Callers must not run ``process`` concurrently with itself on one session.
This is not enforced beyond the state machine refusing to start a run that
is not preceded by ``reset()``.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import Callable, Optional, Sequence

from speakerscribe.adapters.local.json_codec import JsonTranscriptCodec
from speakerscribe.adapters.local.log_progress import LogProgressAdapter
from speakerscribe.adapters.local.text_codec import TextTranscriptCodec
from speakerscribe.domain.errors import ProcessingFailed, TranscriptionError
from speakerscribe.domain.models import (
    DEFAULT_CLUSTERING_THRESHOLD, DiarizationSettings, TranscriptionResult,
)
from speakerscribe.domain.status import PipelineState, TranscriptionStatus
from speakerscribe.ports.audio import AudioNormalizerPort
from speakerscribe.ports.diarization import DiarizationPort
from speakerscribe.ports.persistence import TranscriptCodecPort
from speakerscribe.ports.progress import ProgressPort
from speakerscribe.ports.transcription import RecognitionPort
from speakerscribe.use_cases.transcribe import TranscribeAudioUseCase

logger = logging.getLogger(__name__)

DiarizationFactory = Callable[[], DiarizationPort]


class Session:
    def __init__(
        self,
        recognition: RecognitionPort,
        diarization_factory: Optional[DiarizationFactory],
        audio: AudioNormalizerPort,
        progress: Optional[ProgressPort] = None,
        codecs: Optional[Sequence[TranscriptCodecPort]] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.state = PipelineState()
        self._recognition = recognition
        self._diarization_factory = diarization_factory
        self._audio = audio
        self._progress = progress or LogProgressAdapter()
        # Load order: structured first, text recovery second.
        self._codecs = list(codecs) if codecs else [JsonTranscriptCodec(), TextTranscriptCodec()]
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="speakerscribe")

        self._diarization: Optional[DiarizationPort] = None
        self._applied: Optional[DiarizationSettings] = None
        self._rebuild: Optional[tuple[DiarizationSettings, asyncio.Future]] = None
        self.rebuild_count = 0

    @property
    def result(self) -> Optional[TranscriptionResult]:
        return self.state.result

    @property
    def status(self) -> TranscriptionStatus:
        return self.state.status

    @property
    def progress(self) -> float:
        return self.state.progress

    @property
    def applied_settings(self) -> Optional[DiarizationSettings]:
        return self._applied

    @property
    def diarization_engine(self) -> Optional[DiarizationPort]:
        return self._diarization

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, partial(func, *args))

    # --- lifecycle -------------------------------------------------------

    async def start(self, model_dir: str, settings: Optional[DiarizationSettings] = None) -> None:
        """Load the recognizer and build the first diarization engine.

        A recognizer failure propagates. A diarization failure is logged and
        leaves the session on the single-speaker fallback.
        """
        await self._run(self._recognition.load, model_dir)
        await self.reconfigure(settings or DiarizationSettings())

    async def close(self) -> None:
        if self._rebuild is not None:
            await asyncio.wait([self._rebuild[1]])
        if self._diarization is not None:
            self._diarization.close()
            self._diarization = None
        self._recognition.close()
        self._executor.shutdown(wait=False)

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # --- diarization engine ----------------------------------------------

    async def reconfigure(self, settings: DiarizationSettings) -> bool:
        """Make ``settings`` the live diarization configuration.

        Returns True if a rebuild ran. Identical settings reuse the current
        engine. A rebuild already running for the same settings is joined; one
        for other settings is waited out first. An engine that fails to build
        leaves the single-speaker fallback in place until the settings change.
        """
        while self._rebuild is not None:
            target, task = self._rebuild
            if target == settings:
                await task
                return False
            await asyncio.wait([task])

        if settings == self._applied:
            return False

        task = asyncio.ensure_future(self._rebuild_engine(settings))
        self._rebuild = (settings, task)
        try:
            await task
        finally:
            if self._rebuild is not None and self._rebuild[1] is task:
                self._rebuild = None
        return True

    async def _rebuild_engine(self, settings: DiarizationSettings) -> None:
        if self._diarization_factory is None:
            logger.info("No diarization engine configured; using single-speaker fallback")
            self._applied = settings
            return

        logger.info(f"Rebuilding diarization engine ({settings.describe()})")
        engine = None
        try:
            engine = self._diarization_factory()
            await self._run(engine.load, settings)
        except Exception as e:
            logger.error(f"Speaker diarization unavailable, using single-speaker fallback: {e}")
            if engine is not None:
                engine.close()
            engine = None

        previous, self._diarization = self._diarization, engine
        self._applied = settings
        if engine is not None:
            self.rebuild_count += 1
        if previous is not None:
            previous.close()

    # --- runs ------------------------------------------------------------

    async def process(
        self,
        file_path: str,
        expected_speaker_count: int = 0,
        clustering_threshold: float = DEFAULT_CLUSTERING_THRESHOLD,
    ) -> TranscriptionResult:
        """Transcribe ``file_path``. The session must be idle.

        On failure the status becomes failed with the error message, the
        progress drops to 0, and the error is re-raised.
        """
        self.state.begin()
        loop = asyncio.get_running_loop()

        def on_stage(status: TranscriptionStatus) -> None:
            loop.call_soon_threadsafe(self.state.advance, status)

        def on_progress(value: float) -> None:
            loop.call_soon_threadsafe(self.state.report_progress, value)

        try:
            settings = DiarizationSettings(expected_speaker_count, clustering_threshold)
            await self.reconfigure(settings)
            use_case = TranscribeAudioUseCase(
                recognition=self._recognition,
                diarization=self._diarization,
                audio=self._audio,
                progress=self._progress,
            )
            result = await self._run(use_case.execute, file_path, on_stage, on_progress)
        except TranscriptionError as e:
            logger.error(f"Transcription of {file_path} failed: {e.message}")
            self.state.fail(e.message)
            raise
        except Exception as e:
            logger.error(f"Transcription of {file_path} failed: {e}", exc_info=True)
            self.state.fail(str(e) or type(e).__name__)
            raise

        self.state.complete(result)
        return result

    def reset(self) -> None:
        self.state.reset()

    # --- result editing --------------------------------------------------

    def set_speaker_name(self, speaker_id: int, name: str) -> bool:
        """Rename a speaker on the current result. Blank names are ignored."""
        result = self.state.result
        if result is None or not result.set_speaker_name(speaker_id, name):
            return False
        self.state.touch()
        return True

    def export_text(self) -> Optional[str]:
        result = self.state.result
        return result.formatted_transcript if result is not None else None

    def relocate_audio(self, audio_path: str) -> TranscriptionResult:
        """Point the current result at a different audio file."""
        result = self.state.result
        if result is None:
            raise ProcessingFailed("No transcription loaded")
        location = str(Path(audio_path).resolve())
        if result.audio_file_location != location:
            result = result.with_audio_location(location)
            self.state.replace_result(result)
        return result

    def audio_available(self) -> bool:
        """Whether the current result's audio location still resolves."""
        result = self.state.result
        return result is not None and Path(result.audio_file_location).is_file()

    # --- persistence -----------------------------------------------------

    async def save(self, destination: str, fmt: str = "json") -> None:
        result = self.state.result
        if result is None:
            raise ProcessingFailed("No transcription to save")
        codec = next((c for c in self._codecs if c.name == fmt), None)
        if codec is None:
            raise ValueError(f"Unknown transcript format: {fmt!r}")

        data = codec.encode(result)
        try:
            await self._run(Path(destination).write_bytes, data)
        except OSError as e:
            raise ProcessingFailed(f"Failed to save transcript: {e}") from e
        logger.info(f"Saved {fmt} transcript to {destination}")

    async def load(self, source: str) -> TranscriptionResult:
        """Load a saved transcript, trying each codec in priority order."""
        try:
            data = await self._run(Path(source).read_bytes)
        except OSError as e:
            raise ProcessingFailed(f"Failed to read transcript: {e}") from e

        errors = []
        for codec in self._codecs:
            try:
                result = codec.decode(data, source)
            except ProcessingFailed as e:
                logger.info(f"{codec.name} codec rejected {source}: {e.message}")
                errors.append(e)
                continue
            self.state.loaded(result)
            return result

        raise ProcessingFailed(f"Failed to load transcript {source}: {errors[-1].message}") from errors[-1]

    async def load_with_audio(self, audio_path: str, transcript_path: str) -> TranscriptionResult:
        """Load a transcript and attach it to ``audio_path``."""
        await self.load(transcript_path)
        return self.relocate_audio(audio_path)
