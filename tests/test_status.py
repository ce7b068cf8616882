from datetime import datetime, timezone

import pytest

from speakerscribe.domain.models import TranscriptionResult
from speakerscribe.domain.status import PipelineState, TranscriptionStatus


def empty_result() -> TranscriptionResult:
    return TranscriptionResult(
        segments=[],
        audio_file_name="a.wav",
        audio_file_location="/a.wav",
        processing_date=datetime.now(timezone.utc),
        total_duration=1.0,
        unique_speaker_count=0,
    )


class TestTranscriptionStatus:
    def test_processing_flags(self):
        assert TranscriptionStatus.LOADING_FILE.is_processing
        assert TranscriptionStatus.COMBINING.is_processing
        assert not TranscriptionStatus.IDLE.is_processing
        assert not TranscriptionStatus.FAILED.is_processing
        assert TranscriptionStatus.COMPLETED.is_terminal


class TestPipelineState:
    @pytest.fixture
    def state(self):
        return PipelineState()

    def test_happy_path(self, state):
        snapshots = []
        state.subscribe(snapshots.append)

        state.begin()
        state.advance(TranscriptionStatus.PROCESSING_DIARIZATION)
        state.report_progress(0.5)
        state.advance(TranscriptionStatus.PROCESSING_TRANSCRIPTION)
        state.advance(TranscriptionStatus.COMBINING)
        state.complete(empty_result())

        assert state.status is TranscriptionStatus.COMPLETED
        assert state.progress == 1.0
        assert state.description == "Completed"
        assert [s.status for s in snapshots][0] is TranscriptionStatus.LOADING_FILE
        assert snapshots[-1].has_result

    def test_progress_never_decreases(self, state):
        state.begin()
        state.report_progress(0.6)
        state.report_progress(0.3)
        assert state.progress == 0.6
        state.report_progress(2.0)
        assert state.progress == 1.0

    def test_progress_ignored_outside_run(self, state):
        state.report_progress(0.4)
        assert state.progress == 0.0

    def test_fail_resets_progress_and_result(self, state):
        state.begin()
        state.report_progress(0.8)
        state.fail("boom")
        assert state.status is TranscriptionStatus.FAILED
        assert state.progress == 0.0
        assert state.result is None
        assert state.description == "Error: boom"

    def test_terminal_states_require_reset(self, state):
        state.begin()
        state.fail("boom")
        with pytest.raises(RuntimeError):
            state.begin()
        state.reset()
        state.begin()
        assert state.status is TranscriptionStatus.LOADING_FILE

    def test_stages_cannot_go_backwards(self, state):
        state.begin()
        state.advance(TranscriptionStatus.PROCESSING_TRANSCRIPTION)
        with pytest.raises(RuntimeError):
            state.advance(TranscriptionStatus.PROCESSING_DIARIZATION)

    def test_cannot_reset_or_load_mid_run(self, state):
        state.begin()
        with pytest.raises(RuntimeError):
            state.reset()
        with pytest.raises(RuntimeError):
            state.loaded(empty_result())

    def test_loaded_from_idle(self, state):
        state.loaded(empty_result())
        assert state.status is TranscriptionStatus.COMPLETED
        assert state.progress == 1.0

    def test_unsubscribe(self, state):
        seen = []
        unsubscribe = state.subscribe(seen.append)
        state.begin()
        unsubscribe()
        state.report_progress(0.3)
        assert len(seen) == 1
