import asyncio

import pytest

from conftest import (
    TWO_SPEAKERS, DiarizerFactory, FakeAudio, FakeDiarizer, FakeRecognizer, RecordingProgress,
)
from speakerscribe.domain.errors import InvalidAudioFile, ProcessingFailed
from speakerscribe.domain.models import DiarizationInterval, DiarizationSettings
from speakerscribe.domain.status import TranscriptionStatus


class TestProcess:
    @pytest.mark.asyncio
    async def test_silent_second_speaker_is_dropped(self, make_session):
        session = make_session(
            recognizer=FakeRecognizer(["hello", ""]),
            factory=DiarizerFactory(TWO_SPEAKERS),
        )
        result = await session.process("/audio/call.wav")

        assert len(result.segments) == 1
        seg = result.segments[0]
        assert (seg.start_time, seg.end_time, seg.speaker_id, seg.text) == (0.0, 10.0, 0, "hello")
        assert result.unique_speaker_count == 1
        assert result.audio_file_name == "call.wav"
        assert result.total_duration == 20.0
        assert session.status is TranscriptionStatus.COMPLETED
        assert session.progress == 1.0
        assert session.result is result

    @pytest.mark.asyncio
    async def test_no_diarization_engine_falls_back_to_one_segment(self, make_session):
        recognizer = FakeRecognizer(["everything"])
        session = make_session(recognizer=recognizer, factory=None)
        result = await session.process("/audio/solo.wav")

        assert len(result.segments) == 1
        seg = result.segments[0]
        assert (seg.start_time, seg.end_time, seg.speaker_id) == (0.0, 20.0, 0)
        assert recognizer.calls == [20 * 16000]

    @pytest.mark.asyncio
    async def test_unloaded_engine_falls_back(self, make_session):
        session = make_session(
            recognizer=FakeRecognizer(["x"]),
            factory=lambda: FakeDiarizer(TWO_SPEAKERS, loads=False),
        )
        result = await session.process("/audio/a.wav")
        assert [(s.start_time, s.end_time) for s in result.segments] == [(0.0, 20.0)]

    @pytest.mark.asyncio
    async def test_progress_never_decreases(self, make_session):
        intervals = [DiarizationInterval(float(i), float(i + 1), i % 2) for i in range(10)]
        session = make_session(
            recognizer=FakeRecognizer(default="word"),
            factory=DiarizerFactory(intervals),
        )
        seen = []
        session.state.subscribe(lambda snap: seen.append((snap.status, snap.progress)))

        await session.process("/audio/a.wav")

        values = [p for _, p in seen]
        assert values == sorted(values)
        assert values[-1] == 1.0
        statuses = [s for s, _ in seen]
        assert TranscriptionStatus.PROCESSING_DIARIZATION in statuses
        assert TranscriptionStatus.COMBINING in statuses

    @pytest.mark.asyncio
    async def test_progress_port_receives_stages(self, make_session):
        progress = RecordingProgress()
        session = make_session(factory=DiarizerFactory(TWO_SPEAKERS), progress=progress)
        await session.process("/audio/a.wav")
        stages = [stage for stage, _ in progress.reports]
        assert stages[0] == "loading_file"
        assert "combining" in stages

    @pytest.mark.asyncio
    async def test_audio_failure_marks_failed(self, make_session):
        session = make_session(audio=FakeAudio(error=InvalidAudioFile()))
        with pytest.raises(InvalidAudioFile):
            await session.process("/audio/broken.wav")

        assert session.status is TranscriptionStatus.FAILED
        assert session.state.error == "Invalid or corrupted audio file"
        assert session.progress == 0.0
        assert session.result is None

    @pytest.mark.asyncio
    async def test_diarization_failure_aborts_run(self, make_session):
        session = make_session(factory=DiarizerFactory(error=RuntimeError("onnx exploded")))
        with pytest.raises(ProcessingFailed, match="onnx exploded"):
            await session.process("/audio/a.wav")
        assert session.status is TranscriptionStatus.FAILED
        assert "onnx exploded" in session.state.description

    @pytest.mark.asyncio
    async def test_recognition_errors_are_absorbed(self, make_session):
        session = make_session(
            recognizer=FakeRecognizer([RuntimeError("decoder"), "second"]),
            factory=DiarizerFactory(TWO_SPEAKERS),
        )
        result = await session.process("/audio/a.wav")
        assert [s.text for s in result.segments] == ["second"]
        assert session.status is TranscriptionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_second_run_requires_reset(self, make_session):
        session = make_session(recognizer=FakeRecognizer(default="x"))
        await session.process("/audio/a.wav")
        with pytest.raises(RuntimeError, match="reset"):
            await session.process("/audio/b.wav")

        session.reset()
        assert session.status is TranscriptionStatus.IDLE
        assert session.result is None
        result = await session.process("/audio/b.wav")
        assert result.audio_file_name == "b.wav"

    @pytest.mark.asyncio
    async def test_invalid_threshold_fails_run(self, make_session):
        session = make_session()
        with pytest.raises(ValueError):
            await session.process("/audio/a.wav", clustering_threshold=3.0)
        assert session.status is TranscriptionStatus.FAILED


class TestReconfigure:
    @pytest.mark.asyncio
    async def test_same_settings_reuse_engine(self, make_session):
        factory = DiarizerFactory(TWO_SPEAKERS)
        session = make_session(factory=factory)

        assert await session.reconfigure(DiarizationSettings(0, 0.6))
        engine = session.diarization_engine
        assert not await session.reconfigure(DiarizationSettings(0, 0.6))

        assert len(factory.built) == 1
        assert session.diarization_engine is engine
        assert session.rebuild_count == 1

    @pytest.mark.asyncio
    async def test_changed_settings_rebuild_once(self, make_session):
        factory = DiarizerFactory(TWO_SPEAKERS)
        session = make_session(factory=factory)
        await session.reconfigure(DiarizationSettings(0, 0.6))
        old = session.diarization_engine

        assert await session.reconfigure(DiarizationSettings(3, 0.6))
        assert len(factory.built) == 2
        assert session.diarization_engine is not old
        assert old.closed
        assert session.diarization_engine.settings.num_clusters == 3

    @pytest.mark.asyncio
    async def test_concurrent_identical_requests_build_once(self, make_session):
        factory = DiarizerFactory(TWO_SPEAKERS)
        session = make_session(factory=factory)
        settings = DiarizationSettings(2, 0.5)

        await asyncio.gather(session.reconfigure(settings), session.reconfigure(settings))
        assert len(factory.built) == 1
        assert session.applied_settings == settings

    @pytest.mark.asyncio
    async def test_concurrent_different_requests_apply_last(self, make_session):
        factory = DiarizerFactory(TWO_SPEAKERS)
        session = make_session(factory=factory)
        first, second = DiarizationSettings(2, 0.5), DiarizationSettings(4, 0.5)

        await asyncio.gather(session.reconfigure(first), session.reconfigure(second))
        assert len(factory.built) == 2
        assert session.applied_settings == second
        assert factory.built[0].closed

    @pytest.mark.asyncio
    async def test_process_rebuilds_only_on_change(self, make_session):
        factory = DiarizerFactory(TWO_SPEAKERS)
        session = make_session(recognizer=FakeRecognizer(default="x"), factory=factory)

        await session.process("/a.wav", 2, 0.7)
        session.reset()
        await session.process("/b.wav", 2, 0.7)
        assert len(factory.built) == 1

        session.reset()
        await session.process("/c.wav", 2, 0.75)
        assert len(factory.built) == 2

    @pytest.mark.asyncio
    async def test_start_loads_recognizer_and_engine(self, make_session):
        recognizer = FakeRecognizer()
        factory = DiarizerFactory(TWO_SPEAKERS)
        session = make_session(recognizer=recognizer, factory=factory)

        await session.start("/models", DiarizationSettings(0, 0.7))
        assert recognizer.loaded_from == "/models"
        assert session.applied_settings == DiarizationSettings(0, 0.7)

    @pytest.mark.asyncio
    async def test_engine_that_fails_to_build_falls_back(self, make_session):
        factory = DiarizerFactory(TWO_SPEAKERS, load_error=FileNotFoundError("Missing diarization model files"))
        session = make_session(recognizer=FakeRecognizer(default="everything"), factory=factory)

        await session.start("/models", DiarizationSettings(0, 0.6))
        assert session.diarization_engine is None
        assert factory.built[0].closed

        result = await session.process("/audio/a.wav")
        assert [(s.start_time, s.end_time, s.speaker_id) for s in result.segments] == [(0.0, 20.0, 0)]
        assert session.status is TranscriptionStatus.COMPLETED
        assert len(factory.built) == 1
        assert session.rebuild_count == 0

    @pytest.mark.asyncio
    async def test_failed_build_drops_previous_engine(self, make_session):
        factory = DiarizerFactory(TWO_SPEAKERS)
        session = make_session(recognizer=FakeRecognizer(default="x"), factory=factory)
        await session.reconfigure(DiarizationSettings(2, 0.6))
        old = session.diarization_engine

        factory.load_error = RuntimeError("onnxruntime could not allocate")
        await session.process("/audio/a.wav", 3, 0.6)

        assert old.closed
        assert session.diarization_engine is None
        assert [s.speaker_id for s in session.result.segments] == [0]

    @pytest.mark.asyncio
    async def test_close_releases_engines(self, make_session):
        recognizer = FakeRecognizer()
        factory = DiarizerFactory(TWO_SPEAKERS)
        async with make_session(recognizer=recognizer, factory=factory) as session:
            await session.reconfigure(DiarizationSettings())
        assert factory.built[0].closed
        assert recognizer.closed


class TestEditing:
    @pytest.mark.asyncio
    async def test_set_speaker_name(self, make_session):
        session = make_session(
            recognizer=FakeRecognizer(["hello", "there"]),
            factory=DiarizerFactory(TWO_SPEAKERS),
        )
        await session.process("/audio/a.wav")

        assert session.set_speaker_name(1, "  Alice  ")
        assert session.result.speaker_names == {1: "Alice"}
        assert not session.set_speaker_name(1, "")
        assert session.result.speaker_names == {1: "Alice"}
        assert session.result.unique_speaker_count == 2

    def test_set_speaker_name_without_result(self, make_session):
        session = make_session()
        assert not session.set_speaker_name(0, "Alice")
        assert session.export_text() is None

    @pytest.mark.asyncio
    async def test_export_text(self, make_session):
        session = make_session(
            recognizer=FakeRecognizer(["hello", "there"]),
            factory=DiarizerFactory(TWO_SPEAKERS),
        )
        await session.process("/audio/a.wav")
        session.set_speaker_name(0, "Alice")
        assert session.export_text() == (
            "[00:00.00 - 00:10.00] Alice: hello\n\n"
            "[00:10.00 - 00:20.00] Speaker 2: there"
        )


class TestPersistence:
    async def _finished(self, make_session):
        session = make_session(
            recognizer=FakeRecognizer(["hello", "there"]),
            factory=DiarizerFactory(TWO_SPEAKERS),
        )
        await session.process("/audio/a.wav")
        return session

    @pytest.mark.asyncio
    async def test_save_and_load_json(self, make_session, tmp_path):
        session = await self._finished(make_session)
        session.set_speaker_name(0, "Alice")
        target = tmp_path / "t.json"
        await session.save(str(target))

        other = make_session()
        loaded = await other.load(str(target))
        assert loaded.segments == session.result.segments
        assert loaded.speaker_names == {0: "Alice"}
        assert other.status is TranscriptionStatus.COMPLETED
        assert other.progress == 1.0

    @pytest.mark.asyncio
    async def test_load_falls_back_to_text(self, make_session, tmp_path):
        session = await self._finished(make_session)
        target = tmp_path / "t.txt"
        await session.save(str(target), fmt="text")

        other = make_session()
        loaded = await other.load(str(target))
        assert [(s.speaker_id, s.text) for s in loaded.segments] == [(0, "hello"), (1, "there")]
        assert loaded.unique_speaker_count == 2
        assert loaded.total_duration == 20.0

    @pytest.mark.asyncio
    async def test_load_garbage_fails_and_keeps_state(self, make_session, tmp_path):
        target = tmp_path / "junk.txt"
        target.write_text("just some notes\nwith no segments\n")
        session = make_session()
        with pytest.raises(ProcessingFailed):
            await session.load(str(target))
        assert session.status is TranscriptionStatus.IDLE
        assert session.result is None

    @pytest.mark.asyncio
    async def test_load_missing_file(self, make_session, tmp_path):
        with pytest.raises(ProcessingFailed):
            await make_session().load(str(tmp_path / "nope.json"))

    @pytest.mark.asyncio
    async def test_save_without_result(self, make_session, tmp_path):
        with pytest.raises(ProcessingFailed):
            await make_session().save(str(tmp_path / "t.json"))

    @pytest.mark.asyncio
    async def test_save_unknown_format(self, make_session, tmp_path):
        session = await self._finished(make_session)
        with pytest.raises(ValueError):
            await session.save(str(tmp_path / "t.srt"), fmt="srt")

    @pytest.mark.asyncio
    async def test_load_with_audio_relocates(self, make_session, tmp_path):
        session = await self._finished(make_session)
        session.set_speaker_name(1, "Bob")
        target = tmp_path / "t.json"
        await session.save(str(target))
        audio = tmp_path / "moved.wav"
        audio.write_bytes(b"")

        other = make_session()
        assert other.status is TranscriptionStatus.IDLE
        result = await other.load_with_audio(str(audio), str(target))

        assert result.audio_file_location == str(audio.resolve())
        assert result.audio_file_name == "moved.wav"
        assert result.speaker_names == {1: "Bob"}
        assert result.segments == session.result.segments
        assert other.audio_available()

    @pytest.mark.asyncio
    async def test_audio_available_when_path_is_gone(self, make_session, tmp_path):
        session = await self._finished(make_session)
        assert not session.audio_available()
