"""Framework-agnostic domain models for SpeakerScribe.

Processing logic works on these dataclasses only. The pydantic documents in
``speakerscribe.models`` are the persisted / wire representation, with
mappers at the boundary.
"""

import math
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Optional

import numpy as np

SAMPLE_RATE = 16000
DEFAULT_CLUSTERING_THRESHOLD = 0.6


def format_timestamp(seconds: float) -> str:
    """Render seconds as ``MM:SS.CC`` (centiseconds truncated)."""
    centis = int(math.floor(seconds * 100 + 1e-6))
    minutes, centis = divmod(centis, 6000)
    secs, centis = divmod(centis, 100)
    return f"{minutes:02d}:{secs:02d}.{centis:02d}"


def parse_timestamp(value: str) -> Optional[float]:
    """Inverse of :func:`format_timestamp`. Returns None for malformed input."""
    parts = value.split(":")
    if len(parts) != 2:
        return None
    try:
        return int(parts[0]) * 60 + float(parts[1])
    except ValueError:
        return None


def default_speaker_name(speaker_id: int) -> str:
    return f"Speaker {speaker_id + 1}"


@dataclass(frozen=True)
class DiarizationInterval:
    """A speaker turn as emitted by the diarization engine.

    ``speaker`` is a dense per-run cluster id; it is not stable across runs.
    """
    start: float
    end: float
    speaker: int


@dataclass(frozen=True)
class SpeakerSegment:
    """A transcribed speaker turn. Text is never empty."""
    start_time: float
    end_time: float
    speaker_id: int
    text: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def time_range(self) -> str:
        return f"{format_timestamp(self.start_time)} - {format_timestamp(self.end_time)}"


@dataclass
class TranscriptionResult:
    """The outcome of one pipeline run, or of loading a saved transcript.

    ``unique_speaker_count`` is fixed at creation. Renaming a speaker only
    touches ``speaker_names``.
    """
    segments: list[SpeakerSegment]
    audio_file_name: str
    audio_file_location: str
    processing_date: datetime
    total_duration: float
    unique_speaker_count: int
    speaker_names: dict[int, str] = field(default_factory=dict)

    def speaker_name(self, speaker_id: int) -> str:
        return self.speaker_names.get(speaker_id) or default_speaker_name(speaker_id)

    def set_speaker_name(self, speaker_id: int, name: str) -> bool:
        """Upsert a trimmed display name in place. Blank names are ignored."""
        name = name.strip()
        if not name:
            return False
        self.speaker_names[speaker_id] = name
        return True

    def segment_at(self, seconds: float) -> Optional[SpeakerSegment]:
        """First segment whose [start, end] span contains ``seconds``."""
        for segment in self.segments:
            if segment.start_time <= seconds <= segment.end_time:
                return segment
        return None

    def with_audio_location(self, location: str) -> "TranscriptionResult":
        """Copy pointing at a different audio file; everything else carried over."""
        return replace(
            self,
            audio_file_name=Path(location).name,
            audio_file_location=location,
            segments=list(self.segments),
            speaker_names=dict(self.speaker_names),
        )

    @property
    def formatted_transcript(self) -> str:
        return "\n\n".join(
            f"[{seg.time_range}] {self.speaker_name(seg.speaker_id)}: {seg.text}"
            for seg in self.segments
        )


@dataclass(frozen=True)
class DiarizationSettings:
    """Parameters that require rebuilding the diarization engine when changed."""
    expected_speaker_count: int = 0
    clustering_threshold: float = DEFAULT_CLUSTERING_THRESHOLD

    def __post_init__(self):
        if self.expected_speaker_count < 0:
            raise ValueError(f"expected_speaker_count must be >= 0, got {self.expected_speaker_count}")
        if not 0.0 <= self.clustering_threshold <= 1.0:
            raise ValueError(f"clustering_threshold must be in [0, 1], got {self.clustering_threshold}")

    @property
    def num_clusters(self) -> int:
        """Cluster count for the engine; -1 lets it auto-detect."""
        return self.expected_speaker_count if self.expected_speaker_count > 0 else -1

    def describe(self) -> str:
        count = "auto-detect" if self.expected_speaker_count == 0 else str(self.expected_speaker_count)
        return f"speakers={count}, threshold={self.clustering_threshold}"


@dataclass(frozen=True)
class AudioBuffer:
    """Canonical PCM for one run: mono float32 at ``sample_rate``.

    The sample array is made read-only; slices share its memory.
    """
    samples: np.ndarray
    file_name: str
    location: str
    source_duration: float
    sample_rate: int = SAMPLE_RATE

    def __post_init__(self):
        self.samples.flags.writeable = False

    @property
    def duration(self) -> float:
        return len(self.samples) / self.sample_rate

    def __len__(self) -> int:
        return len(self.samples)
