from datetime import datetime, timedelta, timezone
from typing import List, Optional, Dict
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Reference date used by transcripts written by the macOS app (seconds since 2001-01-01).
APPLE_REFERENCE_DATE = datetime(2001, 1, 1, tzinfo=timezone.utc)


class SegmentDocument(BaseModel):
    """One persisted speaker segment."""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[UUID] = None
    start_time: float = Field(alias="startTime", ge=0)
    end_time: float = Field(alias="endTime", ge=0)
    speaker_id: int = Field(alias="speakerId", ge=0)
    text: str


class TranscriptionDocument(BaseModel):
    """Structured on-disk (and wire) form of a TranscriptionResult.

    ``speakerNames`` keys are integer speaker ids, written as JSON strings.
    """
    model_config = ConfigDict(populate_by_name=True)

    segments: List[SegmentDocument]
    audio_file_name: str = Field(alias="audioFileName")
    audio_file_url: str = Field(alias="audioFileURL")
    processing_date: datetime = Field(alias="processingDate")
    total_duration: float = Field(alias="totalDuration", ge=0)
    unique_speaker_count: int = Field(alias="uniqueSpeakerCount", ge=0)
    speaker_names: Dict[int, str] = Field(default_factory=dict, alias="speakerNames")

    @field_validator("processing_date", mode="before")
    @classmethod
    def _reference_date_seconds(cls, value):
        if isinstance(value, (int, float)):
            return APPLE_REFERENCE_DATE + timedelta(seconds=value)
        return value


class ProcessRequest(BaseModel):
    path: str
    expected_speaker_count: int = Field(0, ge=0)
    clustering_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)


class SpeakerNameRequest(BaseModel):
    name: str


class SaveRequest(BaseModel):
    path: str


class LoadRequest(BaseModel):
    path: str
    audio_path: Optional[str] = None


class StatusResponse(BaseModel):
    status: str
    description: str
    progress: float
    error: Optional[str] = None
    has_result: bool = False
    audio_available: Optional[bool] = None


class SpeakerStatistics(BaseModel):
    """Per-speaker talk time and word count."""
    name: str
    duration: float
    percentage: float
    word_count: int
    segment_count: int


class Statistics(BaseModel):
    """Aggregate speaker statistics for the transcription."""
    speakers: Dict[int, SpeakerStatistics]
    total_speakers: int
    total_duration: float
    segment_count: int
