"""Domain <-> DTO mappers.

Converts between TranscriptionResult (domain) and TranscriptionDocument
(pydantic). The persisted schema stays independent of the dataclasses.
"""

import uuid
from urllib.parse import unquote, urlparse

from speakerscribe.domain.models import SpeakerSegment, TranscriptionResult
from speakerscribe.models import SegmentDocument, TranscriptionDocument


def location_to_path(location: str) -> str:
    """Accept either a filesystem path or a ``file://`` URL."""
    if location.startswith("file://"):
        return unquote(urlparse(location).path)
    return location


def segment_to_document(seg: SpeakerSegment) -> SegmentDocument:
    return SegmentDocument(
        id=seg.id,
        start_time=seg.start_time,
        end_time=seg.end_time,
        speaker_id=seg.speaker_id,
        text=seg.text,
    )


def document_to_segment(doc: SegmentDocument) -> SpeakerSegment:
    return SpeakerSegment(
        start_time=doc.start_time,
        end_time=max(doc.end_time, doc.start_time),
        speaker_id=doc.speaker_id,
        text=doc.text.strip(),
        id=doc.id or uuid.uuid4(),
    )


def result_to_document(result: TranscriptionResult) -> TranscriptionDocument:
    return TranscriptionDocument(
        segments=[segment_to_document(seg) for seg in result.segments],
        audio_file_name=result.audio_file_name,
        audio_file_url=result.audio_file_location,
        processing_date=result.processing_date,
        total_duration=result.total_duration,
        unique_speaker_count=result.unique_speaker_count,
        speaker_names=dict(result.speaker_names),
    )


def document_to_result(doc: TranscriptionDocument) -> TranscriptionResult:
    return TranscriptionResult(
        # Segments never carry empty text.
        segments=[document_to_segment(seg) for seg in doc.segments if seg.text.strip()],
        audio_file_name=doc.audio_file_name,
        audio_file_location=location_to_path(doc.audio_file_url),
        processing_date=doc.processing_date,
        total_duration=doc.total_duration,
        unique_speaker_count=doc.unique_speaker_count,
        speaker_names=dict(doc.speaker_names),
    )
