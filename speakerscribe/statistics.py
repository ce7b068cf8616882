"""Speaker statistics for a finished transcription."""

from speakerscribe.domain.models import TranscriptionResult
from speakerscribe.models import SpeakerStatistics, Statistics


def compute_speaker_statistics(result: TranscriptionResult) -> Statistics:
    """Compute per-speaker talk time, share of talk time and word count.

    Speakers are keyed by id and labelled with their current display name.
    """
    speakers: dict[int, dict] = {}
    for seg in result.segments:
        entry = speakers.setdefault(seg.speaker_id, {"duration": 0.0, "word_count": 0, "segment_count": 0})
        entry["duration"] += seg.duration
        entry["word_count"] += len(seg.text.split())
        entry["segment_count"] += 1

    total_talk = sum(s["duration"] for s in speakers.values())

    stats = {}
    for speaker_id, data in sorted(speakers.items()):
        percentage = (data["duration"] / total_talk * 100) if total_talk > 0 else 0.0
        stats[speaker_id] = SpeakerStatistics(
            name=result.speaker_name(speaker_id),
            duration=round(data["duration"], 1),
            percentage=round(percentage, 1),
            word_count=data["word_count"],
            segment_count=data["segment_count"],
        )

    return Statistics(
        speakers=stats,
        total_speakers=result.unique_speaker_count,
        total_duration=result.total_duration,
        segment_count=len(result.segments),
    )
