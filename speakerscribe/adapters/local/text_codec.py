"""TextTranscriptCodec — the human-readable export and its recovery parser.

Each segment renders as ``[MM:SS.CC - MM:SS.CC] <name>: <text>``, separated
by blank lines. Parsing only recovers lines that still carry the default
``Speaker N`` label; anything else is skipped.
"""

import logging
import re
from datetime import datetime, timezone
from pathlib import Path

from speakerscribe.domain.errors import ProcessingFailed
from speakerscribe.domain.models import SpeakerSegment, TranscriptionResult, parse_timestamp
from speakerscribe.ports.persistence import TranscriptCodecPort

logger = logging.getLogger(__name__)

_LINE_PATTERN = re.compile(
    r"\[(\d{2,}:\d{2}\.\d{2}) - (\d{2,}:\d{2}\.\d{2})\] Speaker (\d+): (.+)"
)


def parse_text(content: str, source: str) -> TranscriptionResult:
    segments: list[SpeakerSegment] = []
    skipped = 0

    for line in content.splitlines():
        line = line.strip()
        if not line:
            continue

        match = _LINE_PATTERN.search(line)
        if not match:
            skipped += 1
            continue

        start = parse_timestamp(match.group(1))
        end = parse_timestamp(match.group(2))
        speaker_number = int(match.group(3))
        text = match.group(4).strip()
        if start is None or end is None or speaker_number < 1 or not text:
            skipped += 1
            continue

        segments.append(SpeakerSegment(
            start_time=start,
            end_time=max(end, start),
            speaker_id=speaker_number - 1,
            text=text,
        ))

    if not segments:
        raise ProcessingFailed("Failed to process audio: no transcript segments found")

    if skipped:
        logger.info(f"Text recovery skipped {skipped} unrecognized lines")

    return TranscriptionResult(
        segments=segments,
        audio_file_name=Path(source).stem,
        audio_file_location=source,
        processing_date=datetime.now(timezone.utc),
        total_duration=max(seg.end_time for seg in segments),
        unique_speaker_count=len({seg.speaker_id for seg in segments}),
    )


class TextTranscriptCodec(TranscriptCodecPort):
    name = "text"

    def encode(self, result: TranscriptionResult) -> bytes:
        return result.formatted_transcript.encode("utf-8")

    def decode(self, data: bytes, source: str) -> TranscriptionResult:
        content = data.decode("utf-8", errors="replace")
        result = parse_text(content, source)
        logger.info(f"Recovered {len(result.segments)} segments from text transcript {source}")
        return result
