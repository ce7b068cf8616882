"""SegmentReconciler — joins diarization turns with per-turn recognition.

Each diarization interval is cut out of the shared PCM buffer and decoded on
its own. Intervals that decode to nothing are dropped, so the output can be
shorter than the input but keeps its order.
"""

import logging
from typing import Callable, Optional, Sequence

import numpy as np

from speakerscribe.domain.models import DiarizationInterval, SpeakerSegment, SAMPLE_RATE
from speakerscribe.domain.status import PROGRESS_DIARIZED, PROGRESS_TRANSCRIBED

logger = logging.getLogger(__name__)

Recognizer = Callable[[np.ndarray], str]
ProgressCallback = Callable[[float], None]


def sample_range(interval: DiarizationInterval, sample_rate: int, total_samples: int) -> tuple[int, int]:
    """Half-open sample range for an interval, clamped to the buffer."""
    start = max(int(round(interval.start * sample_rate)), 0)
    end = min(int(round(interval.end * sample_rate)), total_samples)
    return start, end


class SegmentReconciler:
    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        progress_floor: float = PROGRESS_DIARIZED,
        progress_ceiling: float = PROGRESS_TRANSCRIBED,
    ):
        if not 0.0 <= progress_floor <= progress_ceiling <= 1.0:
            raise ValueError("progress range must satisfy 0 <= floor <= ceiling <= 1")
        self.sample_rate = sample_rate
        self.progress_floor = progress_floor
        self.progress_ceiling = progress_ceiling

    def reconcile(
        self,
        samples: np.ndarray,
        intervals: Sequence[DiarizationInterval],
        recognize: Recognizer,
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[SpeakerSegment]:
        total = len(intervals)
        segments: list[SpeakerSegment] = []
        skipped = dropped = 0

        for index, interval in enumerate(intervals):
            text = self._transcribe_interval(samples, interval, recognize)
            if text is None:
                skipped += 1
            elif not text:
                dropped += 1
            else:
                segments.append(SpeakerSegment(
                    start_time=float(interval.start),
                    end_time=float(interval.end),
                    speaker_id=int(interval.speaker),
                    text=text,
                ))

            if on_progress is not None:
                span = self.progress_ceiling - self.progress_floor
                on_progress(self.progress_floor + span * (index + 1) / total)

        logger.info(
            f"Reconciled {total} intervals into {len(segments)} segments "
            f"({skipped} degenerate, {dropped} without speech)"
        )
        return segments

    def _transcribe_interval(
        self,
        samples: np.ndarray,
        interval: DiarizationInterval,
        recognize: Recognizer,
    ) -> Optional[str]:
        """Trimmed text for one interval, "" if nothing usable, None if degenerate."""
        start, end = sample_range(interval, self.sample_rate, len(samples))
        if start >= end:
            logger.debug(f"Skipping empty interval {interval.start:.2f}-{interval.end:.2f}s")
            return None

        try:
            text = recognize(samples[start:end])
        except Exception as e:
            logger.warning(
                f"Recognition failed for {interval.start:.2f}-{interval.end:.2f}s "
                f"(speaker {interval.speaker}): {e}"
            )
            return ""

        text = (text or "").strip()
        if not text:
            logger.debug(f"No speech in {interval.start:.2f}-{interval.end:.2f}s")
        return text
