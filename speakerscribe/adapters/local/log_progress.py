"""LogProgressAdapter — writes pipeline progress to the log.

Stage changes are logged at INFO. Per-turn recognition progress is chatty on
long recordings, so it goes to DEBUG unless it carries a detail message.
"""

import logging
import time
from typing import Dict, Optional, Tuple

from speakerscribe.ports.progress import ProgressPort

logger = logging.getLogger(__name__)

# Last stage a job reports, on success or failure.
_FINAL_STAGES = ("combining", "failed")


class LogProgressAdapter(ProgressPort):
    def __init__(self):
        # job_id -> (stage, monotonic time the stage was entered)
        self._stages: Dict[str, Tuple[str, float]] = {}

    def report(
        self,
        job_id: str,
        stage: str,
        progress: float = 0.0,
        detail: Optional[str] = None,
    ) -> None:
        now = time.monotonic()
        previous = self._stages.get(job_id)
        if previous is None or previous[0] != stage:
            if previous is not None:
                logger.info(f"[{job_id}] {previous[0]} took {now - previous[1]:.2f}s")
            self._stages[job_id] = (stage, now)

        msg = f"[{job_id}] {stage} {progress:.0%}"
        if detail:
            msg += f": {detail}"
        if stage == "failed":
            level = logging.WARNING
        else:
            level = logging.INFO if detail or progress == 0 else logging.DEBUG
        logger.log(level, msg)

        if stage in _FINAL_STAGES:
            self._stages.pop(job_id, None)
