"""PyannoteDiarizationAdapter — wraps Pyannote 3.1 for speaker diarization.

Alternative to the sherpa engine when a HuggingFace token and PyTorch are
available. Load failures are logged and leave the adapter unloaded, which
makes the pipeline fall back to a single speaker turn.
"""

import os
import logging
from typing import Optional

import numpy as np

from speakerscribe.domain.errors import EngineUnavailable
from speakerscribe.domain.models import DiarizationInterval, DiarizationSettings
from speakerscribe.ports.diarization import DiarizationPort

logger = logging.getLogger(__name__)

PIPELINE_ID = "pyannote/speaker-diarization-3.1"


class PyannoteDiarizationAdapter(DiarizationPort):
    def __init__(self, access_token: Optional[str] = None, device: str = "cuda"):
        self._access_token = access_token
        self._device = device
        self._pipeline = None
        self.settings: Optional[DiarizationSettings] = None

    def load(self, settings: DiarizationSettings) -> None:
        try:
            import torch
            from pyannote.audio import Pipeline

            token = self._access_token or os.environ.get("HF_TOKEN") or os.environ.get("HUGGINGFACE_ACCESS_TOKEN")
            if not token:
                logger.error("No HuggingFace token available. Diarization disabled.")
                return

            pipeline = Pipeline.from_pretrained(PIPELINE_ID, use_auth_token=token)
            params = pipeline.parameters(instantiated=True)
            params["clustering"]["threshold"] = settings.clustering_threshold
            pipeline.instantiate(params)

            actual_device = self._device if self._device == "cuda" and torch.cuda.is_available() else "cpu"
            pipeline.to(torch.device(actual_device))
            self._pipeline = pipeline
            self.settings = settings
            logger.info(f"Diarization pipeline initialized on {actual_device} ({settings.describe()})")

        except ImportError:
            logger.error("pyannote.audio not installed")
        except Exception as e:
            logger.error(f"Failed to init diarization: {e}")

    def diarize(self, samples: np.ndarray, sample_rate: int) -> list[DiarizationInterval]:
        if self._pipeline is None:
            raise EngineUnavailable("Speaker diarization not available")

        import torch

        waveform = torch.from_numpy(np.array(samples, dtype=np.float32)).unsqueeze(0)
        num_speakers = self.settings.expected_speaker_count or None
        diarization = self._pipeline(
            {"waveform": waveform, "sample_rate": sample_rate},
            num_speakers=num_speakers,
        )

        turns = list(diarization.itertracks(yield_label=True))
        # Labels such as "SPEAKER_01" become dense integer ids in label order.
        speaker_ids = {label: i for i, label in enumerate(sorted({label for _, _, label in turns}))}
        return [
            DiarizationInterval(start=float(turn.start), end=float(turn.end), speaker=speaker_ids[label])
            for turn, _, label in turns
        ]

    def is_loaded(self) -> bool:
        return self._pipeline is not None

    def close(self) -> None:
        self._pipeline = None
