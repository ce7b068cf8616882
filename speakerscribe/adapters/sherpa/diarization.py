"""SherpaDiarizationAdapter — pyannote segmentation + embedding + fast clustering in ONNX.

Clustering parameters are fixed at construction of the underlying engine, so
a change of speaker count or threshold means building a new adapter.
"""

import logging
from typing import Optional

import numpy as np

from speakerscribe.adapters.sherpa.models import verify_model_files
from speakerscribe.domain.errors import EngineUnavailable, ProcessingFailed
from speakerscribe.domain.models import DiarizationInterval, DiarizationSettings
from speakerscribe.ports.diarization import DiarizationPort

logger = logging.getLogger(__name__)


class SherpaDiarizationAdapter(DiarizationPort):
    def __init__(
        self,
        segmentation_model: str,
        embedding_model: str,
        num_threads: int = 8,
        provider: str = "cpu",
        min_duration_on: float = 0.3,
        min_duration_off: float = 0.5,
    ):
        self._segmentation_model = segmentation_model
        self._embedding_model = embedding_model
        self._num_threads = num_threads
        self._provider = provider
        self._min_duration_on = min_duration_on
        self._min_duration_off = min_duration_off
        self._engine = None
        self.settings: Optional[DiarizationSettings] = None

    def load(self, settings: DiarizationSettings) -> None:
        import sherpa_onnx

        verify_model_files("diarization", [self._segmentation_model, self._embedding_model])
        logger.info(f"Setting up speaker diarization ({settings.describe()}, provider={self._provider})")

        config = sherpa_onnx.OfflineSpeakerDiarizationConfig(
            segmentation=sherpa_onnx.OfflineSpeakerSegmentationModelConfig(
                pyannote=sherpa_onnx.OfflineSpeakerSegmentationPyannoteModelConfig(
                    model=self._segmentation_model,
                ),
                num_threads=self._num_threads,
                provider=self._provider,
            ),
            embedding=sherpa_onnx.SpeakerEmbeddingExtractorConfig(
                model=self._embedding_model,
                num_threads=self._num_threads,
                provider=self._provider,
            ),
            clustering=sherpa_onnx.FastClusteringConfig(
                num_clusters=settings.num_clusters,
                threshold=settings.clustering_threshold,
            ),
            min_duration_on=self._min_duration_on,
            min_duration_off=self._min_duration_off,
        )
        if not config.validate():
            raise ProcessingFailed("Invalid speaker diarization configuration")

        self._engine = sherpa_onnx.OfflineSpeakerDiarization(config)
        self.settings = settings
        logger.info("Speaker diarization initialized")

    def diarize(self, samples: np.ndarray, sample_rate: int) -> list[DiarizationInterval]:
        if self._engine is None:
            raise EngineUnavailable("Speaker diarization not available")
        if sample_rate != self._engine.sample_rate:
            raise ProcessingFailed(
                f"Diarization expects {self._engine.sample_rate}Hz audio, got {sample_rate}Hz"
            )

        result = self._engine.process(samples).sort_by_start_time()
        return [
            DiarizationInterval(start=float(r.start), end=float(r.end), speaker=int(r.speaker))
            for r in result
        ]

    def is_loaded(self) -> bool:
        return self._engine is not None

    def close(self) -> None:
        self._engine = None
