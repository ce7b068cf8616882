"""SherpaRecognitionAdapter — offline NeMo transducer ASR, one stream per slice.

The reconciler hands over one diarization turn at a time, so each call
creates a fresh stream, feeds the whole slice and decodes it synchronously.
"""

import logging
import os

import numpy as np

from speakerscribe.adapters.sherpa.models import verify_model_files
from speakerscribe.domain.errors import EngineUnavailable, ProcessingFailed
from speakerscribe.ports.transcription import RecognitionPort

logger = logging.getLogger(__name__)

REQUIRED_FILES = ["encoder.int8.onnx", "decoder.int8.onnx", "joiner.int8.onnx", "tokens.txt"]

DEFAULT_MODEL_DIR = "/models/sherpa-onnx"

FEATURE_DIM = 80


class SherpaRecognitionAdapter(RecognitionPort):
    def __init__(
        self,
        decoding_method: str = "greedy_search",
        max_active_paths: int = 4,
        num_threads: int = 8,
        provider: str = "cpu",
        sample_rate: int = 16000,
    ):
        self._model_dir = DEFAULT_MODEL_DIR
        self._decoding_method = decoding_method
        self._max_active_paths = max_active_paths
        self._num_threads = num_threads
        self._provider = provider
        self._sample_rate = sample_rate
        self._recognizer = None

    def load(self, model_dir: str = DEFAULT_MODEL_DIR) -> None:
        import sherpa_onnx

        self._model_dir = model_dir
        paths = [os.path.join(model_dir, f) for f in REQUIRED_FILES]
        verify_model_files("asr", paths)
        encoder, decoder, joiner, tokens = paths

        logger.info(
            f"Loading Sherpa-ONNX ASR model (provider={self._provider}, "
            f"decoding={self._decoding_method}, max_active_paths={self._max_active_paths})..."
        )
        try:
            self._recognizer = sherpa_onnx.OfflineRecognizer.from_transducer(
                encoder=encoder,
                decoder=decoder,
                joiner=joiner,
                tokens=tokens,
                num_threads=self._num_threads,
                sample_rate=self._sample_rate,
                feature_dim=FEATURE_DIM,
                decoding_method=self._decoding_method,
                max_active_paths=self._max_active_paths,
                provider=self._provider,
                model_type="nemo_transducer",
            )
        except (RuntimeError, ValueError) as e:
            raise ProcessingFailed(f"Failed to load ASR model: {e}") from e
        logger.info(f"Sherpa recognition adapter ready: {self._model_dir}")

    def decode(self, samples: np.ndarray, sample_rate: int) -> str:
        if self._recognizer is None:
            raise EngineUnavailable()

        stream = self._recognizer.create_stream()
        stream.accept_waveform(sample_rate, samples)
        self._recognizer.decode_stream(stream)
        return stream.result.text

    def model_name(self) -> str:
        return "parakeet-tdt-0.6b-v2-int8"

    def is_loaded(self) -> bool:
        return self._recognizer is not None

    def close(self) -> None:
        self._recognizer = None
