"""Sherpa-ONNX adapters: offline transducer ASR and speaker diarization."""

from .transcription import SherpaRecognitionAdapter
from .diarization import SherpaDiarizationAdapter

__all__ = ["SherpaRecognitionAdapter", "SherpaDiarizationAdapter"]
