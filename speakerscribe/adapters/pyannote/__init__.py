from .diarization import PyannoteDiarizationAdapter

__all__ = ["PyannoteDiarizationAdapter"]
