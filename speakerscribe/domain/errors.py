"""Error taxonomy shared by adapters, use cases and the session."""

from typing import Optional


class TranscriptionError(Exception):
    """Base class for pipeline errors. ``message`` is shown to the user."""

    default_message = "Transcription failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidAudioFile(TranscriptionError):
    """Source is unreadable, corrupt, or has no usable duration."""

    default_message = "Invalid or corrupted audio file"


class ProcessingFailed(TranscriptionError):
    """Decode, conversion, diarization or persistence failure."""

    default_message = "Failed to process audio"


class EngineUnavailable(TranscriptionError):
    """An inference engine was used before it was initialized."""

    default_message = "Speech recognizer not available"
