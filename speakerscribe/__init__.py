"""SpeakerScribe — offline speaker-attributed transcription."""

__version__ = "0.1.0"
