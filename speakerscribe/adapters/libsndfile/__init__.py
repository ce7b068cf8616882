from .audio import SoundfileAudioAdapter

__all__ = ["SoundfileAudioAdapter"]
