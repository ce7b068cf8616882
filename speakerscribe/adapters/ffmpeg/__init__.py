from .audio import FFmpegAudioAdapter

__all__ = ["FFmpegAudioAdapter"]
