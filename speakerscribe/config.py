import os
import logging
from typing import Callable, Dict, Optional, Any
from pathlib import Path

from dotenv import load_dotenv

from speakerscribe.domain.models import DEFAULT_CLUSTERING_THRESHOLD

logger = logging.getLogger(__name__)

load_dotenv()

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8001
DEFAULT_MODEL_DIR = "/models/sherpa-onnx"
DEFAULT_SEGMENTATION_MODEL = "model.int8.onnx"
DEFAULT_EMBEDDING_MODEL = "nemo_en_titanet_large.onnx"


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, default))


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, default))


class Config:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        self.host = os.environ.get("HOST", DEFAULT_HOST)
        self.port = _env_int("PORT", DEFAULT_PORT)
        self.debug = os.environ.get("DEBUG", "0") == "1"
        self.model_dir = os.environ.get("MODEL_DIR", DEFAULT_MODEL_DIR)
        self.segmentation_model = os.environ.get(
            "SEGMENTATION_MODEL", os.path.join(self.model_dir, DEFAULT_SEGMENTATION_MODEL)
        )
        self.embedding_model = os.environ.get(
            "EMBEDDING_MODEL", os.path.join(self.model_dir, DEFAULT_EMBEDDING_MODEL)
        )
        self.provider = os.environ.get("PROVIDER", "cpu").lower()
        self.num_threads = _env_int("NUM_THREADS", 8)
        self.decoding_method = os.environ.get("DECODING_METHOD", "greedy_search")
        self.max_active_paths = _env_int("MAX_ACTIVE_PATHS", 4)
        self.min_duration_on = _env_float("MIN_DURATION_ON", 0.3)
        self.min_duration_off = _env_float("MIN_DURATION_OFF", 0.5)
        self.default_speaker_count = _env_int("DEFAULT_SPEAKER_COUNT", 0)
        self.default_clustering_threshold = _env_float("DEFAULT_CLUSTERING_THRESHOLD", DEFAULT_CLUSTERING_THRESHOLD)
        self.audio_backend = os.environ.get("AUDIO_BACKEND", "ffmpeg").lower()
        self.diarization_engine = os.environ.get("DIARIZATION_ENGINE", "sherpa").lower()
        self.hf_token = os.environ.get("HF_TOKEN") or os.environ.get("HUGGINGFACE_ACCESS_TOKEN")
        self.temp_dir = os.environ.get("TEMP_DIR", "/tmp/speakerscribe")
        Path(self.temp_dir).mkdir(parents=True, exist_ok=True)

    def reload(self) -> "Config":
        """Re-read the environment."""
        self._initialize()
        return self

    def as_dict(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "model_dir": self.model_dir,
            "segmentation_model": self.segmentation_model,
            "embedding_model": self.embedding_model,
            "provider": self.provider,
            "num_threads": self.num_threads,
            "decoding_method": self.decoding_method,
            "max_active_paths": self.max_active_paths,
            "min_duration_on": self.min_duration_on,
            "min_duration_off": self.min_duration_off,
            "default_speaker_count": self.default_speaker_count,
            "default_clustering_threshold": self.default_clustering_threshold,
            "audio_backend": self.audio_backend,
            "diarization_engine": self.diarization_engine,
            "has_hf_token": self.hf_token is not None,
        }


config = Config()


def get_config() -> Config:
    return config


def create_ml_adapters(cfg: Config):
    """Create the recognition adapter and a factory for diarization adapters.

    Diarization engines are rebuilt whenever clustering settings change, so
    the session gets a factory rather than an instance. Uses lazy imports so
    unused frameworks are never loaded.
    """
    from speakerscribe.adapters.sherpa.transcription import SherpaRecognitionAdapter

    recognition = SherpaRecognitionAdapter(
        decoding_method=cfg.decoding_method,
        max_active_paths=cfg.max_active_paths,
        num_threads=cfg.num_threads,
        provider=cfg.provider,
    )

    engine = cfg.diarization_engine
    diarization_factory: Optional[Callable]
    if engine == "sherpa":
        from speakerscribe.adapters.sherpa.diarization import SherpaDiarizationAdapter

        def diarization_factory():
            return SherpaDiarizationAdapter(
                segmentation_model=cfg.segmentation_model,
                embedding_model=cfg.embedding_model,
                num_threads=cfg.num_threads,
                provider=cfg.provider,
                min_duration_on=cfg.min_duration_on,
                min_duration_off=cfg.min_duration_off,
            )
    elif engine == "pyannote":
        from speakerscribe.adapters.pyannote.diarization import PyannoteDiarizationAdapter

        def diarization_factory():
            return PyannoteDiarizationAdapter(access_token=cfg.hf_token)
    elif engine == "none":
        diarization_factory = None
    else:
        raise ValueError(f"Unknown DIARIZATION_ENGINE: {engine!r}. Valid options: sherpa, pyannote, none")

    logger.info(f"ML adapters: transcription={type(recognition).__name__}, diarization={engine}")
    return recognition, diarization_factory


def create_audio_adapter(cfg: Config):
    """Create the audio normalization adapter."""
    backend = cfg.audio_backend
    if backend == "ffmpeg":
        from speakerscribe.adapters.ffmpeg.audio import FFmpegAudioAdapter
        return FFmpegAudioAdapter(temp_dir=cfg.temp_dir)
    if backend == "soundfile":
        from speakerscribe.adapters.libsndfile.audio import SoundfileAudioAdapter
        return SoundfileAudioAdapter()
    raise ValueError(f"Unknown AUDIO_BACKEND: {backend!r}. Valid options: ffmpeg, soundfile")
