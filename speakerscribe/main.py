import os
import logging
import uvicorn

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

if os.environ.get("DEBUG", "0") == "1":
    logging.getLogger().setLevel(logging.DEBUG)

from speakerscribe import __version__
from speakerscribe.api import create_app
from speakerscribe.config import get_config

config = get_config()
app = create_app()


def _check_models() -> None:
    """Warn early about missing model files."""
    for path in (config.segmentation_model, config.embedding_model):
        if config.diarization_engine == "sherpa" and not os.path.isfile(path):
            logger.warning(f"Diarization model not found: {path}")
    if not os.path.isdir(config.model_dir):
        logger.warning(f"Model directory not found: {config.model_dir}")


def run() -> None:
    logger.info(f"Starting SpeakerScribe {__version__} on {config.host}:{config.port}")
    logger.info(
        f"Models: {config.model_dir} (provider={config.provider}, threads={config.num_threads}), "
        f"diarization={config.diarization_engine}, audio={config.audio_backend}"
    )
    _check_models()
    uvicorn.run(app, host=config.host, port=config.port, log_level="debug" if config.debug else "info")


if __name__ == "__main__":
    run()
