"""HTTP surface over a single Session.

One session per process. ``POST /v1/transcriptions`` starts a run in the
background and returns immediately; clients poll the status route.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from speakerscribe.config import Config, create_audio_adapter, create_ml_adapters, get_config
from speakerscribe.domain.errors import (
    EngineUnavailable, InvalidAudioFile, ProcessingFailed, TranscriptionError,
)
from speakerscribe.domain.models import DiarizationSettings
from speakerscribe.domain.status import TranscriptionStatus
from speakerscribe.mappers import result_to_document
from speakerscribe.models import (
    LoadRequest, ProcessRequest, SaveRequest, SpeakerNameRequest, Statistics, StatusResponse,
)
from speakerscribe.session import Session
from speakerscribe.statistics import compute_speaker_statistics

logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    InvalidAudioFile: 422,
    ProcessingFailed: 500,
    EngineUnavailable: 503,
}


def create_session(cfg: Config) -> Session:
    recognition, diarization_factory = create_ml_adapters(cfg)
    return Session(
        recognition=recognition,
        diarization_factory=diarization_factory,
        audio=create_audio_adapter(cfg),
    )


def _status(session: Session) -> StatusResponse:
    snapshot = session.state.snapshot()
    return StatusResponse(
        status=snapshot.status.value,
        description=snapshot.description,
        progress=snapshot.progress,
        error=snapshot.error,
        has_result=snapshot.has_result,
        audio_available=session.audio_available() if snapshot.has_result else None,
    )


def _log_run_outcome(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.info(f"Background run ended with {type(exc).__name__}: {exc}")


def create_app(session: Optional[Session] = None, cfg: Optional[Config] = None) -> FastAPI:
    cfg = cfg or get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.session is None:
            app.state.session = create_session(cfg)
            await app.state.session.start(
                cfg.model_dir,
                DiarizationSettings(cfg.default_speaker_count, cfg.default_clustering_threshold),
            )
        try:
            yield
        finally:
            await app.state.session.close()

    app = FastAPI(title="SpeakerScribe", lifespan=lifespan)
    app.state.session = session
    app.state.runs = set()

    @app.exception_handler(TranscriptionError)
    async def transcription_error_handler(request: Request, exc: TranscriptionError):
        status_code = next((code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)), 500)
        return JSONResponse(status_code=status_code, content={"detail": exc.message})

    def current(request: Request) -> Session:
        return request.app.state.session

    def require_result(request: Request):
        result = current(request).result
        if result is None:
            raise HTTPException(status_code=404, detail="No transcription loaded")
        return result

    @app.get("/health")
    async def health():
        return {"status": "ok", "config": cfg.as_dict()}

    @app.post("/v1/transcriptions", status_code=202, response_model=StatusResponse)
    async def start_transcription(body: ProcessRequest, request: Request):
        session = current(request)
        if session.status is not TranscriptionStatus.IDLE:
            raise HTTPException(status_code=409, detail=f"Session is {session.status.value}; reset first")

        threshold = body.clustering_threshold
        if threshold is None:
            threshold = cfg.default_clustering_threshold
        task = asyncio.create_task(session.process(body.path, body.expected_speaker_count, threshold))
        request.app.state.runs.add(task)
        task.add_done_callback(request.app.state.runs.discard)
        task.add_done_callback(_log_run_outcome)
        # Let the run enter its first stage before reporting status.
        await asyncio.sleep(0)
        return _status(session)

    @app.get("/v1/transcription/status", response_model=StatusResponse)
    async def get_status(request: Request):
        return _status(current(request))

    @app.get("/v1/transcription")
    async def get_transcription(request: Request):
        result = require_result(request)
        return result_to_document(result).model_dump(mode="json", by_alias=True)

    @app.get("/v1/transcription/text", response_class=PlainTextResponse)
    async def get_text(request: Request):
        require_result(request)
        return current(request).export_text()

    @app.get("/v1/transcription/statistics", response_model=Statistics)
    async def get_statistics(request: Request):
        return compute_speaker_statistics(require_result(request))

    @app.put("/v1/transcription/speakers/{speaker_id}")
    async def rename_speaker(speaker_id: int, body: SpeakerNameRequest, request: Request):
        result = require_result(request)
        changed = current(request).set_speaker_name(speaker_id, body.name)
        return {"speaker_id": speaker_id, "name": result.speaker_name(speaker_id), "changed": changed}

    @app.post("/v1/transcription/save")
    async def save_transcription(body: SaveRequest, request: Request, fmt: str = Query("json", alias="format")):
        require_result(request)
        try:
            await current(request).save(body.path, fmt=fmt)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"path": body.path, "format": fmt}

    @app.post("/v1/transcription/load", response_model=StatusResponse)
    async def load_transcription(body: LoadRequest, request: Request):
        session = current(request)
        if session.status.is_processing:
            raise HTTPException(status_code=409, detail="A transcription is in progress")
        if body.audio_path:
            await session.load_with_audio(body.audio_path, body.path)
        else:
            await session.load(body.path)
        return _status(session)

    @app.post("/v1/transcription/reset", response_model=StatusResponse)
    async def reset(request: Request):
        session = current(request)
        if session.status.is_processing:
            raise HTTPException(status_code=409, detail="A transcription is in progress")
        session.reset()
        return _status(session)

    return app
