"""JsonTranscriptCodec — the structured, round-trippable transcript format."""

import logging

from pydantic import ValidationError

from speakerscribe.domain.errors import ProcessingFailed
from speakerscribe.domain.models import TranscriptionResult
from speakerscribe.mappers import document_to_result, result_to_document
from speakerscribe.models import TranscriptionDocument
from speakerscribe.ports.persistence import TranscriptCodecPort

logger = logging.getLogger(__name__)


class JsonTranscriptCodec(TranscriptCodecPort):
    name = "json"

    def encode(self, result: TranscriptionResult) -> bytes:
        document = result_to_document(result)
        return document.model_dump_json(by_alias=True, indent=2).encode("utf-8")

    def decode(self, data: bytes, source: str) -> TranscriptionResult:
        try:
            document = TranscriptionDocument.model_validate_json(data)
        except ValidationError as e:
            raise ProcessingFailed(f"Not a structured transcript: {e.error_count()} validation errors") from e
        logger.info(f"Loaded structured transcript {source}: {len(document.segments)} segments")
        return document_to_result(document)
