"""FastAPI application for the VoiceFrame content service."""

from __future__ import annotations

import logging
import shutil
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from fastapi import (
    Depends,
    FastAPI,
    File,
    Form,
    HTTPException,
    Query,
    Response,
    UploadFile,
    status,
)
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict, Field

from ..config import load_config
from ..exports import concepts_as_csv, concepts_as_text, flashcards_as_csv, flashcards_as_text
from ..generation import ContentGenerationError, ContentGenerator
from ..models import AudioRecord, ContentData, PDFGenerationOptions
from ..pdf import PDFGenerationError, generate_study_pack_pdf, study_pack_filename
from ..storage import APP_DIR, Storage, StorageError
from ..transcriber import (
    FileTooLargeError,
    OpenAITranscriber,
    TranscriptionError,
    UnsupportedFileTypeError,
    build_transcript_input,
    format_duration,
    guess_mime_type,
    validate_file_for_transcription,
)

logger = logging.getLogger(__name__)

MEDIA_ROOT = APP_DIR / "server_media"

app = FastAPI(
    title="VoiceFrame API",
    description="Transcription and study-pack generation backend for VoiceFrame clients.",
    version="0.1.0",
)

_lock = threading.Lock()
_storage: Optional[Storage] = None
_generator: Optional[ContentGenerator] = None
_transcriber: Optional[OpenAITranscriber] = None


class HealthResponse(BaseModel):
    status: str = "ok"
    content_model: str
    transcription_model: str


class AudioPayload(BaseModel):
    id: int
    title: str
    original_filename: str
    transcript: str
    duration: str
    created_at: datetime
    updated_at: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)


class PDFRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    template: Literal["academic", "modern", "minimal", "creative"] = "academic"
    include_summary: bool = Field(True, alias="includeSummary")
    summary_tone: Literal["professional", "friendly", "eli5"] = Field("professional", alias="summaryTone")
    include_flashcards: bool = Field(True, alias="includeFlashcards")
    include_concepts: bool = Field(True, alias="includeConcepts")
    include_metadata: bool = Field(True, alias="includeMetadata")

    def to_options(self) -> PDFGenerationOptions:
        return PDFGenerationOptions(
            template=self.template,
            include_summary=self.include_summary,
            summary_tone=self.summary_tone,
            include_flashcards=self.include_flashcards,
            include_concepts=self.include_concepts,
            include_metadata=self.include_metadata,
        )


def get_storage() -> Storage:
    global _storage
    with _lock:
        if _storage is None:
            _storage = Storage()
    return _storage


def get_generator() -> ContentGenerator:
    global _generator
    with _lock:
        if _generator is None:
            config = load_config()
            try:
                _generator = ContentGenerator(api_key=config.openai_api_key, model=config.content_model)
            except ContentGenerationError as exc:
                raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return _generator


def get_transcriber() -> OpenAITranscriber:
    global _transcriber
    with _lock:
        if _transcriber is None:
            config = load_config()
            try:
                _transcriber = OpenAITranscriber(config.transcription_model, config.openai_api_key)
            except TranscriptionError as exc:
                raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return _transcriber


def _ensure_media_root() -> Path:
    MEDIA_ROOT.mkdir(parents=True, exist_ok=True)
    return MEDIA_ROOT


def _record_to_payload(record: AudioRecord) -> AudioPayload:
    return AudioPayload(
        id=record.id,
        title=record.title,
        original_filename=record.original_filename,
        transcript=record.transcript,
        duration=record.duration,
        created_at=record.created_at,
        updated_at=record.updated_at,
        metadata=record.metadata,
    )


def _get_record(storage: Storage, audio_id: int) -> AudioRecord:
    try:
        return storage.get_audio(audio_id)
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


def _get_content(storage: Storage, audio_id: int) -> ContentData:
    try:
        return storage.get_content(audio_id)
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except (ValueError, KeyError, TypeError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Incomplete content data. Please regenerate content.",
        ) from exc


@app.get("/health", response_model=HealthResponse)
async def healthcheck() -> HealthResponse:
    config = load_config()
    return HealthResponse(content_model=config.content_model, transcription_model=config.transcription_model)


@app.get("/audio", response_model=list[AudioPayload])
async def list_audio(storage: Storage = Depends(get_storage)) -> list[AudioPayload]:
    return [_record_to_payload(record) for record in storage.list_audio()]


@app.get("/audio/{audio_id}", response_model=AudioPayload)
async def get_audio(audio_id: int, storage: Storage = Depends(get_storage)) -> AudioPayload:
    return _record_to_payload(_get_record(storage, audio_id))


@app.delete("/audio/{audio_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_audio(audio_id: int, storage: Storage = Depends(get_storage)) -> None:
    try:
        storage.delete_audio(audio_id)
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@app.post("/audio", response_model=AudioPayload, status_code=status.HTTP_201_CREATED)
async def upload_audio(
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    storage: Storage = Depends(get_storage),
    transcriber: OpenAITranscriber = Depends(get_transcriber),
) -> AudioPayload:
    media_dir = _ensure_media_root()
    suffix = Path(file.filename or "audio.mp3").suffix or ".mp3"
    destination = media_dir / f"{uuid.uuid4().hex}{suffix}"

    with destination.open("wb") as output:
        shutil.copyfileobj(file.file, output)

    mime_type = file.content_type or guess_mime_type(Path(file.filename or destination.name))
    try:
        validate_file_for_transcription(destination.stat().st_size, mime_type)
    except (FileTooLargeError, UnsupportedFileTypeError) as exc:
        destination.unlink(missing_ok=True)
        code = (
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
            if isinstance(exc, FileTooLargeError)
            else status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
        )
        raise HTTPException(status_code=code, detail=str(exc)) from exc

    try:
        transcript, metadata = await run_in_threadpool(transcriber.transcribe, destination)
    except TranscriptionError as exc:
        destination.unlink(missing_ok=True)
        logger.error("Transcription failed for %s: %s", file.filename, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    original = file.filename or destination.name
    record = storage.add_audio(
        title=title or Path(original).stem,
        transcript=transcript,
        original_filename=original,
        duration=format_duration(metadata.get("duration_seconds")),
        audio_path=destination,
        metadata=metadata,
    )
    return _record_to_payload(record)


@app.post("/content/{audio_id}")
async def generate_content(
    audio_id: int,
    storage: Storage = Depends(get_storage),
    generator: ContentGenerator = Depends(get_generator),
) -> Dict[str, Any]:
    record = _get_record(storage, audio_id)
    data = build_transcript_input(
        audio_id=str(record.id),
        title=record.title,
        transcript=record.transcript,
        metadata=record.metadata,
        processed_at=record.created_at,
        duration=record.duration,
    )
    try:
        content = await generator.generate(data)
    except ContentGenerationError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    storage.save_content(audio_id, content)
    return content.to_dict()


@app.get("/content/{audio_id}")
async def get_content(audio_id: int, storage: Storage = Depends(get_storage)) -> Dict[str, Any]:
    _get_record(storage, audio_id)
    return _get_content(storage, audio_id).to_dict()


@app.post("/content/{audio_id}/pdf")
async def download_pdf(
    audio_id: int,
    request: Optional[PDFRequest] = None,
    storage: Storage = Depends(get_storage),
) -> Response:
    record = _get_record(storage, audio_id)
    content = _get_content(storage, audio_id)
    options = (request or PDFRequest()).to_options()

    logger.info(
        "Generating PDF for audio %s with %d flashcards, %d concepts",
        audio_id,
        len(content.flashcards),
        len(content.concepts),
    )
    try:
        pdf_bytes = await run_in_threadpool(generate_study_pack_pdf, content, options)
    except PDFGenerationError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    filename = study_pack_filename(record.original_filename, options.template)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/content/{audio_id}/export/{kind}")
async def export_content(
    audio_id: int,
    kind: Literal["flashcards", "concepts"],
    fmt: Literal["txt", "csv"] = Query("csv", alias="format"),
    storage: Storage = Depends(get_storage),
) -> Response:
    _get_record(storage, audio_id)
    content = _get_content(storage, audio_id)
    if kind == "flashcards":
        body = flashcards_as_csv(content.flashcards) if fmt == "csv" else flashcards_as_text(content.flashcards)
    else:
        body = concepts_as_csv(content.concepts) if fmt == "csv" else concepts_as_text(content.concepts)
    media_type = "text/csv" if fmt == "csv" else "text/plain"
    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{kind}.{fmt}"'},
    )
