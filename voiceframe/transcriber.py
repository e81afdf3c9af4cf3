"""Hosted audio transcription."""

from __future__ import annotations

import mimetypes
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

from openai import OpenAI

from .config import load_config
from .models import TranscriptInput, TranscriptMetadata

WHISPER_1 = "whisper-1"
GPT_4O_MINI_TRANSCRIBE = "gpt-4o-mini-transcribe"
GPT_4O_TRANSCRIBE = "gpt-4o-transcribe"
GPT_4O_TRANSCRIBE_DIARIZE = "gpt-4o-transcribe-diarize"

COST_PER_MINUTE = {
    WHISPER_1: 0.006,
    GPT_4O_MINI_TRANSCRIBE: 0.012,
    GPT_4O_TRANSCRIBE: 0.024,
    GPT_4O_TRANSCRIBE_DIARIZE: 0.036,
}

# Only whisper-1 returns the verbose payload that carries the duration.
VERBOSE_JSON_MODELS = frozenset({WHISPER_1})

MAX_FILE_SIZE_BYTES = 25 * 1024 * 1024
SUPPORTED_MIME_TYPES = (
    "audio/mp3",
    "audio/mpeg",
    "audio/mp4",
    "audio/m4a",
    "audio/wav",
    "audio/webm",
    "audio/ogg",
    "audio/aac",
)

# Canonical MIME type per extension; mimetypes reports e.g. audio/x-wav.
AUDIO_EXTENSIONS = {
    ".mp3": "audio/mpeg",
    ".mp4": "audio/mp4",
    ".m4a": "audio/m4a",
    ".wav": "audio/wav",
    ".webm": "audio/webm",
    ".ogg": "audio/ogg",
    ".aac": "audio/aac",
}

# Approximate minutes of audio per megabyte, by container.
MINUTES_PER_MB = {
    "audio/mp3": 1.0,
    "audio/mpeg": 1.0,
    "audio/wav": 0.1,
    "audio/m4a": 1.2,
    "audio/aac": 1.2,
    "audio/ogg": 1.1,
    "audio/webm": 1.1,
}


class TranscriptionError(RuntimeError):
    """Raised when audio cannot be transcribed."""


class FileTooLargeError(TranscriptionError):
    """Raised when an upload exceeds the transcription size limit."""


class UnsupportedFileTypeError(TranscriptionError):
    """Raised when an upload is not a supported audio format."""


@dataclass(slots=True)
class TranscriptionCostEstimate:
    estimated_cost_usd: float
    file_size_mb: float
    estimated_minutes: float
    model: str


class OpenAITranscriber:
    """Cloud transcription using the OpenAI audio API."""

    def __init__(self, model: str = WHISPER_1, api_key: Optional[str] = None, client: Optional[OpenAI] = None) -> None:
        if client is None:
            if api_key is None:
                raise TranscriptionError("An OpenAI API key is required for transcription.")
            client = OpenAI(api_key=api_key)
        self._client = client
        self.model = model

    def transcribe(self, audio_path: Path, language: Optional[str] = None) -> Tuple[str, dict]:
        """Return a tuple of transcript text and metadata."""

        kwargs = {"model": self.model}
        if self.model in VERBOSE_JSON_MODELS:
            kwargs["response_format"] = "verbose_json"
        if language:
            kwargs["language"] = language
        started = time.monotonic()
        try:
            with audio_path.open("rb") as fh:
                response = self._client.audio.transcriptions.create(file=fh, **kwargs)
        except OSError as exc:
            raise TranscriptionError(f"Could not read audio file {audio_path}: {exc}") from exc
        except Exception as exc:
            raise TranscriptionError(f"Transcription failed: {exc}") from exc

        text = (getattr(response, "text", "") or "").strip()
        if not text:
            raise TranscriptionError("Transcription returned no text")
        metadata = {
            "model": self.model,
            "processing_time": round(time.monotonic() - started, 3),
            "word_count": len(text.split()),
        }
        duration = getattr(response, "duration", None)
        if duration is not None:
            metadata["duration_seconds"] = float(duration)
        return text, metadata


def get_transcriber(model: Optional[str] = None) -> OpenAITranscriber:
    config = load_config()
    return OpenAITranscriber(model or config.transcription_model, config.openai_api_key)


def transcribe_audio(audio_path: Path, model: Optional[str] = None) -> Tuple[str, dict]:
    """High level convenience wrapper."""

    return get_transcriber(model).transcribe(audio_path)


def estimate_transcription_cost(
    file_size_bytes: int,
    file_type: str,
    model: str = WHISPER_1,
) -> TranscriptionCostEstimate:
    file_size_mb = file_size_bytes / (1024 * 1024)
    estimated_minutes = file_size_mb * MINUTES_PER_MB.get(file_type.lower(), 1.0)
    cost = max(0.001, estimated_minutes * COST_PER_MINUTE.get(model, COST_PER_MINUTE[WHISPER_1]))
    return TranscriptionCostEstimate(
        estimated_cost_usd=cost,
        file_size_mb=file_size_mb,
        estimated_minutes=max(0.1, estimated_minutes),
        model=model,
    )


def guess_mime_type(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix in AUDIO_EXTENSIONS:
        return AUDIO_EXTENSIONS[suffix]
    return mimetypes.guess_type(path.name)[0] or "application/octet-stream"


def validate_file_for_transcription(file_size_bytes: int, mime_type: str) -> None:
    """Reject uploads the transcription API would refuse."""

    if file_size_bytes > MAX_FILE_SIZE_BYTES:
        raise FileTooLargeError(
            "File too large for transcription. Maximum size is 25MB, "
            f"but file is {file_size_bytes / (1024 * 1024):.1f}MB."
        )
    if mime_type.lower() not in SUPPORTED_MIME_TYPES:
        raise UnsupportedFileTypeError(
            f"Unsupported file type: {mime_type}. Supported types: {', '.join(SUPPORTED_MIME_TYPES)}"
        )


def format_duration(seconds: Optional[float]) -> str:
    if seconds is None:
        return "Unknown"
    total = int(round(seconds))
    return f"{total // 60}:{total % 60:02d}"


def build_transcript_input(
    audio_id: str,
    title: str,
    transcript: str,
    metadata: dict,
    processed_at: Optional[datetime] = None,
    duration: Optional[str] = None,
) -> TranscriptInput:
    processed_at = processed_at or datetime.now(timezone.utc)
    return TranscriptInput(
        audio_id=audio_id,
        audio_title=title,
        transcript=transcript,
        duration=duration or format_duration(metadata.get("duration_seconds")),
        processed_at=processed_at.isoformat(),
        transcript_metadata=TranscriptMetadata(
            word_count=metadata.get("word_count"),
            processing_time=metadata.get("processing_time"),
            model=metadata.get("model"),
        ),
    )
