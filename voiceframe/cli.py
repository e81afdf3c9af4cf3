"""Command line interface for the VoiceFrame application."""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import contextmanager
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar

import httpx
import typer

from . import config as config_mod
from .config import ConfigError
from .exports import (
    concepts_as_csv,
    concepts_as_text,
    export_as_csv,
    export_as_text,
    export_filename,
    flashcards_as_csv,
    flashcards_as_text,
)
from .generation import ContentGenerationError, estimate_content_generation_cost, generate_content_from_transcript
from .models import PDF_TEMPLATES, SUMMARY_TONES, AudioRecord, ContentData, PDFGenerationOptions
from .pdf import PDFGenerationError, generate_study_pack_pdf, study_pack_filename
from .social import parse_article, parse_blog_post, parse_linkedin_post, parse_newsletter, parse_twitter_thread
from .storage import Storage, StorageError
from .transcriber import (
    TranscriptionError,
    build_transcript_input,
    estimate_transcription_cost,
    format_duration,
    guess_mime_type,
    transcribe_audio,
    validate_file_for_transcription,
)

app = typer.Typer(add_completion=False, help="Turn audio into summaries, flashcards and study packs.")

T = TypeVar("T")

OFFLINE_HELP = "Use local storage instead of the API server."

DRAFT_PARSERS = {
    "linkedin": parse_linkedin_post,
    "twitter": parse_twitter_thread,
    "blog": parse_blog_post,
    "article": parse_article,
    "newsletter": parse_newsletter,
}

EXPORT_RENDERERS: Dict[tuple, Callable[[ContentData], str]] = {
    ("flashcards", "txt"): lambda content: flashcards_as_text(content.flashcards),
    ("flashcards", "csv"): lambda content: flashcards_as_csv(content.flashcards),
    ("concepts", "txt"): lambda content: concepts_as_text(content.concepts),
    ("concepts", "csv"): lambda content: concepts_as_csv(content.concepts),
}


def _format_timestamp(value: Optional[str]) -> str:
    if not value:
        return "-"
    try:
        return datetime.fromisoformat(value).strftime("%Y-%m-%d %H:%M")
    except ValueError:
        return value


def _fail(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED, err=True)


def _report_http_error(exc: httpx.HTTPError) -> None:
    detail = str(exc)
    where = ""
    try:
        request = exc.request
    except RuntimeError:
        request = None
    if request is not None:
        where = f"{request.method} {request.url}"
    response = getattr(exc, "response", None)
    if response is not None:
        where = f"{response.status_code} {where}".strip()
        try:
            detail = response.json().get("detail", detail)
        except ValueError:
            detail = response.text or detail
    _fail(f"Request to API failed ({where}): {detail}")


@contextmanager
def _api_client(cfg: config_mod.Config) -> Iterator[httpx.Client]:
    if not cfg.server_url:
        _fail("No API server configured. Run `voiceframe config --server-url https://host` first.")
        raise typer.Exit(code=1)
    headers = {"Authorization": f"Bearer {cfg.server_token}"} if cfg.server_token else {}
    with httpx.Client(
        base_url=cfg.server_url.rstrip("/"),
        headers=headers,
        timeout=cfg.api_timeout,
        verify=cfg.verify_ssl,
    ) as client:
        yield client


def _call_api(cfg: config_mod.Config, method: str, path: str, **kwargs: Any) -> httpx.Response:
    """Send one request to the API server, exiting on any HTTP failure."""

    try:
        with _api_client(cfg) as client:
            response = client.request(method, path, **kwargs)
            response.raise_for_status()
    except httpx.HTTPError as exc:
        _report_http_error(exc)
        raise typer.Exit(code=1) from exc
    return response


def _local(action: Callable[[], T], *errors: type) -> T:
    """Run a local operation, turning the given errors into a clean exit."""

    caught = errors or (StorageError,)
    try:
        return action()
    except caught as exc:
        _fail(str(exc))
        raise typer.Exit(code=1) from exc


def _use_local(cfg: config_mod.Config, offline: bool) -> bool:
    return offline or not cfg.server_url


def _record_row(record: AudioRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "title": record.title,
        "duration": record.duration,
        "created_at": record.created_at.isoformat(),
        "transcript": record.transcript,
    }


def _load_content(storage: Storage, audio_id: int) -> ContentData:
    return _local(lambda: storage.get_content(audio_id), StorageError, ValueError, KeyError)


def _write_output(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    typer.secho(f"Wrote {path} ({len(data)} bytes).", fg=typer.colors.BLUE)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
    version: bool = typer.Option(False, "--version", "-v", help="Show version and exit"),
) -> None:
    if version:
        typer.echo("voiceframe v0.1.0")
        raise typer.Exit()

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command()
def transcribe(
    audio: Path = typer.Argument(..., exists=True, readable=True, help="Path to the audio file."),
    title: Optional[str] = typer.Option(None, "--title", help="Display title, defaults to the file name."),
    model: Optional[str] = typer.Option(None, "--model", help="Transcription model when offline."),
    offline: bool = typer.Option(False, "--offline", help="Transcribe locally instead of uploading to the API server."),
) -> None:
    """Transcribe an audio file and store the result."""

    cfg = config_mod.load_config()
    title = title or audio.stem
    mime_type = guess_mime_type(audio)
    _local(lambda: validate_file_for_transcription(audio.stat().st_size, mime_type), TranscriptionError)

    if _use_local(cfg, offline):
        transcript, metadata = _local(lambda: transcribe_audio(audio, model=model), TranscriptionError)
        record = Storage().add_audio(
            title=title,
            transcript=transcript,
            original_filename=audio.name,
            duration=format_duration(metadata.get("duration_seconds")),
            audio_path=audio,
            metadata=metadata,
        )
        payload = _record_row(record)
    else:
        if model:
            _fail("The --model option is only available with --offline.")
            raise typer.Exit(code=1)
        payload = _call_api(
            cfg,
            "POST",
            "/audio",
            data={"title": title},
            files={"file": (audio.name, audio.read_bytes(), mime_type)},
        ).json()

    typer.echo(payload.get("transcript", ""))
    typer.secho(f"\nSaved transcript with id {payload.get('id')}.", fg=typer.colors.BLUE)


@app.command("list")
def list_command(
    offline: bool = typer.Option(False, "--offline", help=OFFLINE_HELP),
) -> None:
    """List stored recordings."""

    cfg = config_mod.load_config()
    if _use_local(cfg, offline):
        rows = [_record_row(record) for record in Storage().list_audio()]
    else:
        rows = _call_api(cfg, "GET", "/audio").json()

    if not rows:
        typer.echo("No recordings found. Use `voiceframe transcribe` to create one.")
        return

    header = f"{'ID':<4}  {'Title':<30}  {'Duration':<8}  {'Created':<16}"
    typer.echo(header)
    typer.echo("=" * len(header))
    for row in rows:
        created = _format_timestamp(row.get("created_at"))
        typer.echo(f"{row.get('id', '-'):<4}  {row.get('title', ''):<30}  {row.get('duration', ''):<8}  {created:<16}")


@app.command()
def show(
    audio_id: int = typer.Argument(..., help="Identifier of the recording to display."),
    offline: bool = typer.Option(False, "--offline", help=OFFLINE_HELP),
) -> None:
    """Show a stored transcript."""

    cfg = config_mod.load_config()
    if _use_local(cfg, offline):
        payload = _record_row(_local(lambda: Storage().get_audio(audio_id)))
    else:
        payload = _call_api(cfg, "GET", f"/audio/{audio_id}").json()

    typer.secho(f"Title: {payload.get('title', '')}", fg=typer.colors.BLUE)
    typer.echo(f"Duration: {payload.get('duration', '')}")
    typer.echo(f"Created: {_format_timestamp(payload.get('created_at'))}")
    typer.echo("\nTranscript:\n" + payload.get("transcript", ""))


@app.command()
def delete(
    audio_id: int = typer.Argument(..., help="Identifier of the recording to delete."),
    offline: bool = typer.Option(False, "--offline", help=OFFLINE_HELP),
) -> None:
    """Delete a recording and its generated content."""

    cfg = config_mod.load_config()
    if _use_local(cfg, offline):
        _local(lambda: Storage().delete_audio(audio_id))
        where = "locally"
    else:
        _call_api(cfg, "DELETE", f"/audio/{audio_id}")
        where = "on the server"
    typer.secho(f"Recording {audio_id} deleted {where}.", fg=typer.colors.BLUE)


@app.command()
def generate(
    audio_id: int = typer.Argument(..., help="Identifier of the transcribed recording."),
    offline: bool = typer.Option(False, "--offline", help=OFFLINE_HELP),
) -> None:
    """Generate summaries, flashcards and concepts for a transcript."""

    cfg = config_mod.load_config()

    if _use_local(cfg, offline):
        storage = Storage()
        record = _local(lambda: storage.get_audio(audio_id))
        data = build_transcript_input(
            audio_id=str(record.id),
            title=record.title,
            transcript=record.transcript,
            metadata=record.metadata,
            processed_at=record.created_at,
            duration=record.duration,
        )
        content = _local(lambda: asyncio.run(generate_content_from_transcript(data)), ContentGenerationError)
        storage.save_content(audio_id, content)
        payload = content.to_dict()
    else:
        payload = _call_api(cfg, "POST", f"/content/{audio_id}").json()

    stats = payload["studyPacks"]["stats"]
    tags = ", ".join(payload["studyPacks"]["metadata"]["tags"]) or "-"
    typer.secho(payload["summary"]["professional"]["title"], fg=typer.colors.GREEN)
    typer.echo(f"Flashcards: {stats['flashcards']}  Concepts: {stats['concepts']}  Reading time: {stats['readingTime']}")
    typer.echo(f"Tags: {tags}")


@app.command()
def pdf(
    audio_id: int = typer.Argument(..., help="Identifier of the recording with generated content."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Destination PDF path."),
    template: Optional[str] = typer.Option(None, "--template", help="academic, modern, minimal or creative."),
    tone: str = typer.Option("professional", "--tone", help="Summary tone: professional, friendly or eli5."),
    summary: bool = typer.Option(True, "--summary/--no-summary", help="Include summary notes."),
    flashcards: bool = typer.Option(True, "--flashcards/--no-flashcards", help="Include flashcards."),
    concepts: bool = typer.Option(True, "--concepts/--no-concepts", help="Include key concepts."),
    metadata: bool = typer.Option(True, "--metadata/--no-metadata", help="Include study metadata."),
    offline: bool = typer.Option(False, "--offline", help=OFFLINE_HELP),
) -> None:
    """Export a study pack PDF."""

    cfg = config_mod.load_config()
    template = template or cfg.default_template
    if template not in PDF_TEMPLATES or tone not in SUMMARY_TONES:
        _fail(f"Template must be one of {', '.join(PDF_TEMPLATES)}; tone one of {', '.join(SUMMARY_TONES)}.")
        raise typer.Exit(code=1)

    options = PDFGenerationOptions(
        template=template,
        include_summary=summary,
        summary_tone=tone,
        include_flashcards=flashcards,
        include_concepts=concepts,
        include_metadata=metadata,
    )

    if _use_local(cfg, offline):
        storage = Storage()
        record = _local(lambda: storage.get_audio(audio_id))
        content = _load_content(storage, audio_id)
        data = _local(lambda: generate_study_pack_pdf(content, options), PDFGenerationError)
        _write_output(output or Path(study_pack_filename(record.original_filename, template)), data)
        return

    body = {
        "template": template,
        "includeSummary": summary,
        "summaryTone": tone,
        "includeFlashcards": flashcards,
        "includeConcepts": concepts,
        "includeMetadata": metadata,
    }
    response = _call_api(cfg, "POST", f"/content/{audio_id}/pdf", json=body)
    _write_output(output or Path(f"study_pack_{audio_id}_{template}.pdf"), response.content)


@app.command()
def export(
    audio_id: int = typer.Argument(..., help="Identifier of the recording with generated content."),
    kind: str = typer.Argument(..., help="flashcards or concepts."),
    fmt: str = typer.Option("csv", "--format", "-f", help="txt or csv."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to a file instead of stdout."),
) -> None:
    """Export flashcards or concepts from local storage as text or CSV."""

    render = EXPORT_RENDERERS.get((kind, fmt))
    if render is None:
        _fail("Kind must be flashcards or concepts and format txt or csv.")
        raise typer.Exit(code=1)

    text = render(_load_content(Storage(), audio_id))
    if output:
        _write_output(output, text.encode("utf-8"))
    else:
        typer.echo(text)


@app.command()
def draft(
    source: Path = typer.Argument(..., exists=True, readable=True, help="Text file to turn into a draft."),
    kind: str = typer.Argument(..., help="linkedin, twitter, blog, article or newsletter."),
    fmt: str = typer.Option("txt", "--format", "-f", help="txt or csv."),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", help="Write the export into this directory."),
) -> None:
    """Build a social-content draft from text and export it."""

    parser = DRAFT_PARSERS.get(kind)
    if parser is None or fmt not in ("txt", "csv"):
        _fail(f"Kind must be one of {', '.join(DRAFT_PARSERS)} and format txt or csv.")
        raise typer.Exit(code=1)

    item = parser(source.read_text(encoding="utf-8"))
    text = export_as_csv(item) if fmt == "csv" else export_as_text(item)
    if output_dir:
        _write_output(output_dir / export_filename(item, fmt), text.encode("utf-8"))
    else:
        typer.echo(text)


@app.command()
def estimate(
    audio: Path = typer.Argument(..., exists=True, readable=True, help="Path to the audio file."),
    model: Optional[str] = typer.Option(None, "--model", help="Transcription model to price."),
    transcript_words: int = typer.Option(0, "--words", help="Expected transcript length for content pricing."),
) -> None:
    """Estimate the API cost of processing an audio file."""

    cfg = config_mod.load_config()
    mime_type = guess_mime_type(audio)
    result = estimate_transcription_cost(audio.stat().st_size, mime_type, model or cfg.transcription_model)
    typer.echo(f"Model: {result.model}")
    typer.echo(f"File size: {result.file_size_mb:.2f} MB (~{result.estimated_minutes:.1f} min)")
    typer.echo(f"Transcription: ${result.estimated_cost_usd:.4f}")
    if transcript_words:
        typer.echo(f"Content generation: ${estimate_content_generation_cost(transcript_words):.4f}")


@app.command()
def config(
    openai_api_key: Optional[str] = typer.Option(None, help="OpenAI API key used for transcription and generation."),
    content_model: Optional[str] = typer.Option(None, help="Chat model used for content generation."),
    transcription_model: Optional[str] = typer.Option(None, help="Model used for transcription."),
    default_template: Optional[str] = typer.Option(None, help="Default study pack template."),
    server_url: Optional[str] = typer.Option(None, help="Base URL of the VoiceFrame API server."),
    server_token: Optional[str] = typer.Option(None, help="Bearer token for the API server."),
    verify_ssl: Optional[bool] = typer.Option(
        None,
        "--verify-ssl/--no-verify-ssl",
        help="Toggle TLS certificate verification for API calls.",
    ),
    api_timeout: Optional[float] = typer.Option(None, help="HTTP client timeout (seconds) for API calls."),
    show: bool = typer.Option(False, "--show", help="Display the active configuration."),
) -> None:
    """Update or inspect configuration settings."""

    candidates = {
        "openai_api_key": openai_api_key,
        "content_model": content_model,
        "transcription_model": transcription_model,
        "default_template": default_template,
        "server_url": server_url,
        "server_token": server_token,
        "verify_ssl": verify_ssl,
        "api_timeout": api_timeout,
    }
    updates = {key: value for key, value in candidates.items() if value is not None}

    if show or not updates:
        data = asdict(_local(config_mod.load_config, ConfigError))
        for secret in ("openai_api_key", "server_token"):
            if data.get(secret):
                data[secret] = "***"
        typer.echo(json.dumps(data, indent=2, default=str))
        return

    if default_template is not None and default_template not in PDF_TEMPLATES:
        _fail(f"Unknown template {default_template!r}.")
        raise typer.Exit(code=1)

    _local(lambda: config_mod.update_config(**updates), ConfigError)
    typer.secho("Configuration updated.", fg=typer.colors.BLUE)


@app.command()
def login(
    token: Optional[str] = typer.Option(
        None,
        "--token",
        help="API token for authenticating with the VoiceFrame server.",
        prompt=True,
        hide_input=True,
    ),
) -> None:
    """Persist the API bearer token for server requests."""

    _local(lambda: config_mod.update_config(server_token=token or None), ConfigError)
    typer.secho("Server token stored.", fg=typer.colors.BLUE)


@app.command()
def health() -> None:
    """Check connectivity to the configured API server."""

    payload = _call_api(config_mod.load_config(), "GET", "/health").json()
    typer.echo(f"Status: {payload.get('status', 'unknown')}")
    typer.echo(f"Content model: {payload.get('content_model', 'unknown')}")
    typer.echo(f"Transcription model: {payload.get('transcription_model', 'unknown')}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind."),
    port: int = typer.Option(8000, "--port", help="Port to listen on."),
) -> None:  # pragma: no cover - starts a blocking server
    """Run the VoiceFrame HTTP API."""

    import uvicorn

    uvicorn.run("voiceframe.api:app", host=host, port=port)


if __name__ == "__main__":  # pragma: no cover
    app()
