import json

import pytest
from pypdf import PdfReader
from typer.testing import CliRunner

from conftest import make_content
from voiceframe import cli
from voiceframe.generation import ContentGenerationError, ContentGenerator
from voiceframe.storage import Storage
from voiceframe.transcriber import TranscriptionError

runner = CliRunner()


@pytest.fixture()
def audio_file(tmp_path):
    path = tmp_path / "Intro to ML.mp3"
    path.write_bytes(b"\x00" * 2048)
    return path


@pytest.fixture()
def offline(isolated_home, monkeypatch, fake_client):
    """Local mode with hosted calls replaced by fakes."""

    monkeypatch.setattr(
        cli,
        "transcribe_audio",
        lambda path, model=None: ("machine learning models learn patterns", {"duration_seconds": 65}),
    )

    async def fake_generate(data):
        return await ContentGenerator(client=fake_client()).generate(data)

    monkeypatch.setattr(cli, "generate_content_from_transcript", fake_generate)
    return isolated_home


def test_version():
    result = runner.invoke(cli.app, ["--version"])
    assert result.exit_code == 0
    assert "voiceframe v0.1.0" in result.output


def test_transcribe_list_and_show(offline, audio_file):
    result = runner.invoke(cli.app, ["transcribe", str(audio_file), "--offline"])
    assert result.exit_code == 0, result.output
    assert "machine learning models learn patterns" in result.output
    assert "Saved transcript with id 1." in result.output

    listed = runner.invoke(cli.app, ["list", "--offline"])
    assert listed.exit_code == 0
    assert "Intro to ML" in listed.output
    assert "1:05" in listed.output

    shown = runner.invoke(cli.app, ["show", "1"])
    assert shown.exit_code == 0
    assert "Title: Intro to ML" in shown.output


def test_transcription_failure_exits_non_zero(isolated_home, monkeypatch, audio_file):
    def boom(path, model=None):
        raise TranscriptionError("Transcription failed: no key")

    monkeypatch.setattr(cli, "transcribe_audio", boom)
    result = runner.invoke(cli.app, ["transcribe", str(audio_file)])
    assert result.exit_code == 1
    assert "no key" in result.output


@pytest.mark.parametrize("flags", [["--offline"], []])
def test_transcribe_rejects_non_audio_before_upload(isolated_home, monkeypatch, tmp_path, flags):
    calls = []
    monkeypatch.setattr(cli, "transcribe_audio", lambda path, model=None: calls.append(path))
    notes = tmp_path / "notes.txt"
    notes.write_text("not audio")

    result = runner.invoke(cli.app, ["transcribe", str(notes), *flags])
    assert result.exit_code == 1
    assert "Unsupported file type: text/plain" in result.output
    assert calls == []
    assert list(Storage().list_audio()) == []


def test_empty_list(isolated_home):
    result = runner.invoke(cli.app, ["list"])
    assert result.exit_code == 0
    assert "No recordings found" in result.output


def test_generate_pdf_and_export(offline, audio_file, tmp_path):
    runner.invoke(cli.app, ["transcribe", str(audio_file), "--title", "Intro to ML"])

    generated = runner.invoke(cli.app, ["generate", "1"])
    assert generated.exit_code == 0, generated.output
    assert "Machine Learning Basics" in generated.output
    assert "Flashcards: 2  Concepts: 3" in generated.output

    destination = tmp_path / "out" / "pack.pdf"
    pdf_result = runner.invoke(cli.app, ["pdf", "1", "--no-metadata", "--tone", "eli5", "-o", str(destination)])
    assert pdf_result.exit_code == 0, pdf_result.output
    assert len(PdfReader(str(destination)).pages) == 5

    exported = runner.invoke(cli.app, ["export", "1", "concepts", "--format", "csv"])
    assert exported.exit_code == 0
    assert exported.output.splitlines()[0] == "Term,Definition,Category"
    assert '"Model","A learned function.","Core"' in exported.output


def test_generate_failure_stores_nothing(isolated_home, monkeypatch):
    Storage().add_audio("Talk", "some words", original_filename="talk.mp3")

    async def failing(data):
        raise ContentGenerationError("Content generation failed: rate limited")

    monkeypatch.setattr(cli, "generate_content_from_transcript", failing)
    result = runner.invoke(cli.app, ["generate", "1"])
    assert result.exit_code == 1
    assert "rate limited" in result.output

    exported = runner.invoke(cli.app, ["export", "1", "flashcards"])
    assert exported.exit_code == 1
    assert "Generate content first" in exported.output


def test_pdf_uses_configured_template_for_filename(isolated_home, monkeypatch):
    storage = Storage()
    record = storage.add_audio("Talk", "some words", original_filename="Weekly Sync.m4a")
    storage.save_content(record.id, make_content())
    runner.invoke(cli.app, ["config", "--default-template", "minimal"])

    monkeypatch.chdir(isolated_home)
    result = runner.invoke(cli.app, ["pdf", str(record.id)])
    assert result.exit_code == 0, result.output
    assert (isolated_home / "Weekly_Sync_study_pack_minimal.pdf").exists()


def test_pdf_rejects_unknown_tone(isolated_home):
    result = runner.invoke(cli.app, ["pdf", "1", "--tone", "sarcastic"])
    assert result.exit_code == 1


def test_draft_writes_export(isolated_home, tmp_path):
    source = tmp_path / "notes.txt"
    source.write_text("First point\n\nSecond point", encoding="utf-8")

    result = runner.invoke(cli.app, ["draft", str(source), "twitter", "--format", "csv", "--output-dir", str(tmp_path)])
    assert result.exit_code == 0, result.output
    lines = (tmp_path / "twitter-thread.csv").read_text(encoding="utf-8").splitlines()
    assert lines == ["Tweet Number,Content,Character Count", '1,"First point",11', '2,"Second point",12']


def test_draft_rejects_unknown_kind(isolated_home, tmp_path):
    source = tmp_path / "notes.txt"
    source.write_text("text", encoding="utf-8")
    result = runner.invoke(cli.app, ["draft", str(source), "podcast"])
    assert result.exit_code == 1


def test_estimate(isolated_home, audio_file):
    result = runner.invoke(cli.app, ["estimate", str(audio_file), "--words", "1000"])
    assert result.exit_code == 0, result.output
    assert "Model: whisper-1" in result.output
    assert "Transcription: $0.0010" in result.output
    assert "Content generation:" in result.output


def test_config_show_masks_key(isolated_home):
    runner.invoke(cli.app, ["config", "--openai-api-key", "sk-secret"])
    result = runner.invoke(cli.app, ["config", "--show"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["openai_api_key"] == "***"
    assert "sk-secret" not in result.output


def test_health_requires_server(isolated_home):
    result = runner.invoke(cli.app, ["health"])
    assert result.exit_code == 1
    assert "No API server configured" in result.output
