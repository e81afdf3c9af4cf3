import io
from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from pypdf import PdfReader

from conftest import make_content
from voiceframe import api
from voiceframe.generation import ContentGenerator
from voiceframe.storage import Storage
from voiceframe import transcriber as transcriber_mod
from voiceframe.transcriber import OpenAITranscriber


class FakeAudioAPI:
    """Audio transcription endpoint that reports a duration only in verbose mode."""

    def __init__(self, text="machine learning models learn patterns from training data", duration=754):
        self.text = text
        self.duration = duration
        self.error = None
        self.calls = []

    def create(self, file, **kwargs):
        self.calls.append({"name": file.name, **kwargs})
        if self.error is not None:
            raise self.error
        if kwargs.get("response_format") == "verbose_json":
            return SimpleNamespace(text=self.text, duration=self.duration)
        return SimpleNamespace(text=self.text)


@pytest.fixture()
def storage(tmp_path):
    return Storage(db_path=tmp_path / "api.db")


@pytest.fixture()
def audio_api():
    return FakeAudioAPI()


@pytest.fixture()
def client(isolated_home, monkeypatch, storage, audio_api, fake_client):
    monkeypatch.setattr(api, "MEDIA_ROOT", isolated_home / "media")
    app = api.app
    app.dependency_overrides[api.get_storage] = lambda: storage
    app.dependency_overrides[api.get_transcriber] = lambda: OpenAITranscriber(
        client=SimpleNamespace(audio=SimpleNamespace(transcriptions=audio_api))
    )
    app.dependency_overrides[api.get_generator] = lambda: ContentGenerator(client=fake_client())
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _add_audio(storage, **kwargs):
    defaults = {
        "title": "Intro to ML",
        "transcript": "machine learning models learn patterns from training data",
        "original_filename": "Intro to ML.mp3",
        "duration": "45:00",
    }
    defaults.update(kwargs)
    return storage.add_audio(**defaults)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "content_model": "gpt-4o-2024-08-06",
        "transcription_model": "whisper-1",
    }


def test_upload_transcribes_and_stores(client, audio_api, isolated_home):
    response = client.post(
        "/audio",
        files={"file": ("lecture.mp3", b"fake audio", "audio/mpeg")},
        data={"title": "Lecture One"},
    )
    assert response.status_code == 201
    payload = response.json()
    assert payload["title"] == "Lecture One"
    assert payload["original_filename"] == "lecture.mp3"
    assert payload["duration"] == "12:34"
    assert audio_api.calls[0]["response_format"] == "verbose_json"
    assert Path(audio_api.calls[0]["name"]).parent == isolated_home / "media"

    listed = client.get("/audio").json()
    assert [item["id"] for item in listed] == [payload["id"]]


def test_upload_defaults_title_to_filename(client):
    response = client.post("/audio", files={"file": ("standup notes.m4a", b"audio", "audio/m4a")})
    assert response.status_code == 201
    assert response.json()["title"] == "standup notes"


def test_failed_transcription_returns_bad_gateway(client, audio_api, isolated_home):
    audio_api.error = RuntimeError("boom")
    response = client.post("/audio", files={"file": ("lecture.mp3", b"fake audio", "audio/mpeg")})
    assert response.status_code == 502
    assert list((isolated_home / "media").iterdir()) == []


def test_upload_rejects_unsupported_type(client, audio_api, storage, isolated_home):
    response = client.post("/audio", files={"file": ("notes.txt", b"not audio", "text/plain")})
    assert response.status_code == 415
    assert response.json()["detail"].startswith("Unsupported file type: text/plain.")
    assert audio_api.calls == []
    assert list(storage.list_audio()) == []
    assert list((isolated_home / "media").iterdir()) == []


def test_upload_rejects_oversized_file(client, audio_api, storage, isolated_home, monkeypatch):
    monkeypatch.setattr(transcriber_mod, "MAX_FILE_SIZE_BYTES", 4)
    response = client.post("/audio", files={"file": ("lecture.mp3", b"fake audio", "audio/mpeg")})
    assert response.status_code == 413
    assert "Maximum size is 25MB" in response.json()["detail"]
    assert audio_api.calls == []
    assert list(storage.list_audio()) == []
    assert list((isolated_home / "media").iterdir()) == []


def test_missing_audio_is_404(client):
    assert client.get("/audio/404").status_code == 404
    assert client.delete("/audio/404").status_code == 404
    assert client.post("/content/404").status_code == 404


def test_delete_audio(client, storage):
    record = _add_audio(storage)
    assert client.delete(f"/audio/{record.id}").status_code == 204
    assert client.get(f"/audio/{record.id}").status_code == 404


def test_generate_and_fetch_content(client, storage):
    record = _add_audio(storage)

    response = client.post(f"/content/{record.id}")
    assert response.status_code == 200
    body = response.json()
    assert set(body["summary"]) == {"professional", "friendly", "eli5"}
    assert body["duration"] == "45:00"
    assert body["studyPacks"]["stats"]["flashcards"] == len(body["flashcards"]) == 2

    fetched = client.get(f"/content/{record.id}")
    assert fetched.status_code == 200
    assert fetched.json() == body


def test_generation_failure_returns_500_and_stores_nothing(client, storage, fake_client):
    record = _add_audio(storage)
    api.app.dependency_overrides[api.get_generator] = lambda: ContentGenerator(
        client=fake_client(flashcards_response=RuntimeError("upstream timeout"))
    )

    response = client.post(f"/content/{record.id}")
    assert response.status_code == 500
    assert "upstream timeout" in response.json()["detail"]
    assert client.get(f"/content/{record.id}").status_code == 404


def test_content_not_generated_yet(client, storage):
    record = _add_audio(storage)
    response = client.get(f"/content/{record.id}")
    assert response.status_code == 404
    assert "Generate content first" in response.json()["detail"]


def test_incomplete_content_is_bad_request(client, storage):
    record = _add_audio(storage)
    with storage._connect() as conn:
        conn.execute(
            "INSERT INTO learning_content(audio_file_id, content, created_at, updated_at) VALUES(?, ?, ?, ?)",
            (record.id, '{"summary": {}}', "2024-01-15T10:30:00+00:00", "2024-01-15T10:30:00+00:00"),
        )
    response = client.get(f"/content/{record.id}")
    assert response.status_code == 400
    assert response.json()["detail"] == "Incomplete content data. Please regenerate content."


def test_pdf_download(client, storage):
    record = _add_audio(storage)
    storage.save_content(record.id, make_content())

    response = client.post(
        f"/content/{record.id}/pdf",
        json={"template": "modern", "summaryTone": "friendly", "includeMetadata": False},
    )
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == 'attachment; filename="Intro_to_ML_study_pack_modern.pdf"'
    reader = PdfReader(io.BytesIO(response.content))
    assert len(reader.pages) == 5
    assert "Friendly summary" in reader.pages[2].extract_text()


def test_pdf_download_without_body_uses_defaults(client, storage):
    record = _add_audio(storage)
    storage.save_content(record.id, make_content())

    response = client.post(f"/content/{record.id}/pdf")
    assert response.status_code == 200
    assert response.headers["content-disposition"].endswith('_study_pack_academic.pdf"')


def test_pdf_rejects_unknown_template(client, storage):
    record = _add_audio(storage)
    storage.save_content(record.id, make_content())
    assert client.post(f"/content/{record.id}/pdf", json={"template": "baroque"}).status_code == 422


def test_pdf_without_content_is_404(client, storage):
    record = _add_audio(storage)
    assert client.post(f"/content/{record.id}/pdf").status_code == 404


def test_flashcard_and_concept_exports(client, storage):
    record = _add_audio(storage)
    storage.save_content(record.id, make_content(flashcard_count=2))

    csv_response = client.get(f"/content/{record.id}/export/flashcards")
    assert csv_response.status_code == 200
    assert csv_response.headers["content-type"].startswith("text/csv")
    assert csv_response.text.splitlines()[0] == "ID,Question,Answer"
    assert len(csv_response.text.splitlines()) == 3

    txt_response = client.get(f"/content/{record.id}/export/concepts", params={"format": "txt"})
    assert txt_response.status_code == 200
    assert txt_response.text.startswith("Model (Core)")
    assert 'filename="concepts.txt"' in txt_response.headers["content-disposition"]

    assert client.get(f"/content/{record.id}/export/quizzes").status_code == 422
    assert client.get(f"/content/{record.id}/export/concepts", params={"format": "docx"}).status_code == 422
