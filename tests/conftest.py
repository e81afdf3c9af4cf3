from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace
from typing import Any, Callable, Dict, Optional

import pytest

from voiceframe import config, storage
from voiceframe.generation import build_study_pack
from voiceframe.models import Concept, ContentData, Flashcard, SummaryContent, SummarySection, TranscriptInput

SUMMARY_JSON = json.dumps(
    {
        "title": "Machine Learning Basics",
        "sections": [
            {"heading": "What is ML?", "content": "**Machine learning** lets systems learn from *data*."},
            {"heading": "Types", "content": "Supervised, unsupervised and reinforcement learning."},
        ],
    }
)
FLASHCARDS_JSON = json.dumps(
    {
        "flashcards": [
            {"id": 1, "question": "What is ML?", "answer": "Learning from data."},
            {"id": 2, "question": "Name a type of ML.", "answer": "Supervised learning."},
        ]
    }
)
CONCEPTS_JSON = json.dumps(
    {
        "concepts": [
            {"term": "Model", "definition": "A learned function.", "category": "Core"},
            {"term": "Dataset", "definition": "Examples used for training.", "category": "Data"},
            {"term": "Loss", "definition": "How wrong the model is.", "category": "Core"},
        ]
    }
)


class FakeCompletions:
    """Stands in for ``AsyncOpenAI().chat.completions``.

    Responses are keyed by the JSON schema name of each request. A value that
    is an exception is raised instead of returned.
    """

    def __init__(self, responses: Dict[str, Any]) -> None:
        self.responses = responses
        self.calls: list[dict] = []

    async def create(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        await asyncio.sleep(0)
        value = self.responses[kwargs["response_format"]["json_schema"]["name"]]
        if isinstance(value, Exception):
            raise value
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=value))])


class FakeClient:
    def __init__(self, responses: Dict[str, Any]) -> None:
        self.completions = FakeCompletions(responses)
        self.chat = SimpleNamespace(completions=self.completions)


@pytest.fixture()
def fake_client() -> Callable[..., FakeClient]:
    def factory(**overrides: Any) -> FakeClient:
        responses: Dict[str, Any] = {
            "summary_response": SUMMARY_JSON,
            "flashcards_response": FLASHCARDS_JSON,
            "concepts_response": CONCEPTS_JSON,
        }
        responses.update(overrides)
        return FakeClient(responses)

    return factory


def make_transcript(words: int = 120, title: str = "Intro to ML") -> TranscriptInput:
    base = "machine learning models learn patterns from training data".split()
    text = " ".join(base[i % len(base)] for i in range(words))
    return TranscriptInput(
        audio_id="42",
        audio_title=title,
        transcript=text,
        duration="45:00",
        processed_at="2024-01-15T10:30:00Z",
    )


def make_content(
    flashcard_count: int = 3,
    answer: str = "A short answer.",
    title: str = "Intro to ML",
    concepts: Optional[list[Concept]] = None,
) -> ContentData:
    data = make_transcript(title=title)
    flashcards = [
        Flashcard(id=i, question=f"Question number {i}?", answer=answer) for i in range(1, flashcard_count + 1)
    ]
    concepts = concepts if concepts is not None else [
        Concept(term="Model", definition="A learned function.", category="Core"),
        Concept(term="Dataset", definition="Examples used for training.", category="Data"),
    ]
    summary = {
        tone: SummaryContent(
            title=f"{tone.title()} summary",
            sections=[SummarySection(heading="Overview", content="**Bold** and *italic* text.")],
        )
        for tone in ("professional", "friendly", "eli5")
    }
    return ContentData(
        audio_title=data.audio_title,
        duration=data.duration,
        processed_at=data.processed_at,
        summary=summary,
        flashcards=flashcards,
        concepts=concepts,
        study_packs=build_study_pack(data, len(flashcards), len(concepts)),
    )


@pytest.fixture()
def content() -> ContentData:
    return make_content()


@pytest.fixture()
def isolated_home(tmp_path, monkeypatch):
    """Point config, database and media directories at a temporary folder."""

    monkeypatch.setattr(config, "CONFIG_PATH", tmp_path / "config.json")
    monkeypatch.setattr(storage, "DB_PATH", tmp_path / "voiceframe.db")
    for name in config.ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    return tmp_path
