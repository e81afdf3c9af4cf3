"""Dataclasses describing transcripts, generated content and user settings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

SUMMARY_TONES = ("professional", "friendly", "eli5")
PDF_TEMPLATES = ("academic", "modern", "minimal", "creative")


@dataclass(slots=True)
class TranscriptMetadata:
    word_count: Optional[int] = None
    processing_time: Optional[float] = None
    model: Optional[str] = None


@dataclass(slots=True)
class TranscriptInput:
    """A finished transcription handed to the content generator."""

    audio_id: str
    audio_title: str
    transcript: str
    duration: str
    processed_at: str
    transcript_metadata: Optional[TranscriptMetadata] = None


@dataclass(slots=True)
class SummarySection:
    heading: str
    content: str


@dataclass(slots=True)
class SummaryContent:
    title: str
    sections: List[SummarySection] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "SummaryContent":
        return cls(
            title=payload["title"],
            sections=[SummarySection(heading=s["heading"], content=s["content"]) for s in payload["sections"]],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "sections": [{"heading": s.heading, "content": s.content} for s in self.sections],
        }


@dataclass(slots=True)
class Flashcard:
    id: int
    question: str
    answer: str


@dataclass(slots=True)
class Concept:
    term: str
    definition: str
    category: str


@dataclass(slots=True)
class StudyPackMetadata:
    title: str
    subtitle: str
    author: str
    tags: List[str]
    duration: str
    level: str
    generated_at: str
    source_type: Optional[str] = None
    word_complexity: Optional[str] = None


@dataclass(slots=True)
class StudyPackTemplate:
    """A cosmetic preset offered to the user when exporting a study pack."""

    id: str
    name: str
    description: str
    preview: str
    color: str
    features: List[str] = field(default_factory=list)


@dataclass(slots=True)
class StudyPackStats:
    total_pages: int
    word_count: int
    reading_time: str
    concepts: int
    flashcards: int
    study_time: Optional[str] = None
    sections: Optional[int] = None


@dataclass(slots=True)
class StudyPacks:
    metadata: StudyPackMetadata
    templates: List[StudyPackTemplate]
    stats: StudyPackStats


@dataclass(slots=True)
class ContentData:
    """Everything generated from a single transcript.

    Instances are built once by the content generator and treated as
    read-only afterwards. ``to_dict``/``from_dict`` speak the camelCase JSON
    shape that is persisted and served over HTTP.
    """

    audio_title: str
    duration: str
    processed_at: str
    summary: Dict[str, SummaryContent]
    flashcards: List[Flashcard]
    concepts: List[Concept]
    study_packs: StudyPacks

    def to_dict(self) -> Dict[str, Any]:
        meta = self.study_packs.metadata
        stats = self.study_packs.stats
        metadata: Dict[str, Any] = {
            "title": meta.title,
            "subtitle": meta.subtitle,
            "author": meta.author,
            "tags": list(meta.tags),
            "duration": meta.duration,
            "level": meta.level,
            "generatedAt": meta.generated_at,
        }
        if meta.source_type is not None:
            metadata["sourceType"] = meta.source_type
        if meta.word_complexity is not None:
            metadata["wordComplexity"] = meta.word_complexity

        stats_payload: Dict[str, Any] = {
            "totalPages": stats.total_pages,
            "wordCount": stats.word_count,
            "readingTime": stats.reading_time,
            "concepts": stats.concepts,
            "flashcards": stats.flashcards,
        }
        if stats.study_time is not None:
            stats_payload["studyTime"] = stats.study_time
        if stats.sections is not None:
            stats_payload["sections"] = stats.sections

        return {
            "audioTitle": self.audio_title,
            "duration": self.duration,
            "processedAt": self.processed_at,
            "summary": {tone: summary.to_dict() for tone, summary in self.summary.items()},
            "flashcards": [{"id": c.id, "question": c.question, "answer": c.answer} for c in self.flashcards],
            "concepts": [
                {"term": c.term, "definition": c.definition, "category": c.category} for c in self.concepts
            ],
            "studyPacks": {
                "metadata": metadata,
                "templates": [
                    {
                        "id": t.id,
                        "name": t.name,
                        "description": t.description,
                        "preview": t.preview,
                        "color": t.color,
                        "features": list(t.features),
                    }
                    for t in self.study_packs.templates
                ],
                "stats": stats_payload,
            },
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ContentData":
        if not payload.get("summary") or payload.get("flashcards") is None or payload.get("concepts") is None:
            raise ValueError("Incomplete content data. Please regenerate content.")

        packs = payload.get("studyPacks") or {}
        meta = packs.get("metadata") or {}
        stats = packs.get("stats") or {}
        flashcards = [Flashcard(id=int(c["id"]), question=c["question"], answer=c["answer"]) for c in payload["flashcards"]]
        concepts = [
            Concept(term=c["term"], definition=c["definition"], category=c.get("category") or "General")
            for c in payload["concepts"]
        ]

        return cls(
            audio_title=payload.get("audioTitle", ""),
            duration=payload.get("duration", ""),
            processed_at=payload.get("processedAt", ""),
            summary={tone: SummaryContent.from_dict(payload["summary"][tone]) for tone in SUMMARY_TONES},
            flashcards=flashcards,
            concepts=concepts,
            study_packs=StudyPacks(
                metadata=StudyPackMetadata(
                    title=meta.get("title", payload.get("audioTitle", "")),
                    subtitle=meta.get("subtitle", ""),
                    author=meta.get("author", ""),
                    tags=list(meta.get("tags", [])),
                    duration=meta.get("duration", payload.get("duration", "")),
                    level=meta.get("level", ""),
                    generated_at=meta.get("generatedAt", payload.get("processedAt", "")),
                    source_type=meta.get("sourceType"),
                    word_complexity=meta.get("wordComplexity"),
                ),
                templates=[
                    StudyPackTemplate(
                        id=t["id"],
                        name=t["name"],
                        description=t.get("description", ""),
                        preview=t.get("preview", ""),
                        color=t.get("color", ""),
                        features=list(t.get("features", [])),
                    )
                    for t in packs.get("templates", [])
                ],
                stats=StudyPackStats(
                    total_pages=int(stats.get("totalPages", 0)),
                    word_count=int(stats.get("wordCount", 0)),
                    reading_time=stats.get("readingTime", ""),
                    concepts=int(stats.get("concepts", len(concepts))),
                    flashcards=int(stats.get("flashcards", len(flashcards))),
                    study_time=stats.get("studyTime"),
                    sections=stats.get("sections"),
                ),
            ),
        )


@dataclass(slots=True)
class PDFGenerationOptions:
    """Per-export choices for the study pack PDF."""

    template: str = "academic"
    include_summary: bool = True
    summary_tone: str = "professional"
    include_flashcards: bool = True
    include_concepts: bool = True
    include_metadata: bool = True

    def __post_init__(self) -> None:
        if self.template not in PDF_TEMPLATES:
            raise ValueError(f"Unknown study pack template: {self.template}")
        if self.summary_tone not in SUMMARY_TONES:
            raise ValueError(f"Unknown summary tone: {self.summary_tone}")


@dataclass(slots=True)
class AudioRecord:
    """Represents a stored, transcribed audio upload."""

    id: int
    title: str
    original_filename: str
    audio_path: Optional[str]
    transcript: str
    duration: str
    created_at: datetime
    updated_at: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Config:
    """User configuration stored on disk."""

    openai_api_key: Optional[str] = None
    content_model: str = "gpt-4o-2024-08-06"
    transcription_model: str = "whisper-1"
    default_template: str = "academic"
    server_url: Optional[str] = None
    server_token: Optional[str] = None
    verify_ssl: bool = True
    api_timeout: float = 120.0
