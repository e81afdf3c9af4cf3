"""Turn a transcript into summaries, flashcards and concepts using an LLM."""

from __future__ import annotations

import asyncio
import json
import logging
import math
from collections import Counter
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from .config import load_config
from .models import (
    Concept,
    ContentData,
    Flashcard,
    StudyPackMetadata,
    StudyPacks,
    StudyPackStats,
    StudyPackTemplate,
    SummaryContent,
    TranscriptInput,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-2024-08-06"
WORDS_PER_MINUTE = 200
WORDS_PER_PAGE = 300
MAX_TAGS = 4

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to",
        "for", "of", "with", "by", "is", "are", "was", "were", "be", "been",
        "have", "has", "had", "do", "does", "did", "will", "would", "could", "should",
    }
)

SUMMARY_PROMPTS = {
    "professional": (
        "Create a comprehensive professional summary of this transcript. Make it detailed, formal, "
        "and suitable for academic or professional use. Use markdown formatting for emphasis."
    ),
    "friendly": (
        "Create a friendly, conversational summary of this transcript. Make it approachable, "
        "use casual language, and include emojis where appropriate."
    ),
    "eli5": (
        'Create an "Explain Like I\'m 5" summary of this transcript. Use very simple language, '
        "analogies, and examples a child would understand."
    ),
}


class ContentGenerationError(RuntimeError):
    """Raised when any part of content generation fails."""


def _strict_schema(name: str, properties: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "json_schema",
        "json_schema": {
            "name": name,
            "strict": True,
            "schema": {
                "type": "object",
                "properties": properties,
                "required": list(properties),
                "additionalProperties": False,
            },
        },
    }


def _array_of(description: str, item_properties: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "array",
        "description": description,
        "items": {
            "type": "object",
            "properties": item_properties,
            "required": list(item_properties),
            "additionalProperties": False,
        },
    }


SUMMARY_FORMAT = _strict_schema(
    "summary_response",
    {
        "title": {"type": "string", "description": "The title for this summary tone"},
        "sections": _array_of(
            "Array of sections with headings and content",
            {
                "heading": {"type": "string", "description": "The section heading"},
                "content": {"type": "string", "description": "The section content with markdown formatting"},
            },
        ),
    },
)

FLASHCARDS_FORMAT = _strict_schema(
    "flashcards_response",
    {
        "flashcards": _array_of(
            "Array of flashcard objects",
            {
                "id": {"type": "integer", "description": "Sequential ID starting from 1"},
                "question": {"type": "string", "description": "Clear, specific question"},
                "answer": {"type": "string", "description": "Comprehensive answer"},
            },
        ),
    },
)

CONCEPTS_FORMAT = _strict_schema(
    "concepts_response",
    {
        "concepts": _array_of(
            "Array of concept objects",
            {
                "term": {"type": "string", "description": "The important term or concept"},
                "definition": {"type": "string", "description": "Clear, concise definition"},
                "category": {"type": "string", "description": "Category this concept belongs to"},
            },
        ),
    },
)


class ContentGenerator:
    """Orchestrates the completion calls behind a study pack.

    Every request is issued concurrently and joined with :func:`asyncio.gather`.
    The first failure aborts the whole batch; requests still in flight are
    left to finish on their own and their results are dropped.
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: str = DEFAULT_MODEL,
        api_key: Optional[str] = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise ContentGenerationError("An OpenAI API key is required for content generation.")
            client = AsyncOpenAI(api_key=api_key)
        self._client = client
        self.model = model

    async def generate(self, data: TranscriptInput) -> ContentData:
        logger.info("Generating content from transcript for %s", data.audio_id)
        try:
            summary, flashcards, concepts = await asyncio.gather(
                self._generate_summaries(data.transcript),
                self._generate_flashcards(data.transcript),
                self._generate_concepts(data.transcript),
            )
        except Exception as exc:
            logger.error("Content generation failed for %s: %s", data.audio_id, exc)
            raise ContentGenerationError(f"Content generation failed: {exc}") from exc

        content = ContentData(
            audio_title=data.audio_title,
            duration=data.duration,
            processed_at=data.processed_at,
            summary=summary,
            flashcards=flashcards,
            concepts=concepts,
            study_packs=build_study_pack(data, len(flashcards), len(concepts)),
        )
        logger.info(
            "Content generation completed for %s (%d flashcards, %d concepts)",
            data.audio_id,
            len(flashcards),
            len(concepts),
        )
        return content

    async def _generate_summaries(self, transcript: str) -> Dict[str, SummaryContent]:
        tones = list(SUMMARY_PROMPTS)
        results = await asyncio.gather(*(self._generate_summary_tone(tone, transcript) for tone in tones))
        return dict(zip(tones, results))

    async def _generate_summary_tone(self, tone: str, transcript: str) -> SummaryContent:
        payload = await self._complete(
            "summary",
            system="You are an expert content creator. Generate structured summary content based on the transcript provided.",
            prompt=f"{SUMMARY_PROMPTS[tone]}\n\nTranscript: {transcript}",
            response_format=SUMMARY_FORMAT,
            temperature=0.7,
            max_tokens=2000,
        )
        return SummaryContent.from_dict(payload)

    async def _generate_flashcards(self, transcript: str) -> List[Flashcard]:
        payload = await self._complete(
            "flashcards",
            system="You are an educational content expert. Generate flashcards from the provided transcript.",
            prompt=(
                "Create educational flashcards from this transcript. Create 5-8 flashcards covering the most "
                "important concepts. Make questions test understanding, not just memorization.\n\n"
                f"Transcript: {transcript}"
            ),
            response_format=FLASHCARDS_FORMAT,
            temperature=0.6,
            max_tokens=1500,
        )
        return [
            Flashcard(id=int(item["id"]), question=item["question"], answer=item["answer"])
            for item in payload["flashcards"]
        ]

    async def _generate_concepts(self, transcript: str) -> List[Concept]:
        payload = await self._complete(
            "concepts",
            system="You are a knowledge extraction expert. Extract key concepts from the provided transcript.",
            prompt=(
                "Extract key concepts and terms from this transcript. Extract 6-10 of the most important "
                "concepts with clear definitions and appropriate categories.\n\n"
                f"Transcript: {transcript}"
            ),
            response_format=CONCEPTS_FORMAT,
            temperature=0.5,
            max_tokens=1200,
        )
        return [
            Concept(term=item["term"], definition=item["definition"], category=item["category"])
            for item in payload["concepts"]
        ]

    async def _complete(
        self,
        kind: str,
        *,
        system: str,
        prompt: str,
        response_format: Dict[str, Any],
        temperature: float,
        max_tokens: int,
    ) -> Dict[str, Any]:
        completion = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            response_format=response_format,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise ContentGenerationError(f"No {kind} content generated")
        try:
            return json.loads(content)
        except json.JSONDecodeError as exc:
            logger.error("Failed to parse %s JSON: %s", kind, content)
            raise ContentGenerationError("Invalid JSON response from AI") from exc


async def generate_content_from_transcript(
    data: TranscriptInput,
    client: Optional[AsyncOpenAI] = None,
    model: Optional[str] = None,
) -> ContentData:
    """Generate the full :class:`ContentData` for a transcript."""

    if client is None:
        config = load_config()
        generator = ContentGenerator(api_key=config.openai_api_key, model=model or config.content_model)
    else:
        generator = ContentGenerator(client=client, model=model or DEFAULT_MODEL)
    return await generator.generate(data)


def count_words(text: str) -> int:
    return len(text.split())


def extract_tags(transcript: str, limit: int = MAX_TAGS) -> List[str]:
    """Return the most frequent significant words, capitalised."""

    counter: Counter[str] = Counter(
        word for word in transcript.lower().split() if len(word) > 4 and word not in STOP_WORDS
    )
    return [word[0].upper() + word[1:] for word, _ in counter.most_common(limit)]


def difficulty_level(word_count: int) -> str:
    if word_count > 2000:
        return "Advanced"
    if word_count > 1000:
        return "Intermediate"
    return "Beginner"


def default_templates() -> List[StudyPackTemplate]:
    preview = "/api/placeholder/300/400"
    return [
        StudyPackTemplate(
            id="academic",
            name="Academic Paper",
            description="Clean, scholarly design with proper citations",
            preview=preview,
            color="blue",
            features=["Table of Contents", "References", "Clean Typography"],
        ),
        StudyPackTemplate(
            id="modern",
            name="Modern Magazine",
            description="Sleek, contemporary layout with visual elements",
            preview=preview,
            color="purple",
            features=["Visual Elements", "Modern Layout", "Color Accents"],
        ),
        StudyPackTemplate(
            id="minimal",
            name="Minimal Clean",
            description="Simple, distraction-free design for focus",
            preview=preview,
            color="gray",
            features=["Minimal Design", "High Readability", "Clean Spacing"],
        ),
        StudyPackTemplate(
            id="creative",
            name="Creative Studio",
            description="Vibrant, engaging design with illustrations",
            preview=preview,
            color="emerald",
            features=["Illustrations", "Vibrant Colors", "Engaging Layout"],
        ),
    ]


def build_study_pack(data: TranscriptInput, flashcard_count: int, concept_count: int) -> StudyPacks:
    word_count = count_words(data.transcript)
    reading_minutes = math.ceil(word_count / WORDS_PER_MINUTE)

    return StudyPacks(
        metadata=StudyPackMetadata(
            title=data.audio_title,
            subtitle="Complete Study Guide",
            author="AI-Generated Content",
            tags=extract_tags(data.transcript),
            duration=data.duration,
            level=difficulty_level(word_count),
            generated_at=data.processed_at,
        ),
        templates=default_templates(),
        stats=StudyPackStats(
            total_pages=math.ceil(word_count / WORDS_PER_PAGE),
            word_count=word_count,
            reading_time=f"{reading_minutes} min",
            concepts=concept_count,
            flashcards=flashcard_count,
        ),
    )


def estimate_content_generation_cost(transcript_length: int) -> float:
    """Rough USD estimate for the four completion calls of one generation."""

    input_tokens = transcript_length * 0.7
    output_tokens = 3000
    input_cost = (input_tokens / 1000) * 0.00015
    output_cost = (output_tokens / 1000) * 0.0006
    return (input_cost + output_cost) * 4
