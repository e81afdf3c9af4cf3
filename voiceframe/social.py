"""Editable social-content drafts derived from generated text."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from .generation import count_words

BULLET_MARKERS = ("•", "→")
QUOTE_MARKS = ('"', "“", "”")

DEFAULT_POSTING_TIMES = ["Tuesday 8-10 AM", "Wednesday 12-2 PM", "Thursday 9-11 AM"]
DEFAULT_SEO_KEYWORDS = [
    "voice technology",
    "business innovation",
    "AI",
    "productivity",
    "digital transformation",
]


@dataclass(slots=True)
class LinkedInPost:
    id: str
    headline: str
    content: str
    summary: str
    character_count: int
    suggested_times: List[str] = field(default_factory=list)


@dataclass(slots=True)
class Tweet:
    id: str
    content: str
    character_count: int
    order: int


@dataclass(slots=True)
class TwitterThread:
    tweets: List[Tweet] = field(default_factory=list)


@dataclass(slots=True)
class BlogPost:
    id: str
    title: str
    meta_description: str
    content: str
    tone: str
    length: str
    seo_keywords: List[str]
    estimated_read_time: int
    word_count: int


@dataclass(slots=True)
class Article:
    id: str
    headline: str
    subheading: str
    byline: str
    dateline: str
    content: str
    template: str
    pull_quotes: List[str]
    citations: List[str]
    word_count: int
    fact_check_notes: List[str] = field(default_factory=list)


@dataclass(slots=True)
class Newsletter:
    id: str
    subject_line: str
    preheader_text: str
    greeting: str
    main_content: str
    call_to_action: str
    footer: str
    personalization_tokens: List[str]
    subject_line_variants: List[str]
    spam_score: float
    estimated_open_rate: str


def split_paragraphs(text: str) -> List[str]:
    return [section for section in text.split("\n\n") if section.strip()]


def _lead_paragraph(sections: List[str], fallback: str, default: str) -> str:
    if not sections:
        return default
    return fallback if len(sections[0]) > 100 else sections[0]


def parse_linkedin_post(text: str) -> LinkedInPost:
    sections = split_paragraphs(text)
    content = "\n\n".join(sections)
    summary = content[:200] + "..." if len(content) > 200 else content
    return LinkedInPost(
        id="linkedin-post-1",
        headline=_lead_paragraph(sections, "Transform Your Business with Voice Technology", "Professional Insight"),
        content=content,
        summary=summary,
        character_count=len(content),
        suggested_times=list(DEFAULT_POSTING_TIMES),
    )


def parse_twitter_thread(text: str) -> TwitterThread:
    """Split text into tweets, one per paragraph.

    Paragraphs containing bullet markers keep their first line plus every
    bullet line; other lines in such paragraphs are dropped.
    """

    tweets: List[Tweet] = []
    for section in split_paragraphs(text):
        trimmed = section.strip()
        if any(marker in trimmed for marker in BULLET_MARKERS):
            lines = trimmed.split("\n")
            bullets = [line for line in lines[1:] if line.strip().startswith(BULLET_MARKERS)]
            body = "\n".join([lines[0], *bullets])
        else:
            body = trimmed
        tweets.append(
            Tweet(id=f"tweet-{len(tweets)}", content=body, character_count=len(body), order=len(tweets) + 1)
        )
    return TwitterThread(tweets=tweets)


def blog_length(word_count: int) -> str:
    if word_count < 500:
        return "short"
    if word_count < 1500:
        return "medium"
    return "long"


def parse_blog_post(text: str) -> BlogPost:
    sections = split_paragraphs(text)
    content = "\n\n".join(sections)
    words = count_words(content)
    return BlogPost(
        id="blog-post-1",
        title=_lead_paragraph(sections, "The Future of Voice Technology in Business", "Professional Blog Post"),
        meta_description=content[:160] + "...",
        content=content,
        tone="professional",
        length=blog_length(words),
        seo_keywords=list(DEFAULT_SEO_KEYWORDS),
        estimated_read_time=math.ceil(words / 200),
        word_count=words,
    )


def format_dateline(day: date) -> str:
    return f"{day:%A}, {day:%B} {day.day}, {day.year}"


def parse_article(text: str, today: Optional[date] = None) -> Article:
    sections = split_paragraphs(text)
    content = "\n\n".join(sections)
    quotes = [section for section in sections if any(mark in section for mark in QUOTE_MARKS)][:2]
    return Article(
        id="article-1",
        headline=_lead_paragraph(
            sections,
            "Voice Technology Revolutionizes Business Operations",
            "Breaking: Industry Innovation",
        ),
        subheading="Industry leaders report significant productivity gains from AI-powered voice solutions",
        byline="By [Your Name]",
        dateline=format_dateline(today or date.today()),
        content=content,
        template="feature",
        pull_quotes=quotes or ["Technology is reshaping how we work and communicate"],
        citations=["Industry Research Report 2024", "Voice Technology Survey"],
        word_count=count_words(content),
    )


def parse_newsletter(text: str) -> Newsletter:
    return Newsletter(
        id="newsletter-1",
        subject_line="Transform Your Business with Voice Technology",
        preheader_text="Discover how leading companies are increasing productivity by 70%",
        greeting="Hi {FirstName},",
        main_content="\n\n".join(split_paragraphs(text)),
        call_to_action=(
            "Ready to revolutionize your workflow? Get started with voice technology today and join "
            "thousands of businesses already seeing results."
        ),
        footer="You're receiving this email because you subscribed to VoiceFrame updates. Unsubscribe anytime.",
        personalization_tokens=["{FirstName}", "{CompanyName}", "{Industry}"],
        subject_line_variants=[
            "Voice Technology: The Business Game-Changer You Can't Ignore",
            "How Smart Companies Are Using Voice Tech to Boost Productivity 70%",
            "The Future of Work is Here: Voice Technology Revolution",
            "Why Your Competitors Are Already Using Voice Technology",
            "Exclusive: Voice Tech Success Stories from Industry Leaders",
        ],
        spam_score=2.1,
        estimated_open_rate="24-28%",
    )
