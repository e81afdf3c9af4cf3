"""Plain-text and CSV renderings of drafts, flashcards and concepts."""

from __future__ import annotations

from functools import singledispatch
from typing import Iterable, List

from .models import Concept, Flashcard
from .social import Article, BlogPost, LinkedInPost, Newsletter, TwitterThread

EXPORT_FORMATS = ("txt", "csv")

FILENAME_STEMS = {
    LinkedInPost: "linkedin-post",
    TwitterThread: "twitter-thread",
    BlogPost: "blog-post",
    Article: "article",
    Newsletter: "newsletter",
}


def csv_field(value: object) -> str:
    """Quote a CSV field, doubling any embedded quote characters."""

    return '"' + str(value).replace('"', '""') + '"'


def _field_rows(rows: Iterable[tuple]) -> str:
    lines = ["Field,Content"]
    lines.extend(f"{csv_field(name)},{csv_field(value)}" for name, value in rows)
    return "\n".join(lines)


@singledispatch
def export_as_text(item: object) -> str:
    raise TypeError(f"Cannot export {type(item).__name__} as text")


@singledispatch
def export_as_csv(item: object) -> str:
    raise TypeError(f"Cannot export {type(item).__name__} as CSV")


@export_as_text.register
def _(post: LinkedInPost) -> str:
    return f"{post.headline}\n\n{post.content}\n\nOptimal posting times: {', '.join(post.suggested_times)}"


@export_as_csv.register
def _(post: LinkedInPost) -> str:
    return _field_rows(
        [
            ("Headline", post.headline),
            ("Content", post.content),
            ("Character Count", post.character_count),
            ("Suggested Times", "; ".join(post.suggested_times)),
        ]
    )


@export_as_text.register
def _(thread: TwitterThread) -> str:
    total = len(thread.tweets)
    return "\n\n".join(f"{index}/{total} {tweet.content}" for index, tweet in enumerate(thread.tweets, start=1))


@export_as_csv.register
def _(thread: TwitterThread) -> str:
    lines = ["Tweet Number,Content,Character Count"]
    lines.extend(f"{tweet.order},{csv_field(tweet.content)},{tweet.character_count}" for tweet in thread.tweets)
    return "\n".join(lines)


@export_as_text.register
def _(post: BlogPost) -> str:
    return (
        f"{post.title}\n\n{post.content}\n\n"
        f"Meta Description: {post.meta_description}\n"
        f"Keywords: {', '.join(post.seo_keywords)}\n"
        f"Word Count: {post.word_count}\n"
        f"Estimated Read Time: {post.estimated_read_time} min"
    )


@export_as_csv.register
def _(post: BlogPost) -> str:
    return _field_rows(
        [
            ("Title", post.title),
            ("Meta Description", post.meta_description),
            ("Content", post.content),
            ("Tone", post.tone),
            ("Length", post.length),
            ("Keywords", "; ".join(post.seo_keywords)),
            ("Word Count", post.word_count),
            ("Read Time", f"{post.estimated_read_time} minutes"),
        ]
    )


@export_as_text.register
def _(article: Article) -> str:
    citations = "\n".join(article.citations)
    return (
        f"{article.headline}\n{article.subheading}\n\n"
        f"{article.byline}\n{article.dateline}\n\n"
        f"{article.content}\n\n"
        f"Citations:\n{citations}\n\n"
        f"Word Count: {article.word_count}"
    )


@export_as_csv.register
def _(article: Article) -> str:
    return _field_rows(
        [
            ("Headline", article.headline),
            ("Subheading", article.subheading),
            ("Byline", article.byline),
            ("Dateline", article.dateline),
            ("Content", article.content),
            ("Template", article.template),
            ("Word Count", article.word_count),
            ("Pull Quotes", "; ".join(article.pull_quotes)),
            ("Citations", "; ".join(article.citations)),
        ]
    )


@export_as_text.register
def _(newsletter: Newsletter) -> str:
    return (
        f"Subject: {newsletter.subject_line}\n"
        f"Preheader: {newsletter.preheader_text}\n\n"
        f"{newsletter.greeting}\n\n"
        f"{newsletter.main_content}\n\n"
        f"{newsletter.call_to_action}\n\n"
        f"---\n{newsletter.footer}"
    )


@export_as_csv.register
def _(newsletter: Newsletter) -> str:
    return _field_rows(
        [
            ("Subject Line", newsletter.subject_line),
            ("Preheader", newsletter.preheader_text),
            ("Greeting", newsletter.greeting),
            ("Main Content", newsletter.main_content),
            ("CTA", newsletter.call_to_action),
            ("Footer", newsletter.footer),
            ("Spam Score", newsletter.spam_score),
            ("Est. Open Rate", newsletter.estimated_open_rate),
        ]
    )


def flashcards_as_text(cards: List[Flashcard]) -> str:
    return "\n\n".join(f"Card {card.id}\nQ: {card.question}\nA: {card.answer}" for card in cards)


def flashcards_as_csv(cards: List[Flashcard]) -> str:
    lines = ["ID,Question,Answer"]
    lines.extend(f"{card.id},{csv_field(card.question)},{csv_field(card.answer)}" for card in cards)
    return "\n".join(lines)


def concepts_as_text(concepts: List[Concept]) -> str:
    return "\n\n".join(f"{c.term} ({c.category})\n{c.definition}" for c in concepts)


def concepts_as_csv(concepts: List[Concept]) -> str:
    lines = ["Term,Definition,Category"]
    lines.extend(f"{csv_field(c.term)},{csv_field(c.definition)},{csv_field(c.category)}" for c in concepts)
    return "\n".join(lines)


def export_filename(item: object, fmt: str) -> str:
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {fmt}")
    try:
        stem = FILENAME_STEMS[type(item)]
    except KeyError as exc:
        raise TypeError(f"No export filename for {type(item).__name__}") from exc
    return f"{stem}.{fmt}"
