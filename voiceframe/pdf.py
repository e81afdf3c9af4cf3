"""Study pack PDF rendering on top of the reportlab canvas.

Layout is expressed in millimetres measured from the top-left corner of an
A4 page, with a single vertical cursor that advances as blocks are written.
Sections always begin on a fresh page. Page numbers, footers and the table
of contents page references are stamped in a final pass once the total page
count is known.
"""

from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from .models import Concept, ContentData, Flashcard, PDFGenerationOptions, SummaryContent

logger = logging.getLogger(__name__)

PAGE_WIDTH = A4[0] / mm
PAGE_HEIGHT = A4[1] / mm
MARGIN = 20.0
TOP = 20.0
LINE_HEIGHT = 5.0
FOOTER_OFFSET = 10.0
# Lowest cursor position a wrapped line may occupy before spilling over.
BOTTOM_LIMIT = PAGE_HEIGHT - MARGIN

SUMMARY_HEADROOM = 50.0
FLASHCARD_HEADROOM = 60.0
CONCEPT_HEADROOM = 40.0

REGULAR = "Helvetica"
BOLD = "Helvetica-Bold"

TEMPLATE_COLORS: Dict[str, Tuple[int, int, int]] = {
    "academic": (25, 25, 112),
    "modern": (124, 58, 237),
    "minimal": (75, 85, 99),
    "creative": (16, 185, 129),
}
METADATA_BOX_FILL = (248, 250, 252)

_BOLD_RE = re.compile(r"\*\*(.*?)\*\*")
_ITALIC_RE = re.compile(r"\*(.*?)\*")


class PDFGenerationError(RuntimeError):
    """Raised when a study pack document cannot be produced."""


class _StudyPackCanvas(canvas.Canvas):
    """Canvas that holds finished pages back until the document is complete."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._page_states: List[dict] = []

    def showPage(self) -> None:  # noqa: N802 - reportlab API
        self._page_states.append(dict(self.__dict__))
        self._startPage()

    def finish(self, stamp: Callable[["_StudyPackCanvas", int, int], None]) -> None:
        """Run ``stamp`` over every page and write the document out."""

        total = len(self._page_states)
        for number, state in enumerate(self._page_states, start=1):
            self.__dict__.update(state)
            stamp(self, number, total)
            canvas.Canvas.showPage(self)
        canvas.Canvas.save(self)


@dataclass
class _TocEntry:
    key: str
    title: str
    y: float


class StudyPackPDF:
    def __init__(self, content: ContentData, options: PDFGenerationOptions) -> None:
        self.content = content
        self.options = options
        self.color = TEMPLATE_COLORS[options.template]
        self.content_width = PAGE_WIDTH - MARGIN * 2
        self.cursor = TOP
        self.page = 1
        self._font = REGULAR
        self._size = 12.0
        self._buffer = io.BytesIO()
        self._canvas = _StudyPackCanvas(self._buffer, pagesize=A4)
        self._toc_page = 0
        self._toc: List[_TocEntry] = []
        self._section_pages: Dict[str, int] = {}

    def build(self) -> bytes:
        content = self.content
        options = self.options
        self._canvas.setTitle(content.audio_title)
        self._canvas.setAuthor(content.study_packs.metadata.author)

        self._title_page()

        self._new_page()
        self._table_of_contents()

        if options.include_summary:
            self._new_page()
            self._section_pages["summary"] = self.page
            self._summary(content.summary[options.summary_tone])
        if options.include_flashcards:
            self._new_page()
            self._section_pages["flashcards"] = self.page
            self._flashcards(content.flashcards)
        if options.include_concepts:
            self._new_page()
            self._section_pages["concepts"] = self.page
            self._concepts(content.concepts)
        if options.include_metadata:
            self._new_page()
            self._section_pages["metadata"] = self.page
            self._metadata()

        self._canvas.showPage()
        self._canvas.finish(self._stamp)
        logger.info("Rendered study pack for %r: %d pages", content.audio_title, self.page)
        return self._buffer.getvalue()

    # -- sections -------------------------------------------------------------

    def _title_page(self) -> None:
        content = self.content
        meta = content.study_packs.metadata
        stats = content.study_packs.stats

        self._font_style(BOLD, 28)
        self._write(content.audio_title, align="center")
        self.cursor += 20

        self._font_style(REGULAR, 16)
        self._write(meta.subtitle, align="center")
        self.cursor += 15

        self._canvas.setLineWidth(0.5)
        self._rule(self.cursor)
        self.cursor += 30

        box_top = self.cursor
        self._canvas.setFillColorRGB(*(c / 255 for c in METADATA_BOX_FILL))
        self._canvas.rect(
            MARGIN * mm,
            (PAGE_HEIGHT - box_top - 60) * mm,
            self.content_width * mm,
            60 * mm,
            stroke=0,
            fill=1,
        )
        self.cursor = box_top + 15
        self._font_style(REGULAR, 12)

        details = [
            f"Duration: {content.duration}",
            f"Generated: {format_date(content.processed_at)}",
            f"Level: {meta.level}",
            f"Author: {meta.author}",
            f"Source: {meta.source_type or 'Audio Transcription'}",
        ]
        if stats.study_time:
            details.append(f"Study Time: {stats.study_time}")
        for line in details:
            self._write(line, align="center")
            self.cursor += 8

        self.cursor += 10
        self._font_style(REGULAR, 10)
        self._write(f"Tags: {', '.join(meta.tags)}", align="center")

        self.cursor += 40
        self._font_style(BOLD, 14)
        self._write("Study Pack Contents", align="center")
        self.cursor += 15

        self._font_style(REGULAR, 12)
        for line in self._included_contents():
            self._write(line, align="center")
            self.cursor += 8

    def _included_contents(self) -> List[str]:
        items = []
        if self.options.include_summary:
            items.append(f"• Summary Notes ({self.options.summary_tone} tone)")
        if self.options.include_flashcards:
            items.append(f"• {len(self.content.flashcards)} Flashcards")
        if self.options.include_concepts:
            items.append(f"• {len(self.content.concepts)} Key Concepts")
        return items

    def _table_of_contents(self) -> None:
        self._toc_page = self.page
        self._font_style(BOLD, 20)
        self._write("Table of Contents")
        self.cursor += 20

        entries = [
            ("summary", f"Summary Notes ({self.options.summary_tone})", self.options.include_summary),
            ("flashcards", "Flashcards", self.options.include_flashcards),
            ("concepts", "Key Concepts", self.options.include_concepts),
            ("metadata", "Study Metadata", self.options.include_metadata),
        ]
        for key, title, included in entries:
            if not included:
                continue
            # Drawn in the final pass, once section start pages are known.
            self._toc.append(_TocEntry(key=key, title=title, y=self.cursor))
            self.cursor += LINE_HEIGHT + 10

    def _summary(self, summary: SummaryContent) -> None:
        self._font_style(BOLD, 20)
        self._write("Summary Notes")
        self.cursor += 15

        self._font_style(BOLD, 16)
        self._write(summary.title)
        self.cursor += 15

        for section in summary.sections:
            body = strip_markdown(section.content)
            needed = self._measure(section.heading, BOLD, 14) + 10 + self._measure(body, REGULAR, 11)
            self._ensure_room(SUMMARY_HEADROOM, needed)

            self._font_style(BOLD, 14)
            self._write(section.heading)
            self.cursor += 10

            self._font_style(REGULAR, 11)
            self._write(body)
            self.cursor += 15

    def _flashcards(self, flashcards: List[Flashcard]) -> None:
        self._font_style(BOLD, 20)
        self._write("Flashcards")
        self.cursor += 20

        for index, card in enumerate(flashcards):
            question = f"Q: {card.question}"
            answer = f"A: {card.answer}"
            needed = (
                LINE_HEIGHT + 10
                + self._measure(question, BOLD, 11) + 8
                + self._measure(answer, REGULAR, 11)
            )
            self._ensure_room(FLASHCARD_HEADROOM, needed)

            self._font_style(BOLD, 12)
            self._write(f"Card {card.id}")
            self.cursor += 10

            self._font_style(BOLD, 11)
            self._write(question)
            self.cursor += 8

            self._font_style(REGULAR, 11)
            self._write(answer)
            self.cursor += 15

            if index < len(flashcards) - 1:
                self._canvas.setLineWidth(0.1)
                self._rule(self.cursor)
                self.cursor += 10

    def _concepts(self, concepts: List[Concept]) -> None:
        self._font_style(BOLD, 20)
        self._write("Key Concepts")
        self.cursor += 20

        for category, members in group_concepts(concepts).items():
            self._ensure_room(CONCEPT_HEADROOM, self._measure(category, BOLD, 14) + 12)
            self._font_style(BOLD, 14)
            self._write(category)
            self.cursor += 12

            for concept in members:
                term = f"• {concept.term}"
                needed = self._measure(term, BOLD, 12) + 8 + self._measure(concept.definition, REGULAR, 11, indent=25)
                self._ensure_room(CONCEPT_HEADROOM, needed)

                self._font_style(BOLD, 12)
                self._write(term)
                self.cursor += 8

                self._font_style(REGULAR, 11)
                self._write(concept.definition, indent=25)
                self.cursor += 12

            self.cursor += 5

    def _metadata(self) -> None:
        content = self.content
        meta = content.study_packs.metadata
        stats = content.study_packs.stats

        self._font_style(BOLD, 20)
        self._write("Study Metadata")
        self.cursor += 20

        self._font_style(BOLD, 14)
        self._write("Statistics")
        self.cursor += 12

        lines = [
            f"Total Pages: {stats.total_pages}",
            f"Word Count: {stats.word_count:,}",
            f"Reading Time: {stats.reading_time}",
        ]
        if stats.study_time:
            lines.append(f"Study Time: {stats.study_time}")
        lines.append(f"Concepts: {stats.concepts}")
        lines.append(f"Flashcards: {stats.flashcards}")
        if stats.sections:
            lines.append(f"Sections: {stats.sections}")
        self._bullets(lines)

        self.cursor += 10
        self._font_style(BOLD, 14)
        self._write("Generation Information")
        self.cursor += 12

        info = [
            f"Generated: {format_datetime(content.processed_at)}",
            f"Source: {content.audio_title}",
            f"Duration: {content.duration}",
            f"Level: {meta.level}",
            f"Content Type: {meta.source_type or 'Audio Transcription'}",
        ]
        if meta.word_complexity:
            info.append(f"Complexity: {meta.word_complexity}")
        self._bullets(info)

    def _bullets(self, lines: List[str]) -> None:
        self._font_style(REGULAR, 11)
        for line in lines:
            self._write(f"• {line}")
            self.cursor += 8

    # -- final pass -----------------------------------------------------------

    def _stamp(self, pdf: _StudyPackCanvas, number: int, total: int) -> None:
        self._apply_color(pdf)
        if number == self._toc_page:
            pdf.setFont(REGULAR, 12)
            for entry in self._toc:
                dots = "." * max(1, 60 - len(entry.title))
                target = self._section_pages[entry.key]
                pdf.drawString(MARGIN * mm, self._baseline(entry.y), f"{entry.title} {dots} {target}")

        pdf.setFont(REGULAR, 10)
        footer_y = FOOTER_OFFSET * mm
        pdf.drawRightString((PAGE_WIDTH - MARGIN) * mm, footer_y, f"{number} / {total}")
        pdf.drawString(MARGIN * mm, footer_y, f"Generated from: {self.content.audio_title}")

    # -- primitives -----------------------------------------------------------

    def _new_page(self) -> None:
        self._canvas.showPage()
        self.page += 1
        self.cursor = TOP

    def _ensure_room(self, headroom: float, needed: float = 0.0) -> None:
        """Start a new page when the next block would not fit on this one."""

        if self.cursor <= TOP:
            return
        past_threshold = self.cursor > PAGE_HEIGHT - headroom
        # Blocks taller than a whole page are left to spill over from here.
        fits_on_page = needed <= BOTTOM_LIMIT - TOP
        would_overflow = fits_on_page and self.cursor + needed > BOTTOM_LIMIT
        if past_threshold or would_overflow:
            self._new_page()

    def _font_style(self, font: str, size: float) -> None:
        self._font = font
        self._size = size

    def _apply_color(self, pdf: canvas.Canvas) -> None:
        r, g, b = self.color
        pdf.setFillColorRGB(r / 255, g / 255, b / 255)
        pdf.setStrokeColorRGB(r / 255, g / 255, b / 255)

    def _wrap(self, text: str, font: str, size: float, indent: float = 0.0) -> List[str]:
        return simpleSplit(text or "", font, size, (self.content_width - indent) * mm) or [""]

    def _measure(self, text: str, font: str, size: float, indent: float = 0.0) -> float:
        return len(self._wrap(text, font, size, indent)) * LINE_HEIGHT

    def _baseline(self, y: float) -> float:
        return (PAGE_HEIGHT - y) * mm

    def _rule(self, y: float) -> None:
        self._apply_color(self._canvas)
        self._canvas.line(MARGIN * mm, self._baseline(y), (PAGE_WIDTH - MARGIN) * mm, self._baseline(y))

    def _write(self, text: str, align: str = "left", indent: float = 0.0) -> None:
        """Draw wrapped text at the cursor and move the cursor below it.

        Lines that would fall past the bottom margin continue at the top of a
        new page.
        """

        lines = self._wrap(text, self._font, self._size, indent)
        y = self.cursor
        for line in lines:
            if y > BOTTOM_LIMIT:
                self._new_page()
                y = self.cursor
            self._apply_color(self._canvas)
            self._canvas.setFont(self._font, self._size)
            if align == "center":
                self._canvas.drawCentredString(PAGE_WIDTH / 2 * mm, self._baseline(y), line)
            else:
                self._canvas.drawString((MARGIN + indent) * mm, self._baseline(y), line)
            y += LINE_HEIGHT
        self.cursor = y


def strip_markdown(text: str) -> str:
    return _ITALIC_RE.sub(r"\1", _BOLD_RE.sub(r"\1", text))


def group_concepts(concepts: List[Concept]) -> Dict[str, List[Concept]]:
    """Group concepts by category, keeping first-seen category order."""

    groups: Dict[str, List[Concept]] = {}
    for concept in concepts:
        groups.setdefault(concept.category, []).append(concept)
    return groups


def _parse_timestamp(value: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None


def format_date(value: str) -> str:
    parsed = _parse_timestamp(value)
    if parsed is None:
        return value
    return f"{parsed.month}/{parsed.day}/{parsed.year}"


def format_datetime(value: str) -> str:
    parsed = _parse_timestamp(value)
    if parsed is None:
        return value
    return f"{format_date(value)}, {parsed.strftime('%I:%M:%S %p').lstrip('0')}"


def generate_study_pack_pdf(content: ContentData, options: Optional[PDFGenerationOptions] = None) -> bytes:
    """Render ``content`` as a study pack PDF and return the document bytes."""

    options = options or PDFGenerationOptions()
    try:
        return StudyPackPDF(content, options).build()
    except Exception as exc:
        logger.error("PDF generation failed for %r: %s", content.audio_title, exc)
        raise PDFGenerationError(f"PDF generation failed: {exc}") from exc


def study_pack_filename(original_filename: str, template: str) -> str:
    stem = re.sub(r"\.[^/.]+$", "", original_filename)
    stem = re.sub(r"[^a-zA-Z0-9\s]", "", stem)
    stem = re.sub(r"\s+", "_", stem)[:50]
    return f"{stem}_study_pack_{template}.pdf"
