"""Heuristic size reduction for document text sent inline to a backend."""

from __future__ import annotations

import logging
import re

from impersonaid.config import ReductionConfig
from impersonaid.types import ReductionBudget

logger = logging.getLogger(__name__)

ELLIPSIS_MARKER = "\n...\n"

# Markdown ATX headings or HTML heading tags. `$` is end-of-text on purpose:
# a heading on the last line has no trailing newline.
_HEADING_PATTERN = re.compile(
    r"#{1,6}\s+(.+?)(?=\n|$)|<h[1-6][^>]*>(.+?)</h[1-6]>",
    flags=re.IGNORECASE,
)
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_WHITESPACE_RUN = re.compile(r"\s+")


def clean_text(text: str) -> str:
    """Normalize line breaks in fetched text.

    Escaped `\\n` sequences become real newlines, carriage returns (escaped or
    literal) are dropped and runs of three or more newlines collapse to a
    blank line.
    """

    cleaned = text.replace("\\n", "\n").replace("\\r", "").replace("\r", "")
    return _EXCESS_NEWLINES.sub("\n\n", cleaned).strip()


class ContentReducer:
    """Shrinks document text to a character budget.

    Design notes:
    1. Clean first.
       `clean_text` always runs, so text under budget still arrives normalized.

    2. Extract second.
       Oversized text is split at heading markers. The first section (usually
       the introduction) gets `first_section_ratio` of the budget, the middle
       sections share `middle_sections_ratio` of what is left, and the last
       section (usually the conclusion) takes the remainder. Every section is
       pre-capped at `section_char_cap` characters when it is collected. Text
       without headings keeps its head (`head_ratio`) and tail (`tail_ratio`).

    3. Compress last.
       If the extraction is still over budget, whitespace is compressed once.
       Past `aggressive_threshold_ratio` times the budget every whitespace run
       becomes a single space. The result is best effort and may still exceed
       `max_chars` slightly.

    The reducer is pure and total: malformed markup never raises.
    """

    def __init__(self, config: ReductionConfig | None = None) -> None:
        self.config = config or ReductionConfig()

    def default_budget(self) -> ReductionBudget:
        return self.config.budget()

    def reduce(self, text: str, budget: ReductionBudget | None = None) -> str:
        budget = budget or self.default_budget()
        cleaned = clean_text(text)
        if len(cleaned) <= budget.max_chars:
            return cleaned

        logger.info(
            "Document is large (%d characters), extracting important content",
            len(cleaned),
        )
        extracted = self.extract(cleaned, budget.max_chars)
        logger.info("Extracted important content (%d characters)", len(extracted))
        if len(extracted) <= budget.max_chars:
            return extracted

        aggressive = len(extracted) > budget.max_chars * budget.aggressive_threshold_ratio
        compressed = self.compress(extracted, aggressive=aggressive)
        logger.info(
            "Compressed content to %d characters (aggressive=%s)",
            len(compressed),
            aggressive,
        )
        return compressed

    def extract(self, text: str, max_chars: int) -> str:
        """Keep the most informative parts of `text` within roughly `max_chars`."""

        if len(text) <= max_chars:
            return text

        sections = self._sections(text)
        if not sections:
            head = text[: int(max_chars * self.config.head_ratio)]
            tail_length = int(max_chars * self.config.tail_ratio)
            tail = text[len(text) - tail_length :] if tail_length else ""
            return head + ELLIPSIS_MARKER + tail

        first = sections[0][: int(max_chars * self.config.first_section_ratio)]
        parts = [first]
        remaining = max_chars - len(first)

        middle = sections[1:-1]
        if middle and remaining > 0:
            per_section = int(remaining * self.config.middle_sections_ratio / len(middle))
            for section in middle:
                if remaining <= 0:
                    break
                trimmed = section[:per_section]
                parts.append(trimmed)
                remaining -= len(trimmed) + len(ELLIPSIS_MARKER)

        if len(sections) > 1 and remaining > 0:
            parts.append(sections[-1][:remaining])

        return ELLIPSIS_MARKER.join(parts)

    @staticmethod
    def compress(text: str, *, aggressive: bool = False) -> str:
        compressed = _EXCESS_NEWLINES.sub("\n\n", text.replace("\r", ""))
        if aggressive:
            compressed = _WHITESPACE_RUN.sub(" ", compressed).strip()
        return compressed

    def _sections(self, text: str) -> list[str]:
        positions = [match.start() for match in _HEADING_PATTERN.finditer(text)]
        sections: list[str] = []
        for i, start in enumerate(positions):
            end = positions[i + 1] if i + 1 < len(positions) else len(text)
            sections.append(text[start:end][: self.config.section_char_cap])
        return sections
