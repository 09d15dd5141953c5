"""
Document parser for course source files.

Turns a Word document (or its markdown/plain-text export) into a flat,
position-ordered list of ParsedNode objects. No tree is built here;
OutlineMapper and QuestionExtractor consume the flat list.

Heading levels are normalized with keyword tables so that inconsistent
Word styles still produce a Track (1) / Module (2) / Lesson (3) outline.
"""

from __future__ import annotations

import re
import zipfile
from collections import Counter
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from docx.oxml.ns import qn
from docx.table import Table
from docx.text.paragraph import Paragraph
from loguru import logger

from ceprep.errors import DocumentUnreadable


class NodeKind(str, Enum):
    """What a parsed node represents."""

    HEADING = "heading"
    CONTENT = "content"
    QUESTION = "question"
    ANSWER = "answer"


@dataclass(frozen=True)
class ParsedNode:
    """One structural element of the source document, in document order."""

    level: int  # 0 for body text, 1-5 for headings
    text: str
    kind: NodeKind
    raw_markup: str | None = None
    page_number: int | None = None

    @property
    def is_heading(self) -> bool:
        return self.kind == NodeKind.HEADING


# =============================================================================
# Keyword tables
# =============================================================================

# Curated course areas; any heading matching one becomes a Track.
TRACK_PATTERNS: list[re.Pattern] = [
    re.compile(r"^(ONE|TWO|THREE|FOUR|FIVE|SIX|SEVEN|EIGHT|NINE|TEN)\b"),
    re.compile(r"Law\s*(&|and)?\s*Ethics", re.IGNORECASE),
    re.compile(r"Health\s+Insurance", re.IGNORECASE),
    re.compile(r"Managed\s+Care", re.IGNORECASE),
    re.compile(r"Disability\s+Income", re.IGNORECASE),
    re.compile(r"Social\s+Insurance", re.IGNORECASE),
    re.compile(r"Life\s+Insurance", re.IGNORECASE),
    re.compile(r"Annuities", re.IGNORECASE),
    re.compile(r"Variable\s+Contracts", re.IGNORECASE),
    re.compile(r"\bFIGA\b", re.IGNORECASE),
    re.compile(r"DFS\s+Division", re.IGNORECASE),
    re.compile(r"CFO\s+Buyer", re.IGNORECASE),
    re.compile(r"\bMedicare\b", re.IGNORECASE),
    re.compile(r"\bOASDI\b", re.IGNORECASE),
    re.compile(r"iPower\s+Moves", re.IGNORECASE),
]

# Ordered (pattern, level) rules applied after the track check. First match wins.
HEADING_LEVEL_RULES: list[tuple[re.Pattern, int]] = [
    (re.compile(r"^\d+\.\d+\.\d+"), 3),
    (re.compile(r"^\d+\.\d+\b"), 2),
    (re.compile(r"\b(Overview|Introduction|Section|Module)\b"), 2),
    (re.compile(r"\b(Lesson|Topic)\b"), 3),
    (re.compile(r"^\[|\b(Identify|Define|Contrast)\b"), 3),
]

QUESTION_PATTERNS: list[re.Pattern] = [
    re.compile(r"^\d+[.)]\s+\S"),
    re.compile(r"^Q\d+[:.]", re.IGNORECASE),
    re.compile(r"^Question\s+\d+", re.IGNORECASE),
    re.compile(r"Which of the following", re.IGNORECASE),
    re.compile(r"\bWhat is\b", re.IGNORECASE),
    re.compile(r"True or False", re.IGNORECASE),
]

ANSWER_PATTERNS: list[re.Pattern] = [
    re.compile(r"^[A-D][).\]:]\s+", re.IGNORECASE),
    re.compile(r"^(Answer|Correct(\s+answer)?)\s*:", re.IGNORECASE),
]

PAGE_MARKER = re.compile(r"^Page\s+(\d+)$", re.IGNORECASE)
MARKDOWN_HEADING = re.compile(r"^(#{1,6})\s+(.+?)\s*#*$")

# Word paragraph styles that carry a heading level.
STYLE_LEVELS: dict[str, int] = {
    "Title": 1,
    "Subtitle": 2,
    "TOC Heading": 1,
    "JLP 1 - Section/Unit": 1,
    "JLP (Level 2)": 2,
    "JLP 3 - Supporting": 3,
    "JLP (Level 4)": 4,
}
HEADING_STYLE = re.compile(r"^Heading\s+(\d)$")


def normalize_heading_level(text: str, raw_level: int) -> int:
    """Map a raw heading level onto the 1-5 outline scale."""
    text = text.strip()
    if any(p.search(text) for p in TRACK_PATTERNS):
        return 1
    for pattern, level in HEADING_LEVEL_RULES:
        if pattern.search(text):
            return level
    return max(1, min(raw_level, 5))


def classify_line(text: str) -> NodeKind:
    """Tag a body line as question, answer or plain content."""
    stripped = text.strip()
    if any(p.search(stripped) for p in ANSWER_PATTERNS):
        return NodeKind.ANSWER
    if any(p.search(stripped) for p in QUESTION_PATTERNS):
        return NodeKind.QUESTION
    return NodeKind.CONTENT


class DocumentParser:
    """Parser for course documents (.docx, .md, .txt)."""

    SUPPORTED_SUFFIXES = {".docx", ".md", ".markdown", ".txt"}

    def parse(self, path: Path | str) -> list[ParsedNode]:
        """
        Parse a document into ordered nodes.

        Raises:
            DocumentUnreadable: file missing, wrong type, corrupt or undecodable.
        """
        path = Path(path)
        if not path.exists():
            raise DocumentUnreadable(str(path), "file not found")
        suffix = path.suffix.lower()
        if suffix not in self.SUPPORTED_SUFFIXES:
            raise DocumentUnreadable(str(path), f"unsupported file type {suffix or '(none)'}")

        if suffix == ".docx":
            nodes = self._parse_docx(path)
        else:
            try:
                text = path.read_text(encoding="utf-8")
            except (UnicodeDecodeError, OSError) as e:
                raise DocumentUnreadable(str(path), str(e)) from e
            nodes = self.parse_text(text)

        self._log_summary(path.name, nodes)
        return nodes

    def parse_text(self, text: str) -> list[ParsedNode]:
        """Parse markdown or plain text. ATX headings (#) carry the raw level."""
        return list(self._build_nodes(self._iter_markdown(text)))

    # -------------------------------------------------------------------------
    # Sources
    # -------------------------------------------------------------------------

    def _iter_markdown(self, text: str) -> Iterator[tuple[int, str, str]]:
        """Yield (raw_level, text, raw_markup); raw_level 0 means body text."""
        for line in text.splitlines():
            if not line.strip():
                continue
            match = MARKDOWN_HEADING.match(line.strip())
            if match:
                yield len(match.group(1)), match.group(2).strip(), line
            else:
                yield 0, line.strip(), line

    def _parse_docx(self, path: Path) -> list[ParsedNode]:
        try:
            document = Document(str(path))
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as e:
            raise DocumentUnreadable(str(path), f"not a readable Word document ({e})") from e
        return list(self._build_nodes(self._iter_docx(document)))

    def _iter_docx(self, document) -> Iterator[tuple[int, str, str]]:
        """Walk the body in order so tables stay between their paragraphs."""
        for child in document.element.body.iterchildren():
            if child.tag == qn("w:p"):
                paragraph = Paragraph(child, document)
                text = paragraph.text.strip()
                if not text:
                    continue
                style_name = paragraph.style.name if paragraph.style is not None else ""
                yield self._style_level(style_name), text, style_name
            elif child.tag == qn("w:tbl"):
                rendered = self._render_table(Table(child, document))
                if rendered:
                    yield 0, rendered, "table"

    def _style_level(self, style_name: str) -> int:
        if style_name in STYLE_LEVELS:
            return STYLE_LEVELS[style_name]
        match = HEADING_STYLE.match(style_name)
        return int(match.group(1)) if match else 0

    def _render_table(self, table: Table) -> str:
        """Render a Word table as a markdown pipe table."""
        rows = []
        for row in table.rows:
            cells = [" ".join(cell.text.split()) for cell in row.cells]
            if any(cells):
                rows.append("| " + " | ".join(cells) + " |")
        if not rows:
            return ""
        width = rows[0].count("|") - 1
        rows.insert(1, "|" + " --- |" * width)
        return "\n".join(rows)

    # -------------------------------------------------------------------------
    # Node construction
    # -------------------------------------------------------------------------

    def _build_nodes(self, items: Iterator[tuple[int, str, str]]) -> Iterator[ParsedNode]:
        page: int | None = None
        for raw_level, text, markup in items:
            if len(text) < 2:
                continue
            page_match = PAGE_MARKER.match(text)
            if page_match and raw_level == 0:
                page = int(page_match.group(1))
                continue
            if raw_level > 0:
                yield ParsedNode(
                    level=normalize_heading_level(text, raw_level),
                    text=text,
                    kind=NodeKind.HEADING,
                    raw_markup=markup,
                    page_number=page,
                )
            else:
                yield ParsedNode(
                    level=0,
                    text=text,
                    kind=NodeKind.CONTENT if markup == "table" else classify_line(text),
                    raw_markup=markup,
                    page_number=page,
                )

    def _log_summary(self, name: str, nodes: list[ParsedNode]) -> None:
        kinds = Counter(n.kind.value for n in nodes)
        chars = sum(len(n.text) for n in nodes)
        logger.info(
            f"Parsed {name}: {len(nodes)} nodes "
            f"({kinds['heading']} headings, {kinds['content']} content, "
            f"{kinds['question']} questions, {kinds['answer']} answers), {chars} chars"
        )
