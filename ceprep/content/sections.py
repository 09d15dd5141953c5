"""
Assessment sections inside lesson markdown.

Lesson content keeps its quiz sections so the microquiz can be built from
them. Reading steps and retrieval chunks use the content with those
sections removed. A quiz section runs from its heading to the next heading.
"""

from __future__ import annotations

import re

QUIZ_HEADERS: list[re.Pattern] = [
    re.compile(r"quiz", re.IGNORECASE),
    re.compile(r"review\s+questions?", re.IGNORECASE),
    re.compile(r"self[\-\s]?test", re.IGNORECASE),
    re.compile(r"practice\s+questions?", re.IGNORECASE),
    re.compile(r"knowledge\s+check", re.IGNORECASE),
    re.compile(r"assessment", re.IGNORECASE),
    re.compile(r"checkpoint\s+questions?", re.IGNORECASE),
    re.compile(r"test\s+your\s+understanding", re.IGNORECASE),
    re.compile(r"quick\s+check", re.IGNORECASE),
    re.compile(r"comprehension\s+check", re.IGNORECASE),
]
QUIZ_SECTION = re.compile("|".join(p.pattern for p in QUIZ_HEADERS), re.IGNORECASE)

HEADING = re.compile(r"^#{1,6}\s+(.+)$")


def is_quiz_header(text: str) -> bool:
    return any(p.search(text) for p in QUIZ_HEADERS)


def strip_quiz_sections(content: str) -> str:
    """Drop every quiz section (heading included) from lesson markdown."""
    kept: list[str] = []
    in_quiz = False
    for line in content.split("\n"):
        heading = HEADING.match(line.strip())
        if heading:
            in_quiz = is_quiz_header(heading.group(1))
        if not in_quiz:
            kept.append(line)
    return "\n".join(kept).strip()
