"""
Content: source document parsing.

- parser: .docx/.md/.txt -> ordered ParsedNode list with normalized heading levels
- sections: quiz-section detection and removal inside lesson markdown
"""

from .parser import DocumentParser, NodeKind, ParsedNode, classify_line, normalize_heading_level
from .sections import QUIZ_SECTION, is_quiz_header, strip_quiz_sections

__all__ = [
    "DocumentParser",
    "ParsedNode",
    "NodeKind",
    "classify_line",
    "normalize_heading_level",
    "QUIZ_SECTION",
    "is_quiz_header",
    "strip_quiz_sections",
]
