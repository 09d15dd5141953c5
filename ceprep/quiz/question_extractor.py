"""
Question extraction from assessment sections.

Only nodes inside an assessment section (a heading matching quiz / exam /
review questions / self-test / practice) are considered. Each question
runs through a small state machine:

    SEEKING_STEM -> COLLECTING_OPTIONS -> COMPLETE

A new stem closes the previous question, which is kept only if it has at
least two options. A question without an explicit answer line keeps
answer_key [0]; this is a known heuristic limitation.
"""

from __future__ import annotations

import re
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from loguru import logger

from ceprep.content.parser import NodeKind, ParsedNode
from ceprep.curriculum.outline import slugify

if TYPE_CHECKING:
    from ceprep.db.storage import Storage


class QuestionType(str, Enum):
    MCQ = "mcq"
    TF = "tf"
    MS = "ms"  # multiple select


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


@dataclass
class ExtractedQuestion:
    """A recovered question. answer_key holds indices into options."""

    type: QuestionType
    stem: str
    options: list[str]
    answer_key: list[int]
    difficulty: Difficulty
    topic: str
    explanation: str | None = None

    def __post_init__(self):
        if len(self.options) < 2:
            raise ValueError(f"Question needs at least 2 options: {self.stem[:60]!r}")
        if not self.answer_key or any(not 0 <= i < len(self.options) for i in self.answer_key):
            raise ValueError(f"Answer key {self.answer_key} out of range for {self.stem[:60]!r}")

    @property
    def answer_letters(self) -> str:
        return ", ".join(chr(65 + i) for i in self.answer_key)


# =============================================================================
# Lookup tables
# =============================================================================

ASSESSMENT_HEADER = re.compile(
    r"\bquiz(zes)?\b|\bexams?\b|review questions|self[\s-]test|\bpractice\b", re.IGNORECASE
)

# Ordered (keywords, bank key); first table entry with any keyword in the text wins.
BANK_KEYWORDS: list[tuple[tuple[str, ...], str]] = [
    (("law", "ethic", "regulation", "compliance"), "law-ethics-core"),
    (("health", "hmo", "ppo", "managed care", "balance billing"), "health-managed-fundamentals"),
    (("disability",), "disability-income"),
    (("social", "oasdi", "medicare", "medicaid"), "social-insurance"),
    (("life insurance", "life"), "life-insurance"),
    (("annuit", "variable"), "annuities-variable"),
    (("figa", "dfs", "cfo", "buyer"), "figa-dfs-cfo"),
]

BANK_TITLES: dict[str, str] = {
    "law-ethics-core": "Law & Ethics Core",
    "health-managed-fundamentals": "Health & Managed Care Fundamentals",
    "disability-income": "Disability Income",
    "social-insurance": "Social Insurance",
    "life-insurance": "Life Insurance",
    "annuities-variable": "Annuities & Variable Contracts",
    "figa-dfs-cfo": "FIGA, DFS & CFO",
    "general-knowledge": "General Knowledge",
}

HARD_SIGNALS = re.compile(r"\bexcept\b|\bnot\b|calculate|scenario|all of the following", re.IGNORECASE)
EASY_SIGNALS = re.compile(r"define|what is|which term|true or false", re.IGNORECASE)

STEM_NUMBERING = re.compile(r"^(?:Q(?:uestion)?\s*)?\d+[.):]\s*", re.IGNORECASE)
OPTION = re.compile(r"^([A-D])[.)\]:]\s*(.+)$", re.IGNORECASE)
ANSWER = re.compile(
    r"^(?:Answer|Correct(?:\s+answer)?)\s*:\s*"
    r"(True|False|[A-D](?:\s*(?:,|and|&)\s*[A-D])*)\b",
    re.IGNORECASE,
)
EXPLANATION = re.compile(r"^(?:Explanation|Rationale)\s*:\s*(.+)$", re.IGNORECASE)
TRUE_FALSE = re.compile(r"true\s+or\s+false|true/false", re.IGNORECASE)


def resolve_bank_key(text: str) -> str | None:
    """Canonical bank key for a heading, or None when no keyword matches."""
    lower = text.lower()
    if lower.strip() == "general":
        return "general-knowledge"
    for keywords, key in BANK_KEYWORDS:
        if any(k in lower for k in keywords):
            return key
    return None


def assess_difficulty(stem: str) -> Difficulty:
    if HARD_SIGNALS.search(stem) or len(stem) > 200:
        return Difficulty.HARD
    if EASY_SIGNALS.search(stem) or len(stem) < 50:
        return Difficulty.EASY
    return Difficulty.MEDIUM


def bank_title(key: str) -> str:
    return BANK_TITLES.get(key) or key.replace("-", " ").title()


# =============================================================================
# Extraction
# =============================================================================


class _State(str, Enum):
    SEEKING_STEM = "seeking_stem"
    COLLECTING_OPTIONS = "collecting_options"
    COMPLETE = "complete"


@dataclass
class _PendingQuestion:
    stem: str
    type: QuestionType = QuestionType.MCQ
    options: list[str] = field(default_factory=list)
    answer_key: list[int] = field(default_factory=list)
    explanation: str | None = None


class QuestionExtractor:
    """Recover question banks from parsed nodes."""

    def __init__(self, storage: Storage | None = None):
        self.storage = storage

    def extract(self, nodes: list[ParsedNode]) -> dict[str, list[ExtractedQuestion]]:
        """Group extracted questions by bank key, in document order."""
        banks: dict[str, list[ExtractedQuestion]] = OrderedDict()
        context: dict[int, str] = {}  # outline level -> heading text
        bank_key: str | None = None
        in_assessment = False
        state = _State.SEEKING_STEM
        pending: _PendingQuestion | None = None
        dropped = 0

        def flush() -> None:
            nonlocal pending, dropped
            if pending is not None:
                question = self._finalize(pending, bank_key)
                if question is None:
                    dropped += 1
                else:
                    banks.setdefault(bank_key, []).append(question)
            pending = None

        for node in nodes:
            if node.kind == NodeKind.HEADING:
                flush()
                state = _State.SEEKING_STEM
                if ASSESSMENT_HEADER.search(node.text):
                    in_assessment = True
                    bank_key = self._bank_key_for(node.text, context)
                else:
                    in_assessment = False
                    if node.level <= 3:
                        context = {lvl: t for lvl, t in context.items() if lvl < node.level}
                        context[node.level] = node.text
                continue

            if not in_assessment:
                continue
            text = node.text.strip()

            if node.kind == NodeKind.QUESTION and not ANSWER.match(text):
                flush()
                stem = STEM_NUMBERING.sub("", text).strip()
                pending = _PendingQuestion(stem=stem)
                if TRUE_FALSE.search(stem):
                    pending.type = QuestionType.TF
                    pending.options = ["True", "False"]
                state = _State.COLLECTING_OPTIONS
                continue

            if pending is None:
                continue

            answer = ANSWER.match(text)
            if answer:
                pending.answer_key, pending.type = self._answer_indices(answer.group(1), pending)
                state = _State.COMPLETE
                continue

            option = OPTION.match(text)
            if option and state == _State.COLLECTING_OPTIONS:
                if pending.type != QuestionType.TF:
                    pending.options.append(option.group(2).strip())
                continue

            explanation = EXPLANATION.match(text)
            if explanation and state == _State.COMPLETE:
                pending.explanation = explanation.group(1).strip()

        flush()

        total = sum(len(q) for q in banks.values())
        logger.info(f"Extracted {total} questions into {len(banks)} banks ({dropped} dropped)")
        for key, questions in banks.items():
            logger.debug(f"  {key}: {len(questions)} questions")
        return dict(banks)

    def _bank_key_for(self, heading: str, context: dict[int, str]) -> str:
        """Heading keywords first, then enclosing outline headings, then the heading slug."""
        key = resolve_bank_key(heading)
        if key:
            return key
        for level in sorted(context, reverse=True):
            key = resolve_bank_key(context[level])
            if key:
                return key
        return slugify(heading) or "general-knowledge"

    @staticmethod
    def _answer_indices(raw: str, pending: _PendingQuestion) -> tuple[list[int], QuestionType]:
        raw = raw.strip().upper()
        if raw in ("TRUE", "FALSE"):
            if pending.type != QuestionType.TF:
                pending.options = ["True", "False"]
            return [0 if raw == "TRUE" else 1], QuestionType.TF
        letters = re.findall(r"[A-D]", raw)
        indices = [ord(letter) - 65 for letter in letters]
        if len(indices) > 1:
            return indices, QuestionType.MS
        return indices, pending.type

    @staticmethod
    def _finalize(pending: _PendingQuestion, bank_key: str | None) -> ExtractedQuestion | None:
        if not pending.stem or len(pending.options) < 2:
            return None
        answer_key = [i for i in pending.answer_key if i < len(pending.options)]
        if not answer_key:
            # No usable answer line: keep the question with the first option marked correct
            answer_key = [0]
        q_type = pending.type
        if q_type == QuestionType.MCQ and pending.options == ["True", "False"]:
            q_type = QuestionType.TF
        return ExtractedQuestion(
            type=q_type,
            stem=pending.stem,
            options=list(pending.options),
            answer_key=answer_key,
            difficulty=assess_difficulty(pending.stem),
            topic=bank_key or "general-knowledge",
            explanation=pending.explanation,
        )

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def save_question_banks(self, banks: dict[str, list[ExtractedQuestion]]) -> tuple[int, int]:
        """
        Create missing banks by slug and append questions.

        Returns:
            (banks_created, questions_created)
        """
        if self.storage is None:
            raise RuntimeError("QuestionExtractor.save_question_banks requires a storage collaborator")

        banks_created = 0
        questions_created = 0
        for key, questions in banks.items():
            bank = self.storage.find_bank(key)
            if bank is None:
                bank = self.storage.add_bank(
                    slug=key,
                    title=bank_title(key),
                    description=f"Questions covering {bank_title(key)}",
                )
                banks_created += 1
            for q in questions:
                if not q.explanation:
                    q.explanation = f"The correct answer is {q.answer_letters}."
            questions_created += self.storage.add_questions(bank.id, questions)

        logger.info(f"Saved {questions_created} questions ({banks_created} new banks)")
        return banks_created, questions_created
