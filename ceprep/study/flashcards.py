"""
Flashcard service: AI generation, marker-pattern import cards and reviews.

Duplicate detection hashes user id, card type, front text and source id
(in that order). A card whose hash already exists for the user, or earlier
in the same batch, is skipped and counted as a duplicate.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any, Literal, Protocol

from loguru import logger

from config import get_settings
from ceprep.content.parser import NodeKind, ParsedNode
from ceprep.errors import NotFoundError
from ceprep.study.scheduler import ReviewOutcome, review

if TYPE_CHECKING:
    from ceprep.db.storage import Storage

Style = Literal["concise", "exam", "mnemonic"]
CARD_TYPES = {"term", "mcq", "cloze"}

STYLE_GUIDANCE: dict[str, str] = {
    "concise": "Keep fronts short and backs to one sentence.",
    "exam": "Phrase cards the way the state licensing exam asks about the topic.",
    "mnemonic": "Include a memory hook or acronym on the back where it helps.",
}

MARKER = re.compile(r"\b(Define|Identify)\b")
MARKER_PREFIX = re.compile(r"^\s*\[?(Define|Identify)\]?\s*:?\s*", re.IGNORECASE)
# A bare hyphen only separates when spaced, so "co-payment" stays one term
FRONT_BACK_SPLIT = re.compile(r"\s*[:–]\s*|\s+-\s+")

# Keyword -> tag; at most five tags per card
TAG_KEYWORDS: list[tuple[str, str]] = [
    ("law", "law"),
    ("ethics", "ethics"),
    ("health", "health"),
    ("insurance", "insurance"),
    ("managed care", "managed-care"),
    ("hmo", "hmo"),
    ("ppo", "ppo"),
    ("disability", "disability"),
    ("life", "life"),
    ("annuit", "annuities"),
]

MCQ_OPTION_LINE = re.compile(r"^([A-D])\)\s*(.+)$")
MCQ_INLINE_OPTION = re.compile(r"([A-D])\)\s*(.*?)(?=\s*[A-D]\)|$)", re.DOTALL)
MCQ_ANSWER = re.compile(r"(?:answer|correct)[\s:]*([A-D])\b", re.IGNORECASE)


class TextGeneratorLike(Protocol):
    def generate(self, prompt: str, max_tokens: int = 2000) -> dict[str, Any]: ...


def card_hash(user_id: str, card_type: str, front: str, source_id: str | None) -> str:
    key = f"{user_id}|{card_type}|{front}|{source_id or ''}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


@dataclass
class FlashcardDraft:
    """A card ready to insert. Scheduling fields start at ease 2.5, interval 1."""

    user_id: str
    card_type: str
    front: str
    back: str = ""
    prompt: str | None = None
    options: list[str] | None = None
    answer_index: int | None = None
    rationale: str | None = None
    source_id: str | None = None
    tags: list[str] = field(default_factory=list)

    @property
    def dup_hash(self) -> str:
        return card_hash(self.user_id, self.card_type, self.front, self.source_id)


@dataclass
class GenerationResult:
    created: int
    duplicates: int
    cards: list[FlashcardDraft] = field(default_factory=list)


def tags_for(text: str) -> list[str]:
    lower = text.lower()
    tags: list[str] = []
    for keyword, tag in TAG_KEYWORDS:
        if keyword in lower and tag not in tags:
            tags.append(tag)
    return tags[:5]


def normalize_mcq(front: str, back: str | None = None) -> dict | None:
    """
    Convert a legacy text-blob MCQ into prompt/options/answer_index.

    Accepts one option per line ("A) ...") or inline options. Returns None
    when fewer than two options are found.
    """
    lines = [line.strip() for line in front.splitlines() if line.strip()]
    options: list[str] = []
    prompt = ""
    if len(lines) > 1 and any(MCQ_OPTION_LINE.match(line) for line in lines[1:]):
        prompt = lines[0]
        options = [m.group(2).strip() for m in map(MCQ_OPTION_LINE.match, lines[1:]) if m]
    else:
        matches = list(MCQ_INLINE_OPTION.finditer(front))
        if matches:
            prompt = front[: matches[0].start()].strip()
            options = [m.group(2).strip() for m in matches]

    if len(options) < 2:
        return None

    answer_index = None
    if back:
        match = MCQ_ANSWER.search(back) or re.search(r"\b([A-D])\)", back)
        if match:
            index = ord(match.group(1).upper()) - 65
            answer_index = index if index < len(options) else None

    return {
        "prompt": prompt.rstrip(": ") + ":",
        "options": options,
        "answer_index": answer_index,
        "rationale": back or None,
    }


class FlashcardService:
    """Create, deduplicate and review flashcards."""

    def __init__(self, storage: Storage, generator: TextGeneratorLike | None = None):
        self.storage = storage
        self.generator = generator
        self.settings = get_settings()

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def generate_flashcards_from_content(
        self,
        user_id: str,
        source_ids: list[str],
        style: Style = "exam",
        max_cards: int | None = None,
    ) -> GenerationResult:
        """
        Generate cards from content chunks (or whole lessons) with the text generator.

        Raises:
            NotFoundError: none of the source ids resolve to content.
            GenerationFailed: the generator failed on both models.
        """
        if self.generator is None:
            raise RuntimeError("FlashcardService needs a text generator to generate cards")
        max_cards = max_cards or self.settings.flashcard_max_generated

        source_text = "\n\n".join(text for _, text in self.storage.get_source_texts(source_ids))
        if not source_text.strip():
            raise NotFoundError("No content found for the provided source IDs")

        data = self.generator.generate(self._prompt(source_text, style, max_cards), max_tokens=2000)
        drafts = []
        for item in data.get("cards", [])[:max_cards]:
            draft = self._draft_from_item(user_id, item, default_source=source_ids[0])
            if draft is not None:
                drafts.append(draft)

        return self.save_drafts(user_id, drafts)

    def _prompt(self, source_text: str, style: str, count: int) -> str:
        return (
            "You are an expert flashcard writer for insurance licensing education. "
            f"Create up to {count} flashcards from the content below. "
            f"{STYLE_GUIDANCE.get(style, '')} "
            "Focus on key terms, regulations and practical applications.\n\n"
            'Return JSON: {"cards": [{"type": "term|mcq|cloze", "front": "...", "back": "...", '
            '"prompt": "mcq only", "options": ["mcq only"], "answer_index": 0, '
            '"rationale": "mcq only", "source_id": "optional"}]}\n\n'
            f"CONTENT:\n{source_text}"
        )

    @staticmethod
    def _draft_from_item(user_id: str, item: dict, default_source: str) -> FlashcardDraft | None:
        card_type = str(item.get("type", "term")).lower()
        if card_type not in CARD_TYPES:
            card_type = "term"
        front = (item.get("front") or item.get("prompt") or "").strip()
        if not front:
            return None
        options = item.get("options") if card_type == "mcq" else None
        answer_index = item.get("answer_index") if card_type == "mcq" else None
        if options is not None and (
            len(options) < 2 or not isinstance(answer_index, int) or not 0 <= answer_index < len(options)
        ):
            options, answer_index = None, None
        return FlashcardDraft(
            user_id=user_id,
            card_type=card_type,
            front=front,
            back=(item.get("back") or "").strip(),
            prompt=item.get("prompt"),
            options=options,
            answer_index=answer_index,
            rationale=item.get("rationale"),
            source_id=item.get("source_id") or default_source,
        )

    def save_drafts(self, user_id: str, drafts: list[FlashcardDraft]) -> GenerationResult:
        """Insert drafts that are not duplicates of existing cards or of each other."""
        seen = self.storage.get_flashcard_hashes(user_id)
        fresh: list[FlashcardDraft] = []
        duplicates = 0
        for draft in drafts:
            if draft.dup_hash in seen:
                duplicates += 1
                continue
            seen.add(draft.dup_hash)
            fresh.append(draft)

        created = self.storage.add_flashcards(fresh, ease=self.settings.flashcard_default_ease)
        logger.info(f"Flashcards for {user_id}: {created} created, {duplicates} duplicates skipped")
        return GenerationResult(created=created, duplicates=duplicates, cards=fresh)

    # -------------------------------------------------------------------------
    # Marker-pattern cards (import)
    # -------------------------------------------------------------------------

    def extract_marker_flashcards(
        self, nodes: list[ParsedNode], user_id: str | None = None, limit: int | None = None
    ) -> list[FlashcardDraft]:
        """Cards from 'Define ...: ...' / 'Identify ... - ...' content lines."""
        user_id = user_id or self.settings.system_user_id
        limit = limit or self.settings.import_flashcard_limit
        drafts: list[FlashcardDraft] = []

        for node in nodes:
            if node.kind != NodeKind.CONTENT or not MARKER.search(node.text):
                continue
            parts = FRONT_BACK_SPLIT.split(node.text, maxsplit=1)
            if len(parts) < 2:
                continue
            front = MARKER_PREFIX.sub("", parts[0]).strip()
            back = parts[1].strip()
            if not front or len(back) < 3:
                continue
            drafts.append(
                FlashcardDraft(
                    user_id=user_id,
                    card_type="term",
                    front=front,
                    back=back,
                    tags=tags_for(node.text),
                )
            )
            if len(drafts) >= limit:
                break
        return drafts

    # -------------------------------------------------------------------------
    # Review
    # -------------------------------------------------------------------------

    def review_flashcard(self, user_id: str, card_id: str, grade: int, today: date | None = None) -> ReviewOutcome:
        """Apply one graded review to a stored card and log it."""
        card = self.storage.get_flashcard(card_id)
        if card is None or card.user_id != user_id:
            raise NotFoundError(f"Flashcard not found or not owned by user: {card_id}")

        outcome = review(card.difficulty, grade, card.interval, today=today)
        self.storage.apply_review(card_id, user_id, grade, outcome)
        logger.debug(f"Reviewed card {card_id}: grade {grade} -> {outcome.interval}d, ease {outcome.difficulty:.2f}")
        return outcome
