"""
Unit tests for flashcard generation, marker cards, MCQ normalization and reviews.
"""

from datetime import date, timedelta

import pytest

from ceprep.content.parser import DocumentParser
from ceprep.errors import NotFoundError
from ceprep.study.flashcards import (
    FlashcardDraft,
    FlashcardService,
    card_hash,
    normalize_mcq,
    tags_for,
)


@pytest.fixture
def service(storage, fake_generator):
    return FlashcardService(storage, fake_generator)


class TestHelpers:
    def test_card_hash_fields(self):
        base = card_hash("u1", "term", "Premium", "s1")

        assert base == card_hash("u1", "term", "Premium", "s1")
        assert base != card_hash("u2", "term", "Premium", "s1")
        assert base != card_hash("u1", "cloze", "Premium", "s1")
        assert base != card_hash("u1", "term", "Premium", None)
        assert len(base) == 64

    def test_draft_hash_uses_source(self):
        draft = FlashcardDraft(user_id="u1", card_type="term", front="Premium", source_id="s1")

        assert draft.dup_hash == card_hash("u1", "term", "Premium", "s1")

    @pytest.mark.parametrize(
        "text,tags",
        [
            ("HMO and PPO managed care plans", ["managed-care", "hmo", "ppo"]),
            ("Variable annuities", ["annuities"]),
            ("Law and ethics of life insurance for health and disability", ["law", "ethics", "health", "insurance", "disability"]),
            ("Rebating", []),
        ],
    )
    def test_tags_for(self, text, tags):
        assert tags_for(text) == tags


class TestNormalizeMcq:
    """Legacy text-blob MCQs into structured fields."""

    def test_one_option_per_line(self):
        result = normalize_mcq(
            "Which plan relies on a provider network?\nA) HMO\nB) Indemnity\nC) Medigap",
            "Answer: A. HMOs contract with a network.",
        )

        assert result["options"] == ["HMO", "Indemnity", "Medigap"]
        assert result["answer_index"] == 0
        assert result["prompt"].startswith("Which plan relies on a provider network?")
        assert result["prompt"].endswith(":")
        assert result["rationale"] == "Answer: A. HMOs contract with a network."

    def test_inline_options(self):
        result = normalize_mcq("Which rider waives premiums? A) Waiver B) Term C) Guaranteed insurability", "B) Term")

        assert result["options"] == ["Waiver", "Term", "Guaranteed insurability"]
        assert result["answer_index"] == 1

    def test_answer_out_of_range(self):
        result = normalize_mcq("Pick one\nA) Yes\nB) No", "Correct: D")

        assert result["answer_index"] is None

    def test_no_back(self):
        result = normalize_mcq("Pick one\nA) Yes\nB) No")

        assert result["answer_index"] is None
        assert result["rationale"] is None

    def test_single_option_rejected(self):
        assert normalize_mcq("Pick one\nA) Yes") is None


class TestGenerate:
    """AI generation with duplicate detection."""

    def test_creates_cards(self, service, storage, sample_lesson, fake_generator):
        result = service.generate_flashcards_from_content("u1", [sample_lesson.id], style="mnemonic")

        assert (result.created, result.duplicates) == (3, 0)
        assert {c.card_type for c in result.cards} == {"term", "mcq", "cloze"}
        assert all(c.source_id == sample_lesson.id for c in result.cards)
        assert "Balance billing happens" in fake_generator.prompts[0]
        assert "memory hook" in fake_generator.prompts[0]
        stored = storage.get_flashcards("u1")
        assert len(stored) == 3
        assert all(card.difficulty == 2.5 and card.interval == 1 for card in stored)
        assert all(card.next_review == date.today() for card in stored)

    def test_second_run_only_duplicates(self, service, sample_lesson):
        first = service.generate_flashcards_from_content("u1", [sample_lesson.id])

        second = service.generate_flashcards_from_content("u1", [sample_lesson.id])

        assert second.created == 0
        assert second.duplicates == first.created

    def test_other_user_not_a_duplicate(self, service, sample_lesson):
        service.generate_flashcards_from_content("u1", [sample_lesson.id])

        assert service.generate_flashcards_from_content("u2", [sample_lesson.id]).created == 3

    def test_duplicates_within_batch(self, service, sample_lesson, fake_generator):
        card = {"type": "term", "front": "Copayment", "back": "A flat amount per visit"}
        fake_generator.cards = [card, dict(card, back="Worded differently")]

        result = service.generate_flashcards_from_content("u1", [sample_lesson.id])

        assert (result.created, result.duplicates) == (1, 1)

    def test_max_cards(self, service, sample_lesson):
        result = service.generate_flashcards_from_content("u1", [sample_lesson.id], max_cards=1)

        assert result.created == 1

    def test_item_cleanup(self, storage, sample_lesson, fake_generator):
        fake_generator.cards = [
            {"type": "diagram", "front": "Coinsurance", "back": "Shared cost after the deductible"},
            {"type": "mcq", "front": "Broken", "options": ["Only one"], "answer_index": 0},
            {"type": "term", "front": "   ", "back": "No front"},
            {"type": "term", "front": "Copay", "back": "Flat fee", "source_id": "chunk-9"},
        ]

        result = FlashcardService(storage, fake_generator).generate_flashcards_from_content("u1", [sample_lesson.id])

        coinsurance, broken, copay = result.cards
        assert coinsurance.card_type == "term"
        assert broken.options is None and broken.answer_index is None
        assert copay.source_id == "chunk-9"

    def test_requires_generator(self, storage, sample_lesson):
        with pytest.raises(RuntimeError):
            FlashcardService(storage).generate_flashcards_from_content("u1", [sample_lesson.id])

    def test_unknown_sources(self, service):
        with pytest.raises(NotFoundError):
            service.generate_flashcards_from_content("u1", ["missing"])


class TestMarkerFlashcards:
    """Import-time cards from Define / Identify lines."""

    def nodes(self, text):
        return DocumentParser().parse_text(text)

    def test_define_and_identify(self, storage):
        nodes = self.nodes(
            "# Health Insurance\n"
            "Define Balance billing: charging a member the gap above the allowed amount.\n"
            "Identify HMO - a managed care plan that uses a network of contracted providers\n"
        )

        drafts = FlashcardService(storage).extract_marker_flashcards(nodes)

        assert [(d.front, d.card_type) for d in drafts] == [("Balance billing", "term"), ("HMO", "term")]
        assert drafts[0].back == "charging a member the gap above the allowed amount."
        assert drafts[1].tags == ["managed-care", "hmo"]
        assert all(d.user_id == "system" for d in drafts)

    @pytest.mark.parametrize(
        "line,front,back",
        [
            ("Define co-payment: a fixed fee paid at each visit.", "co-payment", "a fixed fee paid at each visit."),
            ("Identify stop-loss – a cap on the member's yearly costs", "stop-loss", "a cap on the member's yearly costs"),
            ("Define co-insurance - the member's share after the deductible", "co-insurance", "the member's share after the deductible"),
        ],
    )
    def test_hyphenated_terms_kept_whole(self, storage, line, front, back):
        (draft,) = FlashcardService(storage).extract_marker_flashcards(self.nodes(line))

        assert (draft.front, draft.back) == (front, back)

    def test_skips_unusable_lines(self, storage):
        nodes = self.nodes(
            "## Define Premium\n"
            "Define the insuring clause carefully.\n"
            "Define Term: ab\n"
            "Premiums are due monthly: always.\n"
        )

        assert FlashcardService(storage).extract_marker_flashcards(nodes) == []

    def test_limit(self, storage):
        lines = "\n".join(f"Define Term number {i}: the meaning of term {i}." for i in range(5))

        drafts = FlashcardService(storage).extract_marker_flashcards(self.nodes(lines), user_id="u9", limit=2)

        assert len(drafts) == 2
        assert drafts[0].user_id == "u9"

    def test_saving_twice_counts_duplicates(self, storage):
        service = FlashcardService(storage)
        drafts = service.extract_marker_flashcards(self.nodes("Define Rebating: returning part of the commission."))

        assert service.save_drafts("system", drafts).created == 1
        again = service.save_drafts("system", drafts)
        assert (again.created, again.duplicates) == (0, 1)


class TestReviewFlashcard:
    """Review persistence."""

    @pytest.fixture
    def card_id(self, storage):
        FlashcardService(storage).save_drafts(
            "u1", [FlashcardDraft(user_id="u1", card_type="term", front="Rider", back="An amendment to a policy")]
        )
        return storage.get_flashcards("u1")[0].id

    def test_review_updates_card_and_logs(self, storage, card_id):
        today = date(2025, 5, 1)

        outcome = FlashcardService(storage).review_flashcard("u1", card_id, 2, today=today)

        assert outcome.interval == 6
        card = storage.get_flashcard(card_id)
        assert card.interval == 6
        assert card.next_review == today + timedelta(days=6)
        assert card.review_count == 1
        (logged,) = storage.get_reviews(card_id)
        assert (logged.grade, logged.interval_after) == (2, 6)

    def test_again_after_success(self, storage, card_id):
        service = FlashcardService(storage)
        service.review_flashcard("u1", card_id, 2)

        outcome = service.review_flashcard("u1", card_id, 0)

        assert outcome.interval == 1
        assert storage.get_flashcard(card_id).review_count == 2

    def test_other_users_card(self, storage, card_id):
        with pytest.raises(NotFoundError):
            FlashcardService(storage).review_flashcard("intruder", card_id, 2)

    def test_missing_card(self, storage):
        with pytest.raises(NotFoundError):
            FlashcardService(storage).review_flashcard("u1", "missing", 2)

    def test_invalid_grade(self, storage, card_id):
        with pytest.raises(ValueError):
            FlashcardService(storage).review_flashcard("u1", card_id, 5)
