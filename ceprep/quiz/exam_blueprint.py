"""
Exam blueprints built from the imported question banks.

A blueprint fixes how many questions each bank contributes and the
easy/medium/hard mix inside each bank's share. The full simulator uses
the default weights (50 questions); mini exams draw from a single bank.
Exam configs are created once and never overwritten by later imports.
"""

from __future__ import annotations

import math
import random
from dataclasses import asdict, dataclass, field, replace
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from ceprep.db.storage import Storage


@dataclass(frozen=True)
class DifficultyMix:
    """Percentages of each difficulty within a topic's share."""

    easy: int = 40
    medium: int = 45
    hard: int = 15


@dataclass(frozen=True)
class ExamRules:
    shuffle: bool = True
    one_submit: bool = True
    proctor: bool = True
    show_results: bool = True


@dataclass(frozen=True)
class ExamBlueprint:
    id: str = "dfs-215-sim"
    title: str = "DFS-215 Certification Exam Simulator"
    description: str = "Full 50-question practice exam covering all DFS-215 topics"
    duration_seconds: int = 3600
    passing_score: int = 70
    topic_weights: dict[str, int] = field(
        default_factory=lambda: {
            "law-ethics-core": 8,
            "health-managed-fundamentals": 12,
            "disability-income": 6,
            "social-insurance": 8,
            "life-insurance": 10,
            "annuities-variable": 4,
            "figa-dfs-cfo": 2,
        }
    )
    difficulty_mix: DifficultyMix = field(default_factory=DifficultyMix)
    rules: ExamRules = field(default_factory=ExamRules)

    @property
    def total_weight(self) -> int:
        return sum(self.topic_weights.values())


@dataclass
class ExamForm:
    """A built exam: its config row plus the selected question ids in order."""

    blueprint: ExamBlueprint
    question_ids: list[str] = field(default_factory=list)

    def to_config(self) -> dict:
        bp = self.blueprint
        return {
            "id": bp.id,
            "title": bp.title,
            "total_questions": len(self.question_ids),
            "time_limit_seconds": bp.duration_seconds,
            "passing_score": bp.passing_score,
            "blueprint": {
                "description": bp.description,
                "topic_weights": dict(bp.topic_weights),
                "difficulty_mix": asdict(bp.difficulty_mix),
            },
            "rules": asdict(bp.rules),
        }


def format_topic_name(topic: str) -> str:
    return " ".join(word.capitalize() for word in topic.split("-"))


class ExamBlueprintBuilder:
    """Select questions per blueprint and persist exam configs."""

    MINI_EXAM_MIN_QUESTIONS = 5

    def __init__(self, storage: Storage, rng: random.Random | None = None):
        self.storage = storage
        self.rng = rng or random.Random()

    def build_exam_form(self, blueprint: ExamBlueprint | None = None) -> ExamForm:
        """Pick questions for each weighted topic, honoring the difficulty mix."""
        bp = blueprint or ExamBlueprint()
        selected: list[str] = []

        for topic, weight in bp.topic_weights.items():
            bank = self.storage.find_bank(topic)
            if bank is None:
                logger.warning(f"Question bank not found for topic: {topic}")
                continue
            questions = self.storage.list_questions(bank.id)

            easy_n = math.floor(weight * bp.difficulty_mix.easy / 100)
            medium_n = math.floor(weight * bp.difficulty_mix.medium / 100)
            wanted = {"easy": easy_n, "medium": medium_n, "hard": weight - easy_n - medium_n}

            picked: list[str] = []
            for difficulty, count in wanted.items():
                picked += [q.id for q in questions if q.difficulty == difficulty][:count]

            # Top up from any difficulty when a bucket ran short
            shortfall = weight - len(picked)
            if shortfall > 0:
                used = set(picked)
                picked += [q.id for q in questions if q.id not in used][:shortfall]

            selected += picked

        if bp.rules.shuffle:
            self.rng.shuffle(selected)

        logger.debug(f"Built exam form {bp.id}: {len(selected)}/{bp.total_weight} questions")
        return ExamForm(blueprint=bp, question_ids=selected)

    def create_mini_exam(self, topic: str, question_count: int = 10) -> ExamForm:
        """Single-topic practice exam, one minute per question."""
        name = format_topic_name(topic)
        blueprint = replace(
            ExamBlueprint(),
            id=f"mini-exam-{topic}",
            title=f"{name} Mini Exam",
            description=f"Practice exam focusing on {name}",
            duration_seconds=question_count * 60,
            topic_weights={topic: question_count},
            rules=ExamRules(shuffle=True, one_submit=False, proctor=False, show_results=True),
        )
        return self.build_exam_form(blueprint)

    def save_exam_config(self, form: ExamForm) -> bool:
        """Persist the form unless a config with its id exists. Returns True when created."""
        if self.storage.find_exam_config(form.blueprint.id) is not None:
            logger.debug(f"Exam config already exists: {form.blueprint.title}")
            return False
        self.storage.add_exam_config(form.to_config(), form.question_ids)
        logger.info(f"Created exam config: {form.blueprint.title} ({len(form.question_ids)} questions)")
        return True

    def build_all(self) -> int:
        """Main simulator plus a mini exam for every bank with enough questions."""
        created = 0
        main = self.build_exam_form()
        if main.question_ids and self.save_exam_config(main):
            created += 1
        for slug, count in self.storage.bank_question_counts().items():
            if count >= self.MINI_EXAM_MIN_QUESTIONS:
                if self.save_exam_config(self.create_mini_exam(slug, min(10, count))):
                    created += 1
        return created
