"""
Outline mapping: flat parsed nodes -> Track / Module / Lesson tree.

A single left-to-right scan keeps an explicit cursor (open track, module
and lesson). Heading level 1 opens a track, 2 a module, 3 a lesson;
levels 4 and 5 become markdown sub-headings inside the open lesson.

Persistence is idempotent by slug under the same parent: existing rows
are left untouched and only newly created entities are counted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

from ceprep.content.parser import NodeKind, ParsedNode
from ceprep.errors import StructureMalformed

if TYPE_CHECKING:
    from ceprep.db.storage import Storage

SLUG_MAX = 50

DEFAULT_OBJECTIVES = [
    "Understand key concepts and terminology",
    "Apply knowledge to real-world scenarios",
    "Prepare for certification exam questions",
]

# Ordered keyword -> description table; first substring match wins.
DESCRIPTIONS: list[tuple[str, str]] = [
    ("law", "Legal requirements, regulations, and compliance standards"),
    ("ethics", "Professional responsibility and ethical guidelines"),
    ("health", "Healthcare coverage, benefits, and insurance fundamentals"),
    ("managed care", "HMO, PPO, EPO, and POS network models"),
    ("disability", "Income protection and disability insurance coverage"),
    ("life", "Life insurance products, underwriting, and benefits"),
    ("annuities", "Fixed and variable annuity products and regulations"),
    ("social", "Social Security, Medicare, and government programs"),
    ("oasdi", "Old-Age, Survivors, and Disability Insurance programs"),
    ("figa", "Florida Insurance Guaranty Association protections"),
    ("dfs", "Department of Financial Services regulations"),
    ("cfo", "Chief Financial Officer oversight and authority"),
]

CE_HOURS_PATTERN = re.compile(r"\b(\d+)\s*-?\s*hr\b", re.IGNORECASE)
LAW_ETHICS = re.compile(r"law\s*&\s*ethics", re.IGNORECASE)
CE_LESSON = re.compile(r"continuing education|\bce\b\s*:?", re.IGNORECASE)
PRACTICE = re.compile(r"quiz|exam|practice|review questions|self-test", re.IGNORECASE)
OBJECTIVE_VERBS = re.compile(r"\b(Identify|Define|Explain|Understand|Learn)\b")
LEADING_NUMBERING = re.compile(r"^[\d.\-\s]+")


# =============================================================================
# Helpers
# =============================================================================


def slugify(text: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to '-', trim, cap at 50 chars."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug[:SLUG_MAX].rstrip("-")


def clean_title(text: str) -> str:
    """Strip leading numbering like '1.2.3 ' and collapse whitespace."""
    cleaned = LEADING_NUMBERING.sub("", text).lstrip("| ")
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    return cleaned or text.strip()


def describe(title: str) -> str:
    lower = title.lower()
    for keyword, description in DESCRIPTIONS:
        if keyword in lower:
            return description
    return f"Comprehensive coverage of {clean_title(title)}"


def infer_ce_hours(track_title: str) -> int:
    """Explicit 'N-hr' / 'N hr' wins; otherwise Law & Ethics tracks carry 4."""
    match = CE_HOURS_PATTERN.search(track_title)
    if match:
        return int(match.group(1))
    if LAW_ETHICS.search(track_title):
        return 4
    return 0


def is_ce_lesson(title: str, track_title: str) -> bool:
    lower_track = track_title.lower()
    return bool(CE_LESSON.search(title)) or ("law" in lower_track and "ethics" in lower_track)


def estimate_duration(title: str) -> int:
    """Reading time in minutes from the lesson title."""
    lower = title.lower()
    if PRACTICE.search(lower):
        return 30
    if "overview" in lower:
        return 10
    if "introduction" in lower:
        return 15
    return 20


def extract_objectives(following: list[ParsedNode], limit: int = 3) -> list[str]:
    """Collect objective-like lines from the nodes after a lesson heading."""
    objectives: list[str] = []
    for node in following:
        if node.kind == NodeKind.HEADING:
            break
        if OBJECTIVE_VERBS.search(node.text):
            objectives.append(node.text.lstrip("-*• ").strip())
            if len(objectives) >= limit:
                break
    return objectives or list(DEFAULT_OBJECTIVES)


# =============================================================================
# Tree
# =============================================================================


@dataclass
class LessonDraft:
    title: str
    slug: str
    description: str
    order_index: int
    duration_minutes: int
    ce_hours: int
    objectives: list[str] = field(default_factory=list)
    parts: list[str] = field(default_factory=list)

    @property
    def content(self) -> str:
        return "\n\n".join(self.parts)


@dataclass
class ModuleDraft:
    title: str
    slug: str
    description: str
    order_index: int
    lessons: list[LessonDraft] = field(default_factory=list)


@dataclass
class TrackDraft:
    title: str
    slug: str
    description: str
    order_index: int
    ce_hours: int
    is_active: bool = True
    modules: list[ModuleDraft] = field(default_factory=list)


@dataclass
class OutlineTree:
    tracks: list[TrackDraft] = field(default_factory=list)

    @property
    def module_count(self) -> int:
        return sum(len(t.modules) for t in self.tracks)

    @property
    def lesson_count(self) -> int:
        return sum(len(m.lessons) for t in self.tracks for m in t.modules)


@dataclass
class OutlineCounts:
    """Entities newly created by a persist call."""

    tracks_created: int = 0
    modules_created: int = 0
    lessons_created: int = 0
    lesson_ids: list[str] = field(default_factory=list)


class _OutlineCursor:
    """Open track/module/lesson during one scan. Closing appends to the parent."""

    def __init__(self):
        self.tree = OutlineTree()
        self.track: TrackDraft | None = None
        self.module: ModuleDraft | None = None
        self.lesson: LessonDraft | None = None
        self.page: int | None = None  # last page marker written into lesson content
        self._used_slugs: dict[int, set[str]] = {}

    def unique_slug(self, parent: object, title: str) -> str:
        """Suffix repeated slugs under one parent (-2, -3, ...)."""
        used = self._used_slugs.setdefault(id(parent), set())
        base = slugify(title) or "untitled"
        slug, n = base, 2
        while slug in used:
            suffix = f"-{n}"
            slug = base[: SLUG_MAX - len(suffix)] + suffix
            n += 1
        used.add(slug)
        return slug

    def close_lesson(self) -> None:
        if self.lesson is not None and self.module is not None:
            self.module.lessons.append(self.lesson)
        self.lesson = None
        self.page = None

    def close_module(self) -> None:
        self.close_lesson()
        if self.module is not None and self.track is not None:
            self.track.modules.append(self.module)
        self.module = None

    def close_track(self) -> None:
        self.close_module()
        if self.track is not None:
            self.tree.tracks.append(self.track)
        self.track = None


class OutlineMapper:
    """Build and persist the curriculum tree from parsed nodes."""

    def __init__(self, storage: Storage | None = None):
        self.storage = storage

    def map_to_outline(self, nodes: list[ParsedNode]) -> OutlineTree:
        """
        Scan nodes once and build the tree.

        Raises:
            StructureMalformed: a module heading before any track, or a
                lesson heading before any module.
        """
        cursor = _OutlineCursor()

        for i, node in enumerate(nodes):
            if node.kind != NodeKind.HEADING:
                if cursor.lesson is not None:
                    if node.page_number is not None and node.page_number != cursor.page:
                        cursor.lesson.parts.append(f"Page {node.page_number}")
                        cursor.page = node.page_number
                    cursor.lesson.parts.append(node.text)
                continue

            if node.level == 1:
                cursor.close_track()
                cursor.track = TrackDraft(
                    title=clean_title(node.text),
                    slug=cursor.unique_slug(cursor.tree, node.text),
                    description=describe(node.text),
                    order_index=len(cursor.tree.tracks) + 1,
                    ce_hours=infer_ce_hours(node.text),
                )
            elif node.level == 2:
                if cursor.track is None:
                    raise StructureMalformed(node.text, 2, "track (level-1) heading")
                cursor.close_module()
                cursor.module = ModuleDraft(
                    title=clean_title(node.text),
                    slug=cursor.unique_slug(cursor.track, node.text),
                    description=describe(node.text),
                    order_index=len(cursor.track.modules) + 1,
                )
            elif node.level == 3:
                if cursor.module is None:
                    raise StructureMalformed(node.text, 3, "module (level-2) heading")
                cursor.close_lesson()
                cursor.lesson = LessonDraft(
                    title=clean_title(node.text),
                    slug=cursor.unique_slug(cursor.module, node.text),
                    description=describe(node.text),
                    order_index=len(cursor.module.lessons) + 1,
                    duration_minutes=estimate_duration(node.text),
                    ce_hours=1 if is_ce_lesson(node.text, cursor.track.title) else 0,
                    objectives=extract_objectives(nodes[i + 1 : i + 11]),
                )
            elif cursor.lesson is not None:
                marker = "##" if node.level == 4 else "###"
                cursor.lesson.parts.append(f"{marker} {node.text}")

        cursor.close_track()
        tree = cursor.tree
        logger.info(
            f"Mapped outline: {len(tree.tracks)} tracks, "
            f"{tree.module_count} modules, {tree.lesson_count} lessons"
        )
        return tree

    def persist(self, tree: OutlineTree) -> OutlineCounts:
        """Save the tree, skipping any slug that already exists under its parent."""
        if self.storage is None:
            raise RuntimeError("OutlineMapper.persist requires a storage collaborator")

        counts = OutlineCounts()
        for track in tree.tracks:
            track_row = self.storage.find_track(track.slug)
            if track_row is None:
                track_row = self.storage.add_track(
                    title=track.title,
                    slug=track.slug,
                    description=track.description,
                    order_index=track.order_index,
                    ce_hours=track.ce_hours,
                    is_active=track.is_active,
                )
                counts.tracks_created += 1
                logger.debug(f"Created track: {track.title}")

            for module in track.modules:
                module_row = self.storage.find_module(track_row.id, module.slug)
                if module_row is None:
                    module_row = self.storage.add_module(
                        track_id=track_row.id,
                        title=module.title,
                        slug=module.slug,
                        description=module.description,
                        order_index=module.order_index,
                    )
                    counts.modules_created += 1
                    logger.debug(f"  Created module: {module.title}")

                for lesson in module.lessons:
                    if self.storage.find_lesson(module_row.id, lesson.slug) is not None:
                        logger.debug(f"    Lesson already exists: {lesson.title}")
                        continue
                    lesson_row = self.storage.add_lesson(
                        module_id=module_row.id,
                        title=lesson.title,
                        slug=lesson.slug,
                        description=lesson.description,
                        content=lesson.content,
                        objectives=lesson.objectives,
                        order_index=lesson.order_index,
                        duration_minutes=lesson.duration_minutes,
                        ce_hours=lesson.ce_hours,
                    )
                    counts.lessons_created += 1
                    counts.lesson_ids.append(lesson_row.id)

        logger.info(
            f"Saved outline: {counts.tracks_created} tracks, {counts.modules_created} modules, "
            f"{counts.lessons_created} lessons created"
        )
        return counts
