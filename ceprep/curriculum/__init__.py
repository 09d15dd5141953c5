"""
Curriculum: map parsed headings onto the track -> module -> lesson outline.
"""

from .outline import LessonDraft, ModuleDraft, OutlineCounts, OutlineMapper, OutlineTree, TrackDraft, slugify

__all__ = [
    "OutlineMapper",
    "OutlineTree",
    "OutlineCounts",
    "TrackDraft",
    "ModuleDraft",
    "LessonDraft",
    "slugify",
]
