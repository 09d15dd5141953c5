"""
Quiz: assessment question extraction and exam blueprints.

- question_extractor: questions from assessment sections, grouped into banks
- exam_blueprint: weighted exam forms and per-topic mini exams
"""

from .exam_blueprint import ExamBlueprint, ExamBlueprintBuilder, ExamForm
from .question_extractor import Difficulty, ExtractedQuestion, QuestionExtractor, QuestionType

__all__ = [
    # Extraction
    "QuestionExtractor",
    "ExtractedQuestion",
    "QuestionType",
    "Difficulty",
    # Exams
    "ExamBlueprint",
    "ExamBlueprintBuilder",
    "ExamForm",
]
