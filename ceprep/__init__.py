"""
ceprep - insurance-licensing curriculum ingestion pipeline.

Turns a course document into tracks, modules and gated lessons, with
question banks, exam blueprints and spaced-repetition flashcards.
"""

__version__ = "1.0.0"
