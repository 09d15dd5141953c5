"""
Generation: Gemini-backed JSON text generation with model fallback.
"""

from .text_generator import TextGenerator, parse_json_response

__all__ = ["TextGenerator", "parse_json_response"]
