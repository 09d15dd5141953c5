"""
Importer: end-to-end course document import.
"""

from .import_service import ImportResult, ImportService

__all__ = ["ImportService", "ImportResult"]
