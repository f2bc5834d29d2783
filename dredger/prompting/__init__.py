"""Prompt construction and response parsing for documentation requests."""

from .builder import PromptBuilder
from .markers import UnitMarkers

__all__ = ["PromptBuilder", "UnitMarkers"]
