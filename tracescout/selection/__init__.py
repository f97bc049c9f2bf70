"""Diversity selection of the evaluation candidate set."""

from tracescout.selection.config import SelectionConfig
from tracescout.selection.diversity import DiversitySelector, SelectionPhase, SelectionResult

__all__ = ["DiversitySelector", "SelectionConfig", "SelectionPhase", "SelectionResult"]
