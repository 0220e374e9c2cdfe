"""Grading of generated source."""

from .patterns import PatternCheck, PatternVerifier

__all__ = ["PatternCheck", "PatternVerifier"]
