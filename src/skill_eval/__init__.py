"""Evaluation harness for coding-agent skill guidance."""

__version__ = "0.1.0"
