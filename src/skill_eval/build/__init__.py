"""Build tool invocation and error diagnostics."""

from .diagnostics import ERROR_SIGNATURES, ErrorSignature, classify_error, extract_error_summary
from .runner import BuildOutcome, BuildRunner

__all__ = [
    "ERROR_SIGNATURES",
    "BuildOutcome",
    "BuildRunner",
    "ErrorSignature",
    "classify_error",
    "extract_error_summary",
]
