"""Tests for build error diagnostics."""

import re

from skill_eval.build.diagnostics import (
    ERROR_SIGNATURES,
    ErrorSignature,
    classify_error,
    extract_error_summary,
)


def test_unresolved_reference_beats_generic_error():
    output = (
        "> Task :compileKotlin\n"
        "e: error: something generic went wrong\n"
        "e: file:///ws/src/Foo.kt:3:5 Unresolved reference: FooResolver\n"
    )
    assert extract_error_summary(output) == "FooResolver"
    assert classify_error(output) == "unresolved_reference"


def test_cannot_find_symbol_kept_whole():
    output = "Foo.java:10: error: cannot find symbol\n  symbol: class Bar\n"
    assert extract_error_summary(output) == "Foo.java:10: error: cannot find symbol"


def test_not_found_strips_prefix():
    output = "Execution failed: Plugin [id: 'x'] was not found in any source\n"
    summary = extract_error_summary(output)
    assert "not found" in summary
    assert not summary.startswith("Execution failed")


def test_generic_error_line():
    output = "BUILD FAILED\nsrc/App.kt:1: error: type mismatch\nmore\n"
    assert extract_error_summary(output) == "type mismatch"


def test_fallback_last_non_empty_line():
    output = "Starting build\nFAILURE: Build failed with an exception.\n\n   \n"
    assert extract_error_summary(output) == "FAILURE: Build failed with an exception."
    assert classify_error(output) == "unknown"


def test_empty_output():
    assert extract_error_summary("") == ""


def test_signature_order_is_data_driven():
    labels = [s.label for s in ERROR_SIGNATURES]
    assert labels.index("unresolved_reference") < labels.index("error")

    custom = [ErrorSignature("oom", re.compile(r"OutOfMemoryError"))] + ERROR_SIGNATURES
    output = "error: foo\njava.lang.OutOfMemoryError: Java heap space\n"
    assert extract_error_summary(output, custom) == "java.lang.OutOfMemoryError: Java heap space"
