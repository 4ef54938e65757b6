"""Prompting, parsing, validation and orchestration for quiz generation."""
