"""Helpers for consuming LLM output."""

from .json_extract import extract_json_span, find_json_object, find_json_value, iter_json_spans

__all__ = ["extract_json_span", "find_json_object", "find_json_value", "iter_json_spans"]
