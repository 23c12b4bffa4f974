"""Shared transport helper utilities."""

from .normalization import (
    extract_text_delta,
    extract_text_from_content,
    extract_tool_calls,
    extract_usage,
    first_choice,
    to_plain_dict,
)

__all__ = [
    "to_plain_dict",
    "first_choice",
    "extract_text_from_content",
    "extract_text_delta",
    "extract_usage",
    "extract_tool_calls",
]
