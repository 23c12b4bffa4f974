from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Module for structured llm outputs: locating a JSON object inside a free-form
reply and validating it against a pydantic model.
"""
from typing import TypeVar
from pydantic import BaseModel, ValidationError

from .errors import LLMInvalidResponseError
from .response_parser import extract_json_object

T = TypeVar("T", bound=BaseModel)


def parse_and_validate_json(text: str, schema: type[T]) -> T:
    obj = extract_json_object(text)
    if obj is None:
        raise LLMInvalidResponseError(
            f"Failed to extract valid JSON object from response: {text}"
        )
    try:
        return schema.model_validate(obj)
    except ValidationError as e:
        raise LLMInvalidResponseError(
            f"JSON does not conform to schema: {e}\nOriginal response: {text}"
        ) from e
