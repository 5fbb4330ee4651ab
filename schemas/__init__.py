"""
schemas/__init__.py

JSON Schema definitions and validation utilities for scene elements and
their ownership tags.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional, Tuple

from jsonschema import Draft202012Validator

from models import ElementSchemaError

# Schema file paths
SCHEMA_DIR = os.path.dirname(os.path.abspath(__file__))
ELEMENT_SCHEMA_PATH = os.path.join(SCHEMA_DIR, "element_schema.json")

# Cached schema and validators
_element_schema: Optional[Dict] = None
_element_validator: Optional[Draft202012Validator] = None
_tag_validator: Optional[Draft202012Validator] = None


def get_element_schema() -> Dict:
    """Load and return the scene element schema."""
    global _element_schema
    if _element_schema is None:
        with open(ELEMENT_SCHEMA_PATH, "r", encoding="utf-8") as f:
            _element_schema = json.load(f)
    return _element_schema


def _sub_schema(name: str) -> Dict:
    schema = get_element_schema()
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "$defs": schema.get("$defs", {}),
        **schema["$defs"][name],
    }


def _get_element_validator() -> Draft202012Validator:
    global _element_validator
    if _element_validator is None:
        _element_validator = Draft202012Validator(_sub_schema("sceneElement"))
    return _element_validator


def _get_tag_validator() -> Draft202012Validator:
    global _tag_validator
    if _tag_validator is None:
        _tag_validator = Draft202012Validator(_sub_schema("elementTag"))
    return _tag_validator


def _format_errors(errors) -> List[str]:
    messages = []
    for error in errors:
        path = " -> ".join(str(p) for p in error.absolute_path) if error.absolute_path else "root"
        messages.append(f"{path}: {error.message}")
    return messages


def is_valid_tag(payload: Any) -> bool:
    """Check whether a custom-data payload is a MindSync ownership tag."""
    if not isinstance(payload, dict):
        return False
    return _get_tag_validator().is_valid(payload)


def validate_element_dict(data: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """
    Validate a serialized scene element.

    A present ``custom_data`` that looks like a tag (has an
    ``owner_node_id`` key) must be a complete, valid tag.

    Args:
        data: The element dictionary (``SceneElement.to_dict()`` shape).

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    errors = _format_errors(_get_element_validator().iter_errors(data))
    custom = data.get("custom_data") if isinstance(data, dict) else None
    if isinstance(custom, dict) and "owner_node_id" in custom:
        errors.extend(
            f"custom_data -> {m}" for m in _format_errors(_get_tag_validator().iter_errors(custom))
        )
    return (not errors), errors


def validate_element(data: Dict[str, Any]) -> None:
    """Validate a serialized scene element, raising on failure.

    Raises:
        ElementSchemaError: With the collected messages.
    """
    ok, errors = validate_element_dict(data)
    if not ok:
        raise ElementSchemaError(errors)
