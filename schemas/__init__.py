"""
schemas/__init__.py

JSON Schema definitions and validation utilities for the key binding file.
Used when reading kb.json so that a hand-edited file with the wrong shape is
reported instead of being half applied.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional, Tuple

from jsonschema import Draft202012Validator

# Schema file paths
SCHEMA_DIR = os.path.dirname(os.path.abspath(__file__))
KEYBINDS_SCHEMA_PATH = os.path.join(SCHEMA_DIR, "keybinds_schema.json")

# Cached schema
_keybinds_schema: Optional[Dict] = None


def get_keybinds_schema() -> Dict:
    """Load and return the key binding schema."""
    global _keybinds_schema
    if _keybinds_schema is None:
        with open(KEYBINDS_SCHEMA_PATH, "r", encoding="utf-8") as f:
            _keybinds_schema = json.load(f)
    return _keybinds_schema


def _format_errors(validator: Draft202012Validator, data: Any) -> List[str]:
    error_messages = []
    for error in sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path)):
        path = " -> ".join(str(p) for p in error.absolute_path) if error.absolute_path else "root"
        error_messages.append(f"{path}: {error.message}")
    return error_messages


def validate_keybinds(data: Any, strict: bool = False) -> Tuple[bool, List[str]]:
    """
    Validate a parsed key binding document.

    The default check only requires an object of non-empty strings. With
    strict=True every value must also be a valid key specification
    ("KEY" or "Shift+KEY", KEY being A-Z, 0-9 or F1-F12).

    Args:
        data: The JSON data to validate
        strict: Also check the format of every key specification

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    schema = get_keybinds_schema()
    if strict:
        schema = {
            **schema,
            "additionalProperties": {"$ref": "#/$defs/strictKeySpec"},
        }

    errors = _format_errors(Draft202012Validator(schema), data)
    return not errors, errors
