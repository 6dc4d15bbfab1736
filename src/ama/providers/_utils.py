"""Shared utilities for translating tool descriptors."""

from __future__ import annotations

from copy import deepcopy
from typing import Any

from ama.errors import InternalError


def to_strict_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Normalize a JSON schema for strict function calling.

    Ensures that for all 'object' types:
    1. additionalProperties is False
    2. All defined properties are listed in 'required'
    """
    normalized = deepcopy(schema)

    def walk(node: Any) -> Any:
        if isinstance(node, list):
            return [walk(item) for item in node]
        if not isinstance(node, dict):
            return node

        updated: dict[str, Any] = {}
        for key, value in node.items():
            updated[key] = walk(value)

        if updated.get("type") == "object" or "properties" in updated:
            properties = updated.get("properties", {})
            if isinstance(properties, dict):
                updated["additionalProperties"] = False
                if "required" not in updated:
                    updated["required"] = list(properties.keys())

        return updated

    result = walk(normalized)
    if not isinstance(result, dict):
        raise InternalError("Invalid tool parameter schema: expected object schema")
    return result


def to_flat_input_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Reduce a parameter schema to ``type/properties/required``.

    Each property keeps only its ``type`` and ``description``; keywords such
    as ``additionalProperties`` are dropped.
    """
    properties: dict[str, Any] = {}
    for key, value in (schema.get("properties") or {}).items():
        prop: dict[str, Any] = {"type": value.get("type", "string")}
        if "description" in value:
            prop["description"] = value["description"]
        properties[key] = prop
    return {
        "type": "object",
        "properties": properties,
        "required": list(schema.get("required") or []),
    }
