# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Utilities for consistent, LLM-readable rendering of tool parameter schemas.
"""

import json

from typing import Any, Type
from pydantic import BaseModel


def model_to_json_schema(model_cls: Type[BaseModel]) -> dict[str, Any]:
    """JSON schema of a pydantic model, with the noisy title keys removed."""
    schema = model_cls.model_json_schema()
    return _strip_titles(schema)


def _strip_titles(node: Any) -> Any:
    if isinstance(node, dict):
        return {
            k: _strip_titles(v)
            for k, v in node.items()
            if not (k == "title" and isinstance(v, str))
        }
    if isinstance(node, list):
        return [_strip_titles(v) for v in node]
    return node


def get_type_info(prop: dict[str, Any], required: bool) -> str:
    """Human readable type info for a single schema property."""
    parts = []

    if "enum" in prop:
        options = ", ".join(f"'{val}'" for val in prop["enum"])
        parts.append(f"one of [{options}]")
    else:
        prop_type = prop.get("type")
        if prop_type is None and "anyOf" in prop:
            types = [p.get("type") for p in prop["anyOf"] if p.get("type") != "null"]
            prop_type = types[0] if types else "any"
            if len(types) < len(prop["anyOf"]):
                parts.append("optional")
        if prop_type == "array":
            item_type = prop.get("items", {}).get("type", "any")
            parts.append(f"list of {item_type}")
        else:
            parts.append(str(prop_type or "any"))

    # Add constraints
    for key, label in (
        ("minimum", "min"),
        ("maximum", "max"),
        ("minItems", "min items"),
        ("maxItems", "max items"),
    ):
        if key in prop:
            parts.append(f"{label}: {prop[key]}")

    if required:
        parts.append("required")
    elif "default" in prop:
        parts.append(f"default: {json.dumps(prop['default'])}")

    return ", ".join(parts)


def format_parameters(schema: dict[str, Any]) -> str:
    """Render an object schema's properties as a bullet list."""
    properties = schema.get("properties") or {}
    if not properties:
        return "No parameters"
    required = set(schema.get("required") or [])
    lines = []
    for name, prop in properties.items():
        line = f"- {name} ({get_type_info(prop, name in required)})"
        if prop.get("description"):
            line += f": {prop['description']}"
        lines.append(line)
    return "\n".join(lines)


def format_call_signature(name: str, schema: dict[str, Any]) -> str:
    """Pseudo-function signature, e.g. `click(point='...', button='...')`."""
    properties = schema.get("properties") or {}
    args = ", ".join(f"{param}='...'" for param in properties)
    return f"{name}({args})"
