# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Utilities for parsing (possibly partial or malformed) model JSON into dicts.
"""

import json
import logging

from typing import Any
from json_repair import repair_json

logger = logging.getLogger(__name__)


def extract_outermost_json(text: str) -> str | None:
    """
    Locate the outermost {...} span of the text.

    Scanning starts at the first opening brace and respects string literals,
    so braces inside JSON strings are not counted. If the object has not been
    closed yet (e.g. mid-stream) the remainder of the text is returned.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return text[start:]


def repair_json_object(text: str) -> dict | None:
    """
    Parse the text as a JSON object, repairing it if needed.

    Returns None rather than raising when nothing object-like can be
    recovered.
    """
    if not text or not text.strip():
        return None
    try:
        obj = json.loads(text)
    except json.JSONDecodeError:
        try:
            obj = repair_json(text, return_objects=True)
        except Exception as e:
            logger.debug(f"json_repair could not recover object: {e}")
            return None
    return obj if isinstance(obj, dict) else None


def parse_tool_arguments(args_str: str | None) -> tuple[dict[str, Any], str | None]:
    """
    Parse a tool-call argument string.

    Returns:
        The argument dict (empty on failure) and an error string, which is
        None when the arguments parsed, directly or after repair.
    """
    if args_str is None or not args_str.strip():
        return {}, None

    # 1. Attempt to directly load the json string
    try:
        obj = json.loads(args_str)
        if isinstance(obj, dict):
            return obj, None
        return {}, f"Tool arguments must be a JSON object, got {type(obj).__name__}"
    except json.JSONDecodeError as e:
        warnings = str(e)

    # 2. If that failed, attempt to repair using json_repair
    try:
        repaired_obj = repair_json(args_str, return_objects=True)
    except Exception as e:
        return {}, f"Could not parse tool arguments: {e}"

    if not isinstance(repaired_obj, dict):
        return {}, f"Could not parse tool arguments as an object: {warnings}"

    logger.info(f"Repaired malformed tool arguments ({warnings})")
    return repaired_obj, None


def coerce_value(value: Any, schema: dict | None) -> Any:
    """
    Convert a loosely-typed value (e.g. a string parsed from free text) to the
    JSON type its schema asks for. Values that cannot be converted are
    returned unchanged.
    """
    if value is None or not schema:
        return value

    target = schema.get("type")
    if isinstance(target, list):
        target = next((t for t in target if t != "null"), None)

    try:
        if target == "string":
            return value if isinstance(value, str) else str(value)
        if not isinstance(value, str):
            return value
        raw = value.strip().strip("\"'")
        if target == "integer":
            float_val = float(raw)
            return int(float_val) if float_val.is_integer() else value
        if target == "number":
            float_val = float(raw)
            return int(float_val) if float_val.is_integer() and "." not in raw else float_val
        if target == "boolean":
            lowered = raw.lower()
            if lowered in ("true", "1", "yes", "on", "t"):
                return True
            if lowered in ("false", "0", "no", "off", "f"):
                return False
            return value
        if target in ("array", "object"):
            parsed = repair_json(raw, return_objects=True)
            expected = list if target == "array" else dict
            return parsed if isinstance(parsed, expected) else value
    except (ValueError, TypeError):
        return value
    return value
