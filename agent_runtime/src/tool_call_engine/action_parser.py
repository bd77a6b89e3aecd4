# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Parsing of pseudo-function action markers written in free text, e.g.

    Action: click(point='<point>892 351</point>')

Models get the quoting wrong often enough that the argument list is parsed
with a cascade of progressively more permissive patterns:

1. well-formed `key='value'` pairs;
2. values missing their closing quote, bounded by the next `key=`;
3. an unterminated call (no closing paren), running to the end of the line.

Point-like arguments are normalised into `start_box` / `end_box` strings,
scaled by the screen factors.
"""

import re
import logging

from typing import Any, Optional

from ..utils.parsing import (
    extract_after_last,
    extract_between_patterns,
    format_number,
    parse_numbers,
)

logger = logging.getLogger(__name__)

ACTION_PREFIX = "Action:"
DEFAULT_FACTORS = (1000, 1000)

POINT_KEYS = {
    "point": "start_box",
    "start_point": "start_box",
    "end_point": "end_box",
}
BOX_KEYS = {"start_box", "end_box"}

_CALL_RE = re.compile(r"^\s*([A-Za-z_][\w.]*)\s*\((.*)$", re.DOTALL)
_STRICT_PARAM_RE = re.compile(r"""\s*(\w+)\s*=\s*(['"])((?:\\.|(?!\2).)*)\2\s*""", re.DOTALL)
_KEY_RE = re.compile(r"""(?:^|,)\s*(\w+)\s*=\s*""")


def decode_escapes(value: str) -> str:
    return value.replace("\\n", "\n").replace("\\'", "'").replace('\\"', '"')


def _split_call(text: str) -> Optional[tuple[str, str, bool]]:
    """Split `name(args...)` into (name, args body, closed)."""
    match = _CALL_RE.match(text)
    if not match:
        return None
    name, rest = match.group(1), match.group(2).rstrip()
    first_line = rest.split("\n", 1)[0].rstrip()
    if first_line.endswith(")"):
        return name, first_line[:-1], True
    if rest.endswith(")"):
        # A value spanning lines
        return name, rest[:-1], True
    # Unterminated: only the rest of the line belongs to the call
    return name, first_line, False


def _parse_strict(body: str) -> Optional[dict[str, str]]:
    if not body.strip():
        return {}
    params: dict[str, str] = {}
    pos = 0
    while pos < len(body):
        match = _STRICT_PARAM_RE.match(body, pos)
        if not match:
            return None
        params[match.group(1)] = match.group(3)
        pos = match.end()
        if pos < len(body):
            if body[pos] != ",":
                return None
            pos += 1
    return params


def _parse_lenient(body: str) -> dict[str, str]:
    """Values run from `key=` to the next `, key=` (or the end of the body)."""
    keys = list(_KEY_RE.finditer(body))
    params: dict[str, str] = {}
    for i, match in enumerate(keys):
        end = keys[i + 1].start() if i + 1 < len(keys) else len(body)
        value = body[match.end() : end].strip()
        if value[:1] in ("'", '"'):
            quote = value[0]
            value = value[1:]
            if value.endswith(quote) and not value.endswith("\\" + quote):
                value = value[:-1]
        params[match.group(1)] = value
    return params


def normalize_point(value: str, factors: tuple[float, float] = DEFAULT_FACTORS) -> Optional[str]:
    """Turn `<point>x y</point>`, `(x,y)` or a 4-number box into `[x/W,y/H,...]`."""
    inner = extract_between_patterns(value, "<point>", "</point>")
    if inner is None:
        inner = extract_between_patterns(value, "<bbox>", "</bbox>")
    numbers = parse_numbers(inner if inner is not None else value)
    if len(numbers) not in (2, 4):
        return None
    width, height = factors
    scaled = [n / (width if i % 2 == 0 else height) for i, n in enumerate(numbers)]
    return "[" + ",".join(format_number(v) for v in scaled) + "]"


def find_action_text(text: str) -> str:
    """The call text following the last `Action:` marker, or the text itself."""
    if ACTION_PREFIX in text:
        return extract_after_last(text, ACTION_PREFIX).strip()
    return text.strip()


def parse_action(
    text: str,
    factors: tuple[float, float] = DEFAULT_FACTORS,
) -> Optional[dict[str, Any]]:
    """
    Parse a pseudo-function call.

    Returns:
        {"action_type": name, "action_inputs": {...}} or None when the text
        does not contain a call at all.
    """
    split = _split_call(find_action_text(text))
    if split is None:
        return None
    name, body, closed = split

    params = _parse_strict(body) if closed else None
    if params is None:
        logger.debug(f"Falling back to lenient parsing for action {name}")
        params = _parse_lenient(body)

    action_inputs: dict[str, Any] = {}
    for key, raw in params.items():
        value = decode_escapes(raw)
        if key in POINT_KEYS or key in BOX_KEYS:
            normalized = normalize_point(value, factors)
            target = POINT_KEYS.get(key, key)
            action_inputs[target] = normalized if normalized is not None else value
        else:
            action_inputs[key] = value

    return {"action_type": name, "action_inputs": action_inputs}
