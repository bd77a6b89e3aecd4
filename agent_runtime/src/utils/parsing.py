# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Some parsing utilities.

Small string helpers used when pulling structure out of free model text:
marker extraction, numeric parsing and number formatting.
"""

import re

NUMBER_PATTERN = re.compile(r"-?\d*\.?\d+(?:[eE][-+]?\d+)?")


def extract_after_last(text: str, pattern: str, keep_pattern: bool = False) -> str:
    last_pos = text.rfind(pattern)
    offset = 0 if keep_pattern else len(pattern)
    return text[last_pos + offset:] if last_pos != -1 else ""


def extract_between_patterns(s: str, pattern_a: str, pattern_b: str) -> str | None:
    """Text between the first `pattern_a` and the next `pattern_b` after it."""
    start = s.find(pattern_a)
    if start == -1:
        return None
    start += len(pattern_a)
    end = s.find(pattern_b, start)
    return s[start:end] if end != -1 else None


def parse_numbers(text: str) -> list[float]:
    """All numbers appearing in the text, in order.

    Thousands separators are not supported: "1,200" is two numbers.
    """
    return [float(m) for m in NUMBER_PATTERN.findall(text)]


def format_number(value: float) -> str:
    """Shortest round-trip text for a number, integral floats without '.0'."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return repr(value)
