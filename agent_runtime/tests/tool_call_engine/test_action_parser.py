# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for parsing `Action: name(key='value')` markers."""
import pytest

from src.tool_call_engine.action_parser import normalize_point, parse_action
from src.utils.parsing import extract_between_patterns, format_number, parse_numbers


def test_click_point_is_normalised():
    parsed = parse_action("Action: click(point='<point>892 351</point>')")
    assert parsed == {"action_type": "click", "action_inputs": {"start_box": "[0.892,0.351]"}}


@pytest.mark.parametrize(
    "text",
    [
        # closing quote missing
        "Action: click(point='<point>892 351</point>)",
        # closing paren missing
        "Action: click(point='<point>892 351</point>'",
        # neither
        "Action: click(point='<point>892 351</point>",
    ],
)
def test_malformed_click_is_recovered(text):
    parsed = parse_action(text)
    assert parsed["action_type"] == "click"
    assert parsed["action_inputs"] == {"start_box": "[0.892,0.351]"}


def test_drag_points_map_to_boxes():
    parsed = parse_action(
        "Action: drag(start_point='<point>100 200</point>', end_point='<point>300 400</point>')"
    )
    assert parsed["action_inputs"] == {"start_box": "[0.1,0.2]", "end_box": "[0.3,0.4]"}


def test_escapes_are_decoded():
    parsed = parse_action("Action: type(content='it\\'s done\\nbye')")
    assert parsed["action_inputs"] == {"content": "it's done\nbye"}


def test_commas_inside_quoted_values():
    parsed = parse_action("Action: search(query='paris, france', limit='3')")
    assert parsed["action_inputs"] == {"query": "paris, france", "limit": "3"}


def test_last_marker_wins_and_no_args():
    parsed = parse_action("Thought: wait first\nAction: wait()")
    assert parsed == {"action_type": "wait", "action_inputs": {}}


def test_text_without_call():
    assert parse_action("Action: nothing to do") is None


def test_custom_factors():
    parsed = parse_action("Action: click(point='(50, 25)')", factors=(100, 50))
    assert parsed["action_inputs"]["start_box"] == "[0.5,0.5]"


def test_normalize_point_variants():
    assert normalize_point("<bbox>0 0 500 1000</bbox>") == "[0,0,0.5,1]"
    assert normalize_point("no numbers") is None
    assert normalize_point("1 2 3") is None


def test_parsing_helpers():
    assert parse_numbers("x=-1.5, y=2e3") == [-1.5, 2000.0]
    assert format_number(3.0) == "3"
    assert format_number(0.25) == "0.25"
    assert extract_between_patterns("a<p>1</p>b", "<p>", "</p>") == "1"
    assert extract_between_patterns("a<p>1", "<p>", "</p>") is None
    assert extract_between_patterns("<p>1</p><p>2</p>", "<p>", "</p>") == "1"
