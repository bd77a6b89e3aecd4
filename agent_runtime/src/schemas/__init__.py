# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from .representation import (
    model_to_json_schema,
    format_parameters,
    format_call_signature,
)
from .json_parsing import (
    extract_outermost_json,
    repair_json_object,
    parse_tool_arguments,
    coerce_value,
)
