# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from .event_stream import EventStream, EventEncoder, event_to_json, event_from_json

__all__ = ["EventStream", "EventEncoder", "event_to_json", "event_from_json"]
