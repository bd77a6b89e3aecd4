# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import ast
import operator
import logging

from pydantic import BaseModel, Field

from .base_tool import Tool

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Pow: operator.pow,
    ast.BitXor: operator.pow,  # models write 2^3 for exponentiation
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}


class CalculatorArgs(BaseModel):
    reasoning: str = Field(
        default="", description="Concise reasoning about the operation to be performed"
    )
    expression: str = Field(
        ...,
        description="Mathematical expression to evaluate",
        pattern=r"^[\d\s\+\-\*\/\(\)\.\^]+$",
    )


def _evaluate(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _evaluate(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _OPERATORS:
        return _OPERATORS[type(node.op)](_evaluate(node.left), _evaluate(node.right))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _OPERATORS:
        return _OPERATORS[type(node.op)](_evaluate(node.operand))
    raise ValueError(f"Unsupported expression element: {ast.dump(node)}")


def calculate(expression: str, reasoning: str = "") -> str:
    """A calculator tool that evaluates mathematical expressions.
    Supports basic arithmetic operations (including +, -, *, / and ^) and parentheses.
    All expressions must contain only numbers and valid operators."""
    result = _evaluate(ast.parse(expression, mode="eval"))
    if isinstance(result, float) and result.is_integer():
        result = int(result)
    return str(result)


def calculator_tool() -> Tool:
    return Tool.from_function(calculate, name="calculate", parameters=CalculatorArgs)
