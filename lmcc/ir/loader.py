"""
JSON reader for IR programs.

A program file is either a list of statements or an object of the form
``{"name": ..., "statements": [...]}``. Every node is an object with a
``type`` key naming the node kind:

    {"type": "declare", "name": "a", "value": 3}
    {"type": "assign", "target": "c",
     "value": {"type": "binop", "op": "+",
               "left": {"type": "var", "name": "a"},
               "right": {"type": "const", "value": 4}}}
    {"type": "call", "name": "output", "args": [{"type": "var", "name": "c"}]}
    {"type": "option", "key": "clean", "value": 1}
    {"type": "if", "condition": {...}, "then": [...], "else": [...]}
    {"type": "while", "condition": {...}, "body": [...]}
"""

import json
from typing import Any, Dict, List

from ..errors import InvalidIR
from ..lmc.opcodes import WORD_MAX, WORD_MIN
from .nodes import (
    ARITHMETIC_OPS, COMPARISON_OPS,
    IRNode, Const, String, Var, BinOp, Compare,
    Declare, Assign, Call, Option, If, While, Program,
)


EXPRESSION_TYPES = ('const', 'string', 'var', 'binop', 'compare')


class IRLoader:
    """Builds IR node trees from decoded JSON data."""

    def __init__(self, name: str = "<input>"):
        self.name = name

    def load(self, data: Any) -> Program:
        if isinstance(data, dict):
            name = data.get('name', self.name)
            statements = data.get('statements')
        else:
            name = self.name
            statements = data
        if not isinstance(statements, list):
            raise InvalidIR("program must be a list of statements")
        return Program(self.load_block(statements), name=name)

    def load_block(self, items: Any) -> List[IRNode]:
        if not isinstance(items, list):
            raise InvalidIR(f"expected a list of statements, got {type(items).__name__}")
        return [self.load_statement(item) for item in items]

    def load_statement(self, data: Any) -> IRNode:
        kind = self._kind(data)
        if kind in EXPRESSION_TYPES:
            raise InvalidIR(f"expression '{kind}' used as a statement")
        return self._dispatch(kind, data)

    def load_expression(self, data: Any) -> IRNode:
        kind = self._kind(data)
        if kind not in EXPRESSION_TYPES:
            raise InvalidIR(f"statement '{kind}' used as an expression")
        return self._dispatch(kind, data)

    def _kind(self, data: Any) -> str:
        if not isinstance(data, dict) or 'type' not in data:
            raise InvalidIR(f"IR node must be an object with a 'type' key: {data!r}")
        return str(data['type']).lower()

    def _dispatch(self, kind: str, data: Dict) -> IRNode:
        method = getattr(self, f'_load_{kind}', None)
        if method is None:
            raise InvalidIR(f"unknown IR node type '{kind}'")
        try:
            return method(data, data.get('line', 0))
        except KeyError as e:
            raise InvalidIR(f"'{kind}' node is missing field {e}") from e

    # Expressions

    def _load_const(self, data: Dict, line: int) -> Const:
        value = data['value']
        if not isinstance(value, int) or isinstance(value, bool):
            raise InvalidIR(f"constant must be an integer, got {value!r}")
        return Const(self._word(value), line)

    def _load_string(self, data: Dict, line: int) -> String:
        return String(str(data['value']), line)

    def _load_var(self, data: Dict, line: int) -> Var:
        return Var(self._identifier(data['name']), line)

    def _load_binop(self, data: Dict, line: int) -> BinOp:
        op = data['op']
        if op not in ARITHMETIC_OPS:
            raise InvalidIR(f"unsupported arithmetic operator '{op}'")
        return BinOp(op, self.load_expression(data['left']),
                     self.load_expression(data['right']), line)

    def _load_compare(self, data: Dict, line: int) -> Compare:
        op = data['op']
        if op not in COMPARISON_OPS:
            raise InvalidIR(f"unsupported comparison operator '{op}'")
        return Compare(op, self.load_expression(data['left']),
                       self.load_expression(data['right']), line)

    # Statements

    def _load_declare(self, data: Dict, line: int) -> Declare:
        value = data.get('value', 0)
        if not isinstance(value, int) or isinstance(value, bool):
            raise InvalidIR(f"initial value of '{data['name']}' must be an integer")
        return Declare(self._identifier(data['name']), self._word(value), line)

    def _load_assign(self, data: Dict, line: int) -> Assign:
        return Assign(self._identifier(data['target']), self.load_expression(data['value']), line)

    def _load_call(self, data: Dict, line: int) -> Call:
        args = data.get('args', [])
        if not isinstance(args, list):
            raise InvalidIR(f"arguments of '{data['name']}' must be a list")
        return Call(self._identifier(data['name']), [self.load_expression(a) for a in args], line)

    def _load_option(self, data: Dict, line: int) -> Option:
        value = data['value']
        # Scalars become literal nodes; the resolver decides what is acceptable
        if isinstance(value, dict):
            value = self.load_expression(value)
        elif isinstance(value, str):
            value = String(value, line)
        else:
            value = Const(value, line)
        return Option(str(data['key']), value, line)

    def _load_if(self, data: Dict, line: int) -> If:
        return If(self.load_expression(data['condition']),
                  self.load_block(data.get('then', [])),
                  self.load_block(data.get('else', [])), line)

    def _load_while(self, data: Dict, line: int) -> While:
        return While(self.load_expression(data['condition']),
                     self.load_block(data.get('body', [])), line)

    def _word(self, value: int) -> int:
        if not WORD_MIN <= value <= WORD_MAX:
            raise InvalidIR(f"value {value} outside the mailbox range [{WORD_MIN}, {WORD_MAX}]")
        return value

    def _identifier(self, name: Any) -> str:
        if not isinstance(name, str) or not name:
            raise InvalidIR(f"identifier must be a non-empty string, got {name!r}")
        return name


def load_program(data: Any, name: str = "<input>") -> Program:
    """Build a Program from already decoded JSON data."""
    return IRLoader(name).load(data)


def loads(text: str, name: str = "<input>") -> Program:
    """Parse a JSON document into a Program."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidIR(f"{name}: invalid JSON: {e}") from e
    return load_program(data, name)
