"""
Intermediate representation node definitions.

The backend consumes already-ordered IR: expressions evaluate strictly
left to right and statements run in list order. Each node represents one
construct of the flat scalar source language.
"""

from dataclasses import dataclass
from typing import List, Optional
from enum import Enum, auto


class NodeType(Enum):
    """IR node types."""
    # Expressions
    CONST = auto()       # integer literal
    STRING = auto()      # string literal (option directive keys only)
    VAR = auto()         # variable reference
    BINOP = auto()       # left + right, left * right, ...
    COMPARE = auto()     # left == right, left < right, ...

    # Statements
    DECLARE = auto()     # variable with an initial value
    ASSIGN = auto()      # target = value
    CALL = auto()        # builtin call: output(x), input(x), _hlt() ...
    OPTION = auto()      # __lmc_option__("key", value)
    IF = auto()
    WHILE = auto()

    # Unit
    PROGRAM = auto()


ARITHMETIC_OPS = ('+', '-', '*', '/', '%')
COMPARISON_OPS = ('==', '!=', '<', '<=', '>', '>=')


@dataclass(eq=False)
class IRNode:
    """Base class for all IR nodes."""
    node_type: NodeType
    line: int = 0

    def __repr__(self):
        return f"{self.__class__.__name__}(...)"


class Const(IRNode):
    """Integer literal."""
    def __init__(self, value: int, line: int = 0):
        super().__init__(NodeType.CONST, line)
        self.value = value

    def __repr__(self):
        return f"Const({self.value})"


class String(IRNode):
    """String literal."""
    def __init__(self, value: str, line: int = 0):
        super().__init__(NodeType.STRING, line)
        self.value = value

    def __repr__(self):
        return f"String({self.value!r})"


class Var(IRNode):
    """Variable reference."""
    def __init__(self, name: str, line: int = 0):
        super().__init__(NodeType.VAR, line)
        self.name = name

    def __repr__(self):
        return f"Var({self.name})"


class BinOp(IRNode):
    """Arithmetic on two operands: ``+``, ``-``, ``*``, ``/`` or ``%``."""
    def __init__(self, op: str, left: IRNode, right: IRNode, line: int = 0):
        super().__init__(NodeType.BINOP, line)
        self.op = op
        self.left = left
        self.right = right

    def __repr__(self):
        return f"BinOp({self.left!r} {self.op} {self.right!r})"


class Compare(IRNode):
    """Signed comparison; as a value it yields TRUE (1) or FALSE (0)."""
    def __init__(self, op: str, left: IRNode, right: IRNode, line: int = 0):
        super().__init__(NodeType.COMPARE, line)
        self.op = op
        self.left = left
        self.right = right

    def __repr__(self):
        return f"Compare({self.left!r} {self.op} {self.right!r})"


class Declare(IRNode):
    """Variable declaration with an initial mailbox value."""
    def __init__(self, name: str, value: int = 0, line: int = 0):
        super().__init__(NodeType.DECLARE, line)
        self.name = name
        self.value = value

    def __repr__(self):
        return f"Declare({self.name}={self.value})"


class Assign(IRNode):
    """Assignment of an expression to a variable."""
    def __init__(self, target: str, value: IRNode, line: int = 0):
        super().__init__(NodeType.ASSIGN, line)
        self.target = target
        self.value = value

    def __repr__(self):
        return f"Assign({self.target} = {self.value!r})"


class Call(IRNode):
    """Builtin call."""
    def __init__(self, name: str, args: Optional[List[IRNode]] = None, line: int = 0):
        super().__init__(NodeType.CALL, line)
        self.name = name
        self.args = args or []

    def __repr__(self):
        return f"Call({self.name}, {self.args!r})"


class Option(IRNode):
    """
    Compile-time option directive.

    ``value`` is kept as an IR node so the option resolver can reject
    anything that is not a literal.
    """
    def __init__(self, key: str, value: IRNode, line: int = 0):
        super().__init__(NodeType.OPTION, line)
        self.key = key
        self.value = value

    def __repr__(self):
        return f"Option({self.key}={self.value!r})"


class If(IRNode):
    """Two-way conditional."""
    def __init__(self, condition: IRNode, then_body: List[IRNode],
                 else_body: Optional[List[IRNode]] = None, line: int = 0):
        super().__init__(NodeType.IF, line)
        self.condition = condition
        self.then_body = then_body
        self.else_body = else_body or []

    def __repr__(self):
        return f"If({self.condition!r}, {len(self.then_body)}, {len(self.else_body)})"


class While(IRNode):
    """Pre-tested loop."""
    def __init__(self, condition: IRNode, body: List[IRNode], line: int = 0):
        super().__init__(NodeType.WHILE, line)
        self.condition = condition
        self.body = body

    def __repr__(self):
        return f"While({self.condition!r}, {len(self.body)})"


class Program(IRNode):
    """One compilation unit."""
    def __init__(self, statements: Optional[List[IRNode]] = None, name: str = "<input>"):
        super().__init__(NodeType.PROGRAM, 0)
        self.statements = statements or []
        self.name = name

    def walk(self):
        """Yield every statement, descending into control-flow bodies."""
        stack = list(reversed(self.statements))
        while stack:
            node = stack.pop()
            yield node
            if isinstance(node, If):
                stack.extend(reversed(node.else_body))
                stack.extend(reversed(node.then_body))
            elif isinstance(node, While):
                stack.extend(reversed(node.body))

    def __repr__(self):
        return f"Program({self.name}, {len(self.statements)} statements)"
