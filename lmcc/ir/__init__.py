"""
Intermediate representation consumed by the backend.
"""

from .nodes import (
    NodeType, IRNode,
    Const, String, Var, BinOp, Compare,
    Declare, Assign, Call, Option, If, While, Program,
)
from .loader import IRLoader, load_program, loads

__all__ = [
    'NodeType', 'IRNode',
    'Const', 'String', 'Var', 'BinOp', 'Compare',
    'Declare', 'Assign', 'Call', 'Option', 'If', 'While', 'Program',
    'IRLoader', 'load_program', 'loads',
]
