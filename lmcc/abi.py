"""
Builtin ABI surface.

The fixed vocabulary generated programs target: builtin function names,
the reserved TEMP mailbox, the option directive and the type aliases the
source language's type checker uses. The backend consumes these; it never
redefines them.
"""

from dataclasses import dataclass
from typing import Dict, Optional


# Mailbox 0 stages a computed value for output without a named variable.
TEMP_ADDRESS = 0
TEMP_NAME = "_TEMP"

# Call-like directive carrying a compile-time option: __lmc_option__("clean", 1)
OPTION_DIRECTIVE = "__lmc_option__"

# Type aliases visible to the source language
TYPE_ALIASES = {
    'number_t': int,
    'bool_t': int,
}

# Boolean encoding
TRUE = 1
FALSE = 0


@dataclass(frozen=True)
class Builtin:
    """A builtin function the emitter knows how to lower."""
    name: str
    arity: int
    mnemonic: Optional[str] = None   # raw single-instruction builtins
    optional_target: bool = False    # argument may be omitted (defaults to TEMP)

    def accepts(self, argc: int) -> bool:
        if argc == self.arity:
            return True
        return self.optional_target and argc == self.arity - 1

    def __str__(self):
        return f"builtin {self.name}({self.arity})"


BUILTINS: Dict[str, Builtin] = {
    # Instruction functions
    '_hlt': Builtin('_hlt', 0, 'HLT'),
    '_inp': Builtin('_inp', 0, 'INP'),
    '_out': Builtin('_out', 0, 'OUT'),
    '_sta': Builtin('_sta', 1, 'STA'),
    # Library functions
    'halt': Builtin('halt', 0, 'HLT'),
    'input': Builtin('input', 1, optional_target=True),
    'output': Builtin('output', 1),
}


def get_builtin(name: str) -> Optional[Builtin]:
    """Get builtin by name."""
    return BUILTINS.get(name)
