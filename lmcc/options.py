"""
Compile-time optimization options.

Programs select optimizations with the ``__lmc_option__(key, value)``
directive. Directives are collected before code generation, OR-combined
into one flag set and frozen; the frozen ``CompileOptions`` is then passed
explicitly to the optimization pipeline. Code generation does not see it.
"""

from dataclasses import dataclass
from enum import IntFlag
from typing import Any, Dict

from .errors import InvalidOption
from .ir.nodes import Const, IRNode


class OptionFlags(IntFlag):
    NONE = 0
    THRASHING = 1
    CLEAN = 2
    BPROP = 4
    ALL = THRASHING | CLEAN | BPROP


OPTION_KEYS: Dict[str, OptionFlags] = {
    'thrashing': OptionFlags.THRASHING,
    'clean': OptionFlags.CLEAN,
    'bprop': OptionFlags.BPROP,
    'all': OptionFlags.ALL,
    'none': OptionFlags.NONE,
}

# Pipeline order; also the order flags are listed in
PASS_FLAGS = (OptionFlags.THRASHING, OptionFlags.CLEAN, OptionFlags.BPROP)


@dataclass(frozen=True)
class CompileOptions:
    """Immutable option set for one compilation session."""
    flags: OptionFlags = OptionFlags.NONE

    def enabled(self, flag: OptionFlags) -> bool:
        return bool(self.flags & flag)

    @property
    def enabled_count(self) -> int:
        return sum(1 for flag in PASS_FLAGS if self.flags & flag)

    @classmethod
    def from_keys(cls, *keys: str) -> 'CompileOptions':
        """Options with each named key enabled, e.g. ``from_keys('clean')``."""
        resolver = OptionResolver()
        for key in keys:
            resolver.add(key, 1)
        return resolver.freeze()

    def __str__(self):
        names = [f.name.lower() for f in PASS_FLAGS if self.flags & f]
        return ",".join(names) if names else "none"


class OptionResolver:
    """Validates option directives and accumulates their flags."""

    def __init__(self):
        self.flags = OptionFlags.NONE
        self.frozen = False

    @staticmethod
    def literal_value(value: Any) -> int:
        """
        Extract the integer from a directive value.

        Only a plain integer or a constant IR node is a compile-time
        literal; variables, expressions, strings and booleans are rejected.
        """
        if isinstance(value, Const):
            value = value.value
        elif isinstance(value, IRNode):
            raise InvalidOption(f"option value must be a compile-time constant, got {value!r}")
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidOption(f"option value must be a compile-time integer, got {value!r}")
        return value

    def resolve(self, key: Any, value: Any) -> OptionFlags:
        """Return the flag bits one directive contributes."""
        if not isinstance(key, str):
            raise InvalidOption(f"option key must be a string literal, got {key!r}")
        flag = OPTION_KEYS.get(key)
        if flag is None:
            raise InvalidOption(f"unknown option '{key}'")
        if self.literal_value(value) == 0:
            return OptionFlags.NONE
        return flag

    def add(self, key: Any, value: Any) -> OptionFlags:
        """Resolve one directive and OR it into the session flags."""
        if self.frozen:
            raise InvalidOption(f"option '{key}' set after options were frozen")
        self.flags |= self.resolve(key, value)
        return self.flags

    def freeze(self) -> CompileOptions:
        self.frozen = True
        return CompileOptions(self.flags)
