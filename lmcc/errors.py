"""
Compiler diagnostics.

Every fatal error carries a diagnostic code in its message (LMC01xx) so
callers and tests can match on it. Warnings use the LMC09xx range and are
never raised by the compiler driver; they are recorded on the session.
"""

from typing import Optional


class LMCError(Exception):
    """Base class for fatal compilation errors."""

    code = "LMC0100"

    def __init__(self, message: str):
        super().__init__(f"{self.code}: {message}")
        self.detail = message


class OutOfMailboxes(LMCError):
    """The 100-word address space is exhausted."""

    code = "LMC0101"


class UndefinedSymbol(LMCError):
    """A variable was read before any mailbox was allocated for it."""

    code = "LMC0102"

    def __init__(self, name: str):
        super().__init__(f"undefined symbol '{name}'")
        self.name = name


class InvalidOption(LMCError):
    """Unknown option key or a value that is not a compile-time literal."""

    code = "LMC0103"


class UnresolvedLabel(LMCError):
    """A branch refers to a label that is not bound to any instruction."""

    code = "LMC0104"

    def __init__(self, label: str):
        super().__init__(f"unresolved label '{label}'")
        self.label = label


class UnknownBuiltin(LMCError):
    code = "LMC0105"

    def __init__(self, name: str, arity: int):
        super().__init__(f"unknown builtin function {name}({arity})")
        self.name = name


class BuiltinInvocationError(LMCError):
    code = "LMC0106"


class InvalidIR(LMCError):
    """Malformed IR handed to the backend."""

    code = "LMC0107"


class OptimizationBudgetExceeded(Warning):
    """
    The optimization fixpoint loop hit its round cap.

    Not fatal: the pipeline keeps the partially optimized program, which is
    still correct because every pass preserves behavior.
    """

    code = "LMC0901"

    def __init__(self, rounds: int, remaining: Optional[int] = None):
        message = f"optimization stopped after {rounds} rounds without reaching a fixed point"
        if remaining is not None:
            message += f" ({remaining} instructions left)"
        super().__init__(message)
        self.rounds = rounds
        self.message = message
