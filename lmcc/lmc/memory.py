"""
Mailbox allocation.

Builds the storage plan of one compilation unit: every variable, constant
and temporary gets a unique logical address in [0, 99]. Address 0 is kept
for the TEMP mailbox and is only materialized when a TEMP-routed construct
is emitted. Addresses are handed out monotonically and never recycled.

Generated identifiers use a double-underscore prefix (``__c0``, ``__t0``),
which source identifiers are not allowed to use.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from ..abi import TEMP_ADDRESS, TEMP_NAME
from ..errors import InvalidIR, OutOfMailboxes, UndefinedSymbol
from .opcodes import MEMORY_SIZE, WORD_MAX, WORD_MIN

GENERATED_PREFIX = "__"


@dataclass(frozen=True)
class Mailbox:
    """One memory word: an identifier, its logical address and initial value."""
    name: str
    address: int
    value: int = 0

    def __repr__(self):
        return f"Mailbox({self.name}@{self.address}={self.value})"


class MailboxAllocator:
    """Symbol table for one compilation unit."""

    def __init__(self, capacity: int = MEMORY_SIZE):
        self.capacity = capacity
        self.symbols: Dict[str, Mailbox] = {}     # source variables
        self.constants: Dict[int, Mailbox] = {}   # literal value -> mailbox
        self.reserved: List[Mailbox] = []         # every box after TEMP, in address order
        self.temp_box: Optional[Mailbox] = None
        self.next_address = TEMP_ADDRESS + 1
        self.temporary_count = 0

    def _reserve(self, name: str, value: int) -> Mailbox:
        if not WORD_MIN <= value <= WORD_MAX:
            raise InvalidIR(f"value {value} of '{name}' does not fit a mailbox [{WORD_MIN}, {WORD_MAX}]")
        if self.next_address >= self.capacity:
            raise OutOfMailboxes(
                f"cannot allocate '{name}': all {self.capacity - 1} mailboxes after TEMP are in use"
            )
        box = Mailbox(name, self.next_address, value)
        self.next_address += 1
        self.reserved.append(box)
        return box

    def allocate(self, name: str, value: int = 0) -> Mailbox:
        """
        Return the mailbox for a name, allocating it on first use.

        A name that is already allocated keeps its address (and its
        original initial value).
        """
        if name == TEMP_NAME:
            return self.temp()
        if name in self.symbols:
            return self.symbols[name]
        if name.startswith(GENERATED_PREFIX):
            raise InvalidIR(f"identifier '{name}' uses the reserved prefix '{GENERATED_PREFIX}'")

        box = self._reserve(name, value)
        self.symbols[name] = box
        return box

    def lookup(self, name: str) -> Mailbox:
        """Return an allocated mailbox or raise UndefinedSymbol."""
        if name == TEMP_NAME:
            return self.temp()
        if name not in self.symbols:
            raise UndefinedSymbol(name)
        return self.symbols[name]

    def is_allocated(self, name: str) -> bool:
        return name in self.symbols

    def temp(self) -> Mailbox:
        """The TEMP mailbox (address 0), created on first request."""
        if self.temp_box is None:
            self.temp_box = Mailbox(TEMP_NAME, TEMP_ADDRESS)
        return self.temp_box

    def constant(self, value: int) -> Mailbox:
        """A shared initialized mailbox holding a literal value."""
        if value not in self.constants:
            self.constants[value] = self._reserve(f"{GENERATED_PREFIX}c{len(self.constants)}", value)
        return self.constants[value]

    def temporary(self) -> Mailbox:
        """A fresh mailbox for an intermediate value."""
        box = self._reserve(f"{GENERATED_PREFIX}t{self.temporary_count}", 0)
        self.temporary_count += 1
        return box

    def mailboxes(self) -> List[Mailbox]:
        """All allocated mailboxes in address order, TEMP first when present."""
        if self.temp_box is None:
            return list(self.reserved)
        return [self.temp_box] + self.reserved

    def __len__(self):
        return len(self.mailboxes())
