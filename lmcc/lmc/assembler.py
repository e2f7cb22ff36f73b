"""
LMC assembler - lays out code and data and resolves labels.

Code and data share the single 100-word address space, so label addresses
are only known once the final instruction list and the set of data
mailboxes are fixed. Layout places code from address 0 (the LMC starts
executing there) and data mailboxes immediately after it, in logical
address order, so TEMP (logical address 0) is the first data word.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..errors import OutOfMailboxes, UndefinedSymbol, UnresolvedLabel
from .instructions import Instruction, InstructionList
from .memory import Mailbox
from .opcodes import MEMORY_SIZE, OperandKind, encode


@dataclass
class AssembledProgram:
    """A fully laid out program."""
    instructions: List[Instruction]
    data: List[Mailbox]
    addresses: Dict[Mailbox, int] = field(default_factory=dict)  # data mailbox -> physical address
    labels: Dict[str, int] = field(default_factory=dict)         # label -> physical address
    image: List[int] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.instructions) + len(self.data)

    def address_of(self, name: str) -> Optional[int]:
        """Physical address of a data mailbox by identifier."""
        for box, address in self.addresses.items():
            if box.name == name:
                return address
        return None

    def _canonical_labels(self) -> Dict[int, str]:
        """First label bound at each code address."""
        canonical: Dict[int, str] = {}
        for index, instr in enumerate(self.instructions):
            if instr.labels:
                canonical[index] = instr.labels[0]
        return canonical

    def listing(self) -> str:
        """
        Mnemonic listing in the usual LMC assembler form.

        Output form: one instruction per line, preceded by its label column,
        then the data definitions as ``name DAT value``.
        """
        canonical = self._canonical_labels()
        width = max((len(l) for l in canonical.values()), default=-1) + 1

        lines = []
        for index, instr in enumerate(self.instructions):
            if instr.target is not None:
                text = f"{instr.opcode.value} {canonical[self.labels[instr.target]]}"
            else:
                text = str(instr)
            label = canonical.get(index, "")
            lines.append(f"{label.ljust(width)}{text}" if width else text)

        if self.data:
            lines.append("")
            for box in self.data:
                lines.append(f"{box.name} DAT {box.value}")

        return "\n".join(lines) + "\n"

    def image_text(self) -> str:
        """The full memory image, one three-digit word per line."""
        return "".join(f"{word:03d}\n" for word in self.image)

    def dump(self) -> str:
        """One line per used address: address, machine word, mnemonic."""
        lines = []
        for index, instr in enumerate(self.instructions):
            lines.append(f"{index:02d} {self.image[index]:03d} {instr}")
        for box in self.data:
            address = self.addresses[box]
            lines.append(f"{address:02d} {self.image[address]:03d} DAT {box.name}")
        return "\n".join(lines) + "\n"


class LMCAssembler:
    """Assembles a symbolic instruction list into a 100-word memory image."""

    def __init__(self, capacity: int = MEMORY_SIZE):
        self.capacity = capacity

    def layout(self, program: InstructionList) -> Dict[Mailbox, int]:
        """Assign physical addresses to data mailboxes."""
        if program.size > self.capacity:
            raise OutOfMailboxes(
                f"program needs {program.size} words ({len(program.instructions)} code, "
                f"{len(program.data)} data) but memory holds {self.capacity}"
            )

        base = len(program.instructions)
        ordered = sorted(program.data, key=lambda b: b.address)
        return {box: base + offset for offset, box in enumerate(ordered)}

    def resolve_labels(self, program: InstructionList) -> Dict[str, int]:
        """Build the backpatch table and check every branch target is bound."""
        table = program.label_table()
        for instr in program.instructions:
            if instr.target is not None and instr.target not in table:
                raise UnresolvedLabel(instr.target)
        return table

    def encode_instruction(self, instr: Instruction, addresses: Dict[Mailbox, int],
                           labels: Dict[str, int]) -> int:
        kind = instr.info.operand
        if kind is OperandKind.MAILBOX:
            if instr.mailbox not in addresses:
                raise UndefinedSymbol(instr.mailbox.name)
            return encode(instr.opcode, addresses[instr.mailbox])
        if kind is OperandKind.LABEL:
            return encode(instr.opcode, labels[instr.target])
        return encode(instr.opcode)

    def assemble(self, program: InstructionList) -> AssembledProgram:
        addresses = self.layout(program)
        labels = self.resolve_labels(program)

        image = [0] * self.capacity
        for index, instr in enumerate(program.instructions):
            image[index] = self.encode_instruction(instr, addresses, labels)
        for box, address in addresses.items():
            image[address] = box.value

        return AssembledProgram(
            instructions=list(program.instructions),
            data=sorted(program.data, key=lambda b: b.address),
            addresses=addresses,
            labels=labels,
            image=image,
        )
