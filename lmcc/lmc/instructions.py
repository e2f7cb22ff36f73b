"""
Symbolic LMC instructions.

An instruction is an opcode plus an optional operand: a Mailbox for memory
instructions or a label name for branches. Labels are not instructions;
each instruction carries the labels bound to its position, so the arena
index of the instruction is the label's target until the assembler turns
it into a numeric address.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .memory import Mailbox
from .opcodes import Opcode, OpcodeInfo, OpcodeTable, OperandKind


@dataclass(frozen=True)
class Instruction:
    """One symbolic instruction."""
    opcode: Opcode
    mailbox: Optional[Mailbox] = None
    target: Optional[str] = None        # branch label
    labels: Tuple[str, ...] = ()        # labels bound to this instruction

    def __post_init__(self):
        kind = self.info.operand
        if kind is OperandKind.MAILBOX and self.mailbox is None:
            raise ValueError(f"{self.opcode.value} needs a mailbox operand")
        if kind is OperandKind.LABEL and self.target is None:
            raise ValueError(f"{self.opcode.value} needs a label operand")

    @property
    def info(self) -> OpcodeInfo:
        return OpcodeTable.get(self.opcode)

    # Constructors

    @classmethod
    def load(cls, box: Mailbox) -> 'Instruction':
        return cls(Opcode.LDA, mailbox=box)

    @classmethod
    def store(cls, box: Mailbox) -> 'Instruction':
        return cls(Opcode.STA, mailbox=box)

    @classmethod
    def add(cls, box: Mailbox) -> 'Instruction':
        return cls(Opcode.ADD, mailbox=box)

    @classmethod
    def sub(cls, box: Mailbox) -> 'Instruction':
        return cls(Opcode.SUB, mailbox=box)

    @classmethod
    def branch(cls, opcode: Opcode, label: str) -> 'Instruction':
        return cls(opcode, target=label)

    @classmethod
    def nullary(cls, opcode: Opcode) -> 'Instruction':
        return cls(opcode)

    # Label handling

    def with_labels(self, labels: Iterable[str]) -> 'Instruction':
        """Copy of this instruction with extra labels bound to it."""
        merged = tuple(dict.fromkeys(self.labels + tuple(labels)))
        return replace(self, labels=merged)

    # Data flow

    def reads(self) -> Optional[Mailbox]:
        """Mailbox whose content this instruction reads, if any."""
        return self.mailbox if self.info.reads_memory else None

    def writes(self) -> Optional[Mailbox]:
        """Mailbox this instruction overwrites, if any."""
        return self.mailbox if self.info.writes_memory else None

    def same_operation(self, other: 'Instruction') -> bool:
        """Equal ignoring bound labels."""
        return (self.opcode, self.mailbox, self.target) == (other.opcode, other.mailbox, other.target)

    def operand_text(self) -> str:
        if self.mailbox is not None:
            return self.mailbox.name
        if self.target is not None:
            return self.target
        return ""

    def __str__(self):
        operand = self.operand_text()
        return f"{self.opcode.value} {operand}" if operand else self.opcode.value

    def __repr__(self):
        prefix = f"{','.join(self.labels)}: " if self.labels else ""
        return f"Instr[{prefix}{self}]"


@dataclass
class InstructionList:
    """
    A program before layout: code plus the data mailboxes it defines.

    The code list is the label arena; ``label_table()`` is the backpatch
    table mapping each label to the index of the instruction it is bound to.
    """
    instructions: List[Instruction] = field(default_factory=list)
    data: List[Mailbox] = field(default_factory=list)

    def add_instruction(self, instr: Instruction):
        self.instructions.append(instr)

    def add_data(self, box: Mailbox):
        if box not in self.data:
            self.data.append(box)

    def bind_label(self, label: str, index: int):
        """Bind a label to the instruction at ``index``."""
        self.instructions[index] = self.instructions[index].with_labels([label])

    def label_table(self) -> Dict[str, int]:
        table: Dict[str, int] = {}
        for index, instr in enumerate(self.instructions):
            for label in instr.labels:
                table[label] = index
        return table

    def branch_targets(self) -> Set[str]:
        return {i.target for i in self.instructions if i.target is not None}

    def referenced_mailboxes(self) -> Set[Mailbox]:
        return {i.mailbox for i in self.instructions if i.mailbox is not None}

    def copy(self) -> 'InstructionList':
        return InstructionList(list(self.instructions), list(self.data))

    @property
    def size(self) -> int:
        """Words this program occupies once laid out."""
        return len(self.instructions) + len(self.data)

    def __len__(self):
        return len(self.instructions)

    def __iter__(self):
        return iter(self.instructions)

    def __repr__(self):
        return f"InstructionList[{len(self.instructions)},{len(self.data)}]"
