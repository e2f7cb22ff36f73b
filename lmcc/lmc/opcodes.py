"""
LMC opcode definitions and encoding.

Defines the Little Man Computer instruction set, the effect each opcode
has on the accumulator and memory, and the decimal machine-word encoding
(opcode * 100 + operand).
"""

from enum import Enum, auto
from dataclasses import dataclass
from typing import Optional, Tuple


MEMORY_SIZE = 100

# Values a three-digit mailbox can hold
WORD_MIN = -999
WORD_MAX = 999


class Opcode(Enum):
    """LMC mnemonics."""
    HLT = 'HLT'
    ADD = 'ADD'
    SUB = 'SUB'
    STA = 'STA'
    LDA = 'LDA'
    BRA = 'BRA'
    BRZ = 'BRZ'
    BRP = 'BRP'
    INP = 'INP'
    OUT = 'OUT'
    DAT = 'DAT'


class OperandKind(Enum):
    """What an instruction's operand refers to."""
    NONE = auto()     # nullary: HLT, INP, OUT
    MAILBOX = auto()  # data address: ADD, SUB, STA, LDA
    LABEL = auto()    # branch target: BRA, BRZ, BRP
    LITERAL = auto()  # DAT initial value


@dataclass(frozen=True)
class OpcodeInfo:
    """Static properties of one opcode."""
    opcode: Opcode
    base: Optional[int]        # machine word without operand; None for DAT
    operand: OperandKind
    writes_acc: bool = False   # accumulator value changes
    reads_acc: bool = False    # accumulator value is observed
    reads_memory: bool = False
    writes_memory: bool = False
    is_branch: bool = False
    is_conditional: bool = False
    ends_flow: bool = False    # control never falls through

    def __repr__(self):
        return f"OpcodeInfo({self.opcode.name}, {self.base}, {self.operand.name})"


class OpcodeTable:
    """LMC opcode table."""

    OPCODES = {
        Opcode.HLT: OpcodeInfo(Opcode.HLT, 0, OperandKind.NONE, ends_flow=True),
        Opcode.ADD: OpcodeInfo(Opcode.ADD, 100, OperandKind.MAILBOX,
                               writes_acc=True, reads_acc=True, reads_memory=True),
        Opcode.SUB: OpcodeInfo(Opcode.SUB, 200, OperandKind.MAILBOX,
                               writes_acc=True, reads_acc=True, reads_memory=True),
        Opcode.STA: OpcodeInfo(Opcode.STA, 300, OperandKind.MAILBOX,
                               reads_acc=True, writes_memory=True),
        Opcode.LDA: OpcodeInfo(Opcode.LDA, 500, OperandKind.MAILBOX,
                               writes_acc=True, reads_memory=True),
        Opcode.BRA: OpcodeInfo(Opcode.BRA, 600, OperandKind.LABEL,
                               is_branch=True, ends_flow=True),
        Opcode.BRZ: OpcodeInfo(Opcode.BRZ, 700, OperandKind.LABEL,
                               reads_acc=True, is_branch=True, is_conditional=True),
        Opcode.BRP: OpcodeInfo(Opcode.BRP, 800, OperandKind.LABEL,
                               reads_acc=True, is_branch=True, is_conditional=True),
        Opcode.INP: OpcodeInfo(Opcode.INP, 901, OperandKind.NONE, writes_acc=True),
        Opcode.OUT: OpcodeInfo(Opcode.OUT, 902, OperandKind.NONE, reads_acc=True),
        Opcode.DAT: OpcodeInfo(Opcode.DAT, None, OperandKind.LITERAL),
    }

    # Words with fixed meaning regardless of operand digits
    FIXED_WORDS = {901: Opcode.INP, 902: Opcode.OUT}

    @classmethod
    def get(cls, opcode: Opcode) -> OpcodeInfo:
        return cls.OPCODES[opcode]

    @classmethod
    def get_opcode(cls, name: str) -> Optional[Opcode]:
        """Get opcode by mnemonic."""
        try:
            return Opcode(name.upper())
        except ValueError:
            return None

    @classmethod
    def by_base(cls, base: int) -> Optional[Opcode]:
        for info in cls.OPCODES.values():
            if info.base == base and info.operand is not OperandKind.NONE:
                return info.opcode
        return None


def encode(opcode: Opcode, operand: Optional[int] = None) -> int:
    """
    Encode an instruction as a machine word.

    Memory and branch instructions need an operand in [0, 99]; nullary
    instructions take none. DAT encodes its literal value unchanged.
    """
    info = OpcodeTable.get(opcode)

    if info.operand is OperandKind.LITERAL:
        if operand is None:
            return 0
        return operand

    if info.operand is OperandKind.NONE:
        if operand not in (None, 0):
            raise ValueError(f"{opcode.value} takes no operand, got {operand}")
        return info.base

    if operand is None or not 0 <= operand < MEMORY_SIZE:
        raise ValueError(f"{opcode.value} operand must be in [0, {MEMORY_SIZE - 1}], got {operand}")
    return info.base + operand


def decode(word: int) -> Tuple[Opcode, Optional[int]]:
    """
    Decode a machine word into (opcode, operand).

    Any word 000-099 is HLT (the operand digits are ignored, so only 000
    round-trips exactly). Raises ValueError for words with no instruction
    meaning (4xx, 9xx other than 901/902, out of range).
    """
    if word in OpcodeTable.FIXED_WORDS:
        return OpcodeTable.FIXED_WORDS[word], None

    if not 0 <= word < 1000:
        raise ValueError(f"not an instruction word: {word}")

    base, operand = divmod(word, 100)
    if base == 0:
        return Opcode.HLT, None

    opcode = OpcodeTable.by_base(base * 100)
    if opcode is None:
        raise ValueError(f"not an instruction word: {word:03d}")
    return opcode, operand
