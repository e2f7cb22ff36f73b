"""Little Man Computer machine model: opcodes, mailboxes, instructions, assembly."""

from .opcodes import Opcode, OpcodeTable, encode, decode, MEMORY_SIZE, WORD_MIN, WORD_MAX
from .memory import Mailbox, MailboxAllocator
from .instructions import Instruction, InstructionList
from .assembler import LMCAssembler, AssembledProgram

__all__ = [
    'Opcode', 'OpcodeTable', 'encode', 'decode', 'MEMORY_SIZE', 'WORD_MIN', 'WORD_MAX',
    'Mailbox', 'MailboxAllocator',
    'Instruction', 'InstructionList',
    'LMCAssembler', 'AssembledProgram',
]
