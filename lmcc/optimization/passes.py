"""
Optimization passes for LMC code.

Passes run between code generation and assembly. Each pass maps an
instruction list to a new instruction list and preserves the program's
input/output behavior; none of them mutates its argument. The pipeline runs
the enabled passes in a fixed order, round after round, until a round
changes nothing or the round cap is reached.
"""

import sys
from typing import Dict, List, Optional, Set

from ..errors import OptimizationBudgetExceeded, UnresolvedLabel
from ..lmc.instructions import Instruction, InstructionList
from ..lmc.memory import Mailbox
from ..lmc.opcodes import Opcode
from ..options import CompileOptions, OptionFlags


def remove_instructions(instructions: List[Instruction], drop: Set[int]) -> List[Instruction]:
    """
    Remove the instructions at the given indices.

    Labels bound to a removed instruction move to the next kept one, so
    branches into a removed instruction continue with whatever followed it.
    Labels left over after the last kept instruction are discarded.
    """
    kept: List[Instruction] = []
    carried: List[str] = []
    for index, instr in enumerate(instructions):
        if index in drop:
            carried.extend(instr.labels)
            continue
        if carried:
            instr = instr.with_labels(carried)
            carried = []
        kept.append(instr)
    return kept


def successors(instructions: List[Instruction], index: int, labels: Dict[str, int]) -> List[int]:
    """Indices control can reach right after the instruction at ``index``."""
    instr = instructions[index]
    result = []
    if instr.target is not None:
        if instr.target not in labels:
            raise UnresolvedLabel(instr.target)
        result.append(labels[instr.target])
    if not instr.info.ends_flow and index + 1 < len(instructions):
        result.append(index + 1)
    return result


class OptimizationPass:
    """Base class for optimization passes."""

    flag = OptionFlags.NONE

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.stats = {'removed': 0, 'runs': 0}

    def log(self, message: str):
        """Log message if verbose mode enabled."""
        if self.verbose:
            print(f"[opt] {message}", file=sys.stderr)

    @property
    def name(self) -> str:
        return self.flag.name.lower()

    def run(self, program: InstructionList) -> InstructionList:
        """
        Run the optimization pass.

        Args:
            program: instruction list with its data mailboxes

        Returns:
            A new instruction list; the argument is left untouched
        """
        raise NotImplementedError

    def _record(self, before: InstructionList, after: InstructionList):
        removed = before.size - after.size
        self.stats['runs'] += 1
        self.stats['removed'] += removed
        if removed:
            self.log(f"  {self.name}: removed {removed} words")


class ThrashingPass(OptimizationPass):
    """
    Remove accumulator/memory round trips.

    ``STA m; LDA m`` and ``LDA m; LDA m`` leave the accumulator already
    holding m, so the load is dropped; ``STA m; STA m`` stores the same
    value twice. Each instruction is compared against the last kept one,
    so a single run leaves no such pair behind. Labeled instructions are
    kept because control may arrive from elsewhere.
    """

    flag = OptionFlags.THRASHING

    @staticmethod
    def redundant(previous: Instruction, instr: Instruction) -> bool:
        if instr.labels or instr.mailbox is None or previous.mailbox != instr.mailbox:
            return False
        if instr.opcode is Opcode.LDA:
            return previous.opcode in (Opcode.STA, Opcode.LDA)
        if instr.opcode is Opcode.STA:
            return previous.opcode is Opcode.STA
        return False

    def run(self, program: InstructionList) -> InstructionList:
        drop: Set[int] = set()
        previous: Optional[Instruction] = None
        for index, instr in enumerate(program.instructions):
            if previous is not None and self.redundant(previous, instr):
                drop.add(index)
                continue
            previous = instr

        result = InstructionList(remove_instructions(program.instructions, drop), list(program.data))
        self._record(program, result)
        return result


class CleanPass(OptimizationPass):
    """
    Remove code and data that cannot affect the program's behavior.

    Steps, in order:
    1. Instructions unreachable from the entry point.
    2. Stores whose value is overwritten or never read again on every
       path (backward liveness over the control flow graph).
    3. Branches to the instruction that immediately follows them.
    4. Data mailboxes no remaining instruction refers to.

    None of the later steps can re-enable an earlier one, so a second run
    finds nothing to do.
    """

    flag = OptionFlags.CLEAN

    def run(self, program: InstructionList) -> InstructionList:
        instructions = list(program.instructions)
        instructions = self.remove_unreachable(instructions)
        instructions = self.remove_dead_stores(instructions)
        instructions = self.remove_branches_to_next(instructions)

        referenced = {i.mailbox for i in instructions if i.mailbox is not None}
        data = [box for box in program.data if box in referenced]
        dropped = len(program.data) - len(data)
        if dropped:
            self.log(f"  clean: dropped {dropped} unused mailboxes")

        result = InstructionList(instructions, data)
        self._record(program, result)
        return result

    def remove_unreachable(self, instructions: List[Instruction]) -> List[Instruction]:
        if not instructions:
            return instructions
        labels = InstructionList(instructions).label_table()
        reached = {0}
        worklist = [0]
        while worklist:
            index = worklist.pop()
            for succ in successors(instructions, index, labels):
                if succ not in reached:
                    reached.add(succ)
                    worklist.append(succ)
        drop = set(range(len(instructions))) - reached
        return remove_instructions(instructions, drop)

    def live_after(self, instructions: List[Instruction]) -> List[Set[Mailbox]]:
        """Mailboxes whose current value may still be read after each instruction."""
        labels = InstructionList(instructions).label_table()
        succs = [successors(instructions, i, labels) for i in range(len(instructions))]
        live_in: List[Set[Mailbox]] = [set() for _ in instructions]
        live_out: List[Set[Mailbox]] = [set() for _ in instructions]

        changed = True
        while changed:
            changed = False
            for index in reversed(range(len(instructions))):
                out: Set[Mailbox] = set()
                for succ in succs[index]:
                    out |= live_in[succ]
                instr = instructions[index]
                new_in = set(out)
                written = instr.writes()
                if written is not None:
                    new_in.discard(written)
                read = instr.reads()
                if read is not None:
                    new_in.add(read)
                if out != live_out[index] or new_in != live_in[index]:
                    live_out[index] = out
                    live_in[index] = new_in
                    changed = True
        return live_out

    def remove_dead_stores(self, instructions: List[Instruction]) -> List[Instruction]:
        live_out = self.live_after(instructions)
        drop = {
            index for index, instr in enumerate(instructions)
            if instr.opcode is Opcode.STA and instr.mailbox not in live_out[index]
        }
        return remove_instructions(instructions, drop)

    def remove_branches_to_next(self, instructions: List[Instruction]) -> List[Instruction]:
        while True:
            labels = InstructionList(instructions).label_table()
            drop = {
                index for index, instr in enumerate(instructions)
                if instr.target is not None and labels.get(instr.target) == index + 1
            }
            if not drop:
                return instructions
            instructions = remove_instructions(instructions, drop)


class BackwardPropagationPass(OptimizationPass):
    """
    Drop loads and stores of values the accumulator already holds.

    Within a block without branches or labels, the pass tracks the set of
    mailboxes known to equal the accumulator. ``LDA m`` with m in the set
    and ``STA m`` with m in the set change nothing and are removed. The set
    is cleared whenever the accumulator changes (ADD, SUB, INP) and at
    every block boundary.
    """

    flag = OptionFlags.BPROP

    def run(self, program: InstructionList) -> InstructionList:
        drop: Set[int] = set()
        known: Set[Mailbox] = set()

        for index, instr in enumerate(program.instructions):
            if instr.labels:
                known = set()
            opcode = instr.opcode

            if opcode is Opcode.LDA:
                if instr.mailbox in known:
                    drop.add(index)
                    continue
                known = {instr.mailbox}
            elif opcode is Opcode.STA:
                if instr.mailbox in known:
                    drop.add(index)
                    continue
                known.add(instr.mailbox)
            elif instr.info.writes_acc or instr.info.is_branch or instr.info.ends_flow:
                known = set()

        result = InstructionList(remove_instructions(program.instructions, drop), list(program.data))
        self._record(program, result)
        return result


PASS_ORDER = (ThrashingPass, CleanPass, BackwardPropagationPass)


class OptimizationPipeline:
    """
    Run the enabled optimization passes to a fixed point.

    Each round runs the enabled passes in their fixed order. The number of
    rounds is capped at ``len(instructions) * enabled passes`` unless
    ``max_rounds`` is given. Running out of rounds is not an error: an
    ``OptimizationBudgetExceeded`` warning is recorded and the current
    program, which is still correct, is returned.
    """

    def __init__(self, options: CompileOptions, verbose: bool = False,
                 max_rounds: Optional[int] = None):
        self.options = options
        self.verbose = verbose
        self.max_rounds = max_rounds
        self.passes: List[OptimizationPass] = []
        self.warnings: List[OptimizationBudgetExceeded] = []
        self.rounds = 0

        for pass_class in PASS_ORDER:
            if options.enabled(pass_class.flag):
                self.add_pass(pass_class)

    def add_pass(self, pass_class: type, **kwargs):
        """Add an optimization pass to the pipeline."""
        pass_instance = pass_class(verbose=self.verbose, **kwargs)
        self.passes.append(pass_instance)

    def round_cap(self, program: InstructionList) -> int:
        if self.max_rounds is not None:
            return max(1, self.max_rounds)
        return max(1, len(program)) * max(1, len(self.passes))

    def run(self, program: InstructionList) -> InstructionList:
        """Run all enabled passes until nothing changes."""
        current = program.copy()
        if not self.passes:
            return current

        cap = self.round_cap(program)
        if self.verbose:
            names = ", ".join(p.name for p in self.passes)
            print(f"[opt] Running passes [{names}], at most {cap} rounds", file=sys.stderr)

        for rounds in range(1, cap + 1):
            self.rounds = rounds
            changed = False
            for pass_instance in self.passes:
                result = pass_instance.run(current)
                if result != current:
                    changed = True
                current = result
            if not changed:
                break
        else:
            warning = OptimizationBudgetExceeded(cap, len(current))
            self.warnings.append(warning)
            if self.verbose:
                print(f"[opt] {warning.message}", file=sys.stderr)

        if self.verbose:
            print(f"[opt] {program.size} -> {current.size} words in {self.rounds} rounds",
                  file=sys.stderr)
        return current

    @property
    def stats(self) -> Dict[str, Dict]:
        return {p.__class__.__name__: dict(p.stats) for p in self.passes}
