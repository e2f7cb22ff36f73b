"""
Test fixtures and helpers for the LMC compiler.

The key abstractions are:

- LMCMachine: Executes a 100-word memory image and captures output
- IR builders: Short constructors for IR programs
- AssertProgram: Fluent API for testing compilation and execution results

AssertProgram compiles a program once without optimizations and once under
every combination of optimization flags, and checks that all of them
behave the same way.
"""

import itertools
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from lmcc.compiler import CompiledProgram, LMCCompiler
from lmcc.errors import LMCError
from lmcc.ir import (
    Assign, BinOp, Call, Compare, Const, Declare, If, Program, String, Var, While,
)
from lmcc.lmc import Opcode, decode


class MachineError(Exception):
    """The program did something the machine cannot do."""


@dataclass
class ExecutionResult:
    """Result of running an LMC program."""
    outputs: List[int] = field(default_factory=list)
    steps: int = 0
    halted: bool = False
    memory: List[int] = field(default_factory=list)


class LMCMachine:
    """
    Minimal Little Man Computer.

    Values are plain signed integers (no three-digit wraparound). BRP
    branches when the accumulator is zero or positive.
    """

    def __init__(self, image: List[int], inputs: Iterable[int] = (), max_steps: int = 10000):
        self.memory = list(image)
        self.inputs = list(inputs)
        self.max_steps = max_steps

    def run(self) -> ExecutionResult:
        result = ExecutionResult()
        acc = 0
        pc = 0
        while result.steps < self.max_steps:
            if not 0 <= pc < len(self.memory):
                raise MachineError(f"program counter out of range: {pc}")
            opcode, operand = decode(self.memory[pc])
            result.steps += 1
            pc += 1

            if opcode is Opcode.HLT:
                result.halted = True
                break
            elif opcode is Opcode.ADD:
                acc += self.memory[operand]
            elif opcode is Opcode.SUB:
                acc -= self.memory[operand]
            elif opcode is Opcode.STA:
                self.memory[operand] = acc
            elif opcode is Opcode.LDA:
                acc = self.memory[operand]
            elif opcode is Opcode.BRA:
                pc = operand
            elif opcode is Opcode.BRZ:
                if acc == 0:
                    pc = operand
            elif opcode is Opcode.BRP:
                if acc >= 0:
                    pc = operand
            elif opcode is Opcode.INP:
                if not self.inputs:
                    raise MachineError("input queue is empty")
                acc = self.inputs.pop(0)
            elif opcode is Opcode.OUT:
                result.outputs.append(acc)

        result.memory = self.memory
        return result


def run_image(image: List[int], inputs: Iterable[int] = ()) -> List[int]:
    result = LMCMachine(image, inputs).run()
    assert result.halted, f"program did not halt within {result.steps} steps"
    return result.outputs


# IR builders

def var(name: str) -> Var:
    return Var(name)


def const(value: int) -> Const:
    return Const(value)


def add(left, right) -> BinOp:
    return BinOp('+', _expr(left), _expr(right))


def sub(left, right) -> BinOp:
    return BinOp('-', _expr(left), _expr(right))


def mul(left, right) -> BinOp:
    return BinOp('*', _expr(left), _expr(right))


def div(left, right) -> BinOp:
    return BinOp('/', _expr(left), _expr(right))


def mod(left, right) -> BinOp:
    return BinOp('%', _expr(left), _expr(right))


def cmp(op: str, left, right) -> Compare:
    return Compare(op, _expr(left), _expr(right))


def assign(target: str, value) -> Assign:
    return Assign(target, _expr(value))


def declare(name: str, value: int = 0) -> Declare:
    return Declare(name, value)


def output(value) -> Call:
    return Call('output', [_expr(value)])


def read(target: Optional[str] = None) -> Call:
    return Call('input', [Var(target)] if target else [])


def call(name: str, *args) -> Call:
    return Call(name, [_expr(a) for a in args])


def option(key: str, value=1) -> Call:
    return Call('__lmc_option__', [String(key), _expr(value)])


def if_(condition, then_body, else_body=None) -> If:
    return If(_expr(condition), list(then_body), list(else_body or []))


def while_(condition, body) -> While:
    return While(_expr(condition), list(body))


def _expr(value):
    """Ints become constants and strings become variables."""
    if isinstance(value, int):
        return Const(value)
    if isinstance(value, str):
        return Var(value)
    return value


def program(*statements) -> Program:
    return Program(list(statements), name="<test>")


OPTION_KEYS = ('thrashing', 'clean', 'bprop')


def option_subsets():
    """Every combination of optimization keys, the empty one included."""
    for size in range(len(OPTION_KEYS) + 1):
        yield from itertools.combinations(OPTION_KEYS, size)


def compile_with(prog: Program, *keys: str, max_rounds: Optional[int] = None) -> CompiledProgram:
    compiler = LMCCompiler(extra_options=keys, max_optimization_rounds=max_rounds)
    return compiler.compile_program(prog)


class ProgramAssertion:
    """
    Fluent assertion helper for testing whole programs.

    Usage:
        AssertProgram(assign('c', add('a', 'b')), output('c')) \\
            .with_declarations(a=3, b=4).outputs([7])
        AssertProgram(output('nope')).does_not_compile('LMC0102')
    """

    def __init__(self, *statements):
        self.statements = list(statements)
        self.declarations: List[Declare] = []
        self.inputs: List[int] = []
        self.option_sets: Optional[List[tuple]] = None
        self.expected_warnings: Optional[List[str]] = None
        self.expect_no_warnings = False

    def with_declarations(self, **values: int) -> 'ProgramAssertion':
        self.declarations.extend(Declare(name, value) for name, value in values.items())
        return self

    def with_inputs(self, *values: int) -> 'ProgramAssertion':
        """Queue input for the test execution."""
        self.inputs.extend(values)
        return self

    def with_options(self, *keys: str) -> 'ProgramAssertion':
        """Only check the given option set (plus the unoptimized baseline)."""
        self.option_sets = [tuple(keys)]
        return self

    def with_warnings(self, *codes: str) -> 'ProgramAssertion':
        self.expected_warnings = list(codes)
        return self

    def without_warnings(self) -> 'ProgramAssertion':
        self.expect_no_warnings = True
        return self

    def _program(self) -> Program:
        return program(*(self.declarations + self.statements))

    def compiles(self) -> CompiledProgram:
        """Assert that the program compiles successfully."""
        compiler = LMCCompiler()
        try:
            compiled = compiler.compile_program(self._program())
        except LMCError as e:
            pytest.fail(f"Expected compilation to succeed, but got: {e}")
        self._check_warnings(compiler.get_warnings())
        return compiled

    def does_not_compile(self, *error_codes: str) -> None:
        """Assert that the program fails to compile."""
        with pytest.raises(LMCError) as excinfo:
            LMCCompiler().compile_program(self._program())
        for code in error_codes:
            assert excinfo.value.code == code, f"Expected error code {code}, got {excinfo.value}"

    def outputs(self, expected: List[int]) -> None:
        """Assert the output, unoptimized and under each option set."""
        baseline = run_image(self.compiles().image, self.inputs)
        assert baseline == expected, f"Expected output {expected}, got {baseline}"

        subsets = self.option_sets if self.option_sets is not None else list(option_subsets())
        for keys in subsets:
            compiler = LMCCompiler(extra_options=keys)
            compiled = compiler.compile_program(self._program())
            actual = run_image(compiled.image, self.inputs)
            assert actual == expected, \
                f"With options {keys or '(none)'}: expected output {expected}, got {actual}"
            assert compiled.optimized.size <= compiled.unoptimized.size, \
                f"With options {keys}: optimized program grew"
            self._check_warnings(compiler.get_warnings())

    def _check_warnings(self, warnings: List[str]) -> None:
        """Check warning expectations."""
        if self.expect_no_warnings:
            assert not warnings, f"Expected no warnings, got: {warnings}"
        elif self.expected_warnings is not None:
            for code in self.expected_warnings:
                assert any(code in w for w in warnings), \
                    f"Expected warning {code}, got {warnings}"


def AssertProgram(*statements) -> ProgramAssertion:
    """Create a program assertion."""
    return ProgramAssertion(*statements)


# Pytest fixtures
@pytest.fixture
def compiler():
    """Fixture for a quiet compiler."""
    return LMCCompiler()


@pytest.fixture
def sample_program():
    """c = a + b; output(c) with a=3, b=4."""
    return program(
        declare('a', 3),
        declare('b', 4),
        assign('c', add('a', 'b')),
        output('c'),
    )
