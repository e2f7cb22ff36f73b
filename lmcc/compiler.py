"""
Main LMC compiler.

Coordinates option collection, code generation, optimization and assembly
for one compilation unit.
"""

import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from .abi import OPTION_DIRECTIVE
from .codegen import CodeGenerator
from .errors import BuiltinInvocationError, InvalidOption, LMCError
from .ir.loader import loads
from .ir.nodes import Call, Option, Program, String
from .lmc import AssembledProgram, InstructionList, LMCAssembler, MailboxAllocator
from .optimization import OptimizationPipeline
from .options import CompileOptions, OptionResolver


OUTPUT_FORMATS = {
    'listing': '.lmc',
    'image': '.img',
}


@dataclass
class CompiledProgram:
    """Every stage of one compilation."""
    name: str
    options: CompileOptions
    unoptimized: InstructionList
    optimized: InstructionList
    assembled: AssembledProgram

    @property
    def image(self) -> List[int]:
        return self.assembled.image

    def listing(self) -> str:
        return self.assembled.listing()

    def render(self, fmt: str = 'listing') -> str:
        if fmt == 'image':
            return self.assembled.image_text()
        return self.assembled.listing()


class LMCCompiler:
    """Main LMC compiler class."""

    def __init__(self, verbose: bool = False, max_optimization_rounds: Optional[int] = None,
                 extra_options: Optional[Iterable[str]] = None):
        self.verbose = verbose
        self.max_optimization_rounds = max_optimization_rounds
        self.extra_options = list(extra_options or [])  # option keys enabled before the program's own
        self.warnings: List[str] = []  # Compilation warnings

    def log(self, message: str):
        """Print log message if verbose mode is enabled."""
        if self.verbose:
            print(f"[lmcc] {message}", file=sys.stderr)

    def warn(self, code: str, message: str):
        """Add a compilation warning with a code."""
        warning = f"{code}: {message}"
        self.warnings.append(warning)
        if self.verbose:
            print(f"[lmcc] Warning: {warning}", file=sys.stderr)

    def get_warnings(self) -> List[str]:
        """Get all warnings generated during compilation."""
        return self.warnings.copy()

    def collect_options(self, program: Program) -> CompileOptions:
        """
        Pre-scan a program for option directives and freeze the result.

        Directives apply to the whole unit wherever they appear, including
        inside conditional and loop bodies.
        """
        resolver = OptionResolver()
        for key in self.extra_options:
            resolver.add(key, 1)

        for node in program.walk():
            if isinstance(node, Option):
                resolver.add(node.key, node.value)
            elif isinstance(node, Call) and node.name == OPTION_DIRECTIVE:
                if len(node.args) != 2:
                    raise BuiltinInvocationError(
                        f"{OPTION_DIRECTIVE} takes 2 arguments, got {len(node.args)}"
                    )
                key, value = node.args
                if not isinstance(key, String):
                    raise InvalidOption(f"option key must be a string literal, got {key!r}")
                resolver.add(key.value, value)

        options = resolver.freeze()
        self.log(f"Options: {options}")
        return options

    def compile_program(self, program: Program) -> CompiledProgram:
        """Compile an IR program. Raises LMCError on fatal errors."""
        self.warnings = []
        options = self.collect_options(program)

        self.log(f"Generating code for {program.name}...")
        allocator = MailboxAllocator()
        unoptimized = CodeGenerator(allocator).generate(program)
        self.log(f"  {len(unoptimized)} instructions, {len(unoptimized.data)} mailboxes")

        pipeline = OptimizationPipeline(options, verbose=self.verbose,
                                        max_rounds=self.max_optimization_rounds)
        optimized = pipeline.run(unoptimized)
        for warning in pipeline.warnings:
            self.warn(warning.code, warning.message)

        self.log("Assembling...")
        assembled = LMCAssembler().assemble(optimized)
        self.log(f"Program size: {assembled.size} words")

        return CompiledProgram(program.name, options, unoptimized, optimized, assembled)

    def compile_string(self, text: str, filename: str = "<input>") -> CompiledProgram:
        """Compile a JSON IR document."""
        return self.compile_program(loads(text, filename))

    def compile_file(self, input_path: str, output_path: Optional[str] = None,
                     fmt: str = 'listing') -> bool:
        """
        Compile a JSON IR file to an LMC listing or memory image.

        Args:
            input_path: Path to the .json IR file
            output_path: Path to the output file (derived from input_path if None)
            fmt: 'listing' or 'image'

        Returns:
            True if compilation succeeded, False otherwise
        """
        if output_path is None:
            output_path = str(Path(input_path).with_suffix(OUTPUT_FORMATS[fmt]))

        try:
            self.log(f"Reading {input_path}...")
            with open(input_path, 'r', encoding='utf-8') as f:
                text = f.read()

            compiled = self.compile_string(text, str(input_path))

            self.log(f"Writing {output_path}...")
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(compiled.render(fmt))

            self.log(f"Compilation successful: {compiled.assembled.size} words")
            return True

        except FileNotFoundError:
            print(f"Error: File not found: {input_path}", file=sys.stderr)
            return False
        except (LMCError, OSError, json.JSONDecodeError) as e:
            print(f"Compilation error: {e}", file=sys.stderr)
            if self.verbose:
                import traceback
                traceback.print_exc()
            return False


def main(argv: Optional[List[str]] = None):
    """Command-line interface for the compiler."""
    import argparse

    parser = argparse.ArgumentParser(
        description='LMC Compiler - Compile IR programs to Little Man Computer code'
    )
    parser.add_argument('input', help='Input .json IR file')
    parser.add_argument('-o', '--output', help='Output file (.lmc listing or .img image)')
    parser.add_argument('-f', '--format', default='listing', choices=sorted(OUTPUT_FORMATS),
                        help='Output format (default: listing)')
    parser.add_argument('-O', '--option', action='append', default=[], metavar='KEY',
                        help='Enable an optimization: thrashing, clean, bprop or all '
                             '(can be used multiple times)')
    parser.add_argument('--max-rounds', type=int, default=None,
                        help='Cap on optimization rounds')
    parser.add_argument('--verbose', action='store_true',
                        help='Verbose output')

    args = parser.parse_args(argv)

    compiler = LMCCompiler(verbose=args.verbose, max_optimization_rounds=args.max_rounds,
                           extra_options=args.option)
    success = compiler.compile_file(args.input, args.output, fmt=args.format)

    for warning in compiler.get_warnings():
        print(f"Warning: {warning}", file=sys.stderr)

    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
