"""
Tests for the compiler driver and command line.
"""

import json

import pytest

from lmcc.compiler import LMCCompiler, main
from lmcc.errors import OutOfMailboxes

from .conftest import assign, declare, output, program, run_image


SAMPLE = [
    {"type": "declare", "name": "a", "value": 3},
    {"type": "declare", "name": "b", "value": 4},
    {"type": "assign", "target": "c",
     "value": {"type": "binop", "op": "+",
               "left": {"type": "var", "name": "a"},
               "right": {"type": "var", "name": "b"}}},
    {"type": "call", "name": "output", "args": [{"type": "var", "name": "c"}]},
]


@pytest.fixture
def sample_file(tmp_path):
    path = tmp_path / "sample.json"
    path.write_text(json.dumps(SAMPLE))
    return path


class TestCompileProgram:

    def test_stages(self, compiler, sample_program):
        compiled = compiler.compile_program(sample_program)
        assert compiled.name == "<test>"
        assert [str(i) for i in compiled.unoptimized] == ["LDA a", "ADD b", "STA c", "LDA c", "OUT", "HLT"]
        assert compiled.optimized == compiled.unoptimized
        assert len(compiled.image) == 100
        assert run_image(compiled.image) == [7]

    def test_extra_options(self, sample_program):
        compiled = LMCCompiler(extra_options=['all']).compile_program(sample_program)
        assert compiled.optimized.size < compiled.unoptimized.size

    def test_budget_warning_collected(self, sample_program):
        compiler = LMCCompiler(max_optimization_rounds=1, extra_options=['all'])
        compiler.compile_program(sample_program)
        warnings = compiler.get_warnings()
        assert len(warnings) == 1
        assert warnings[0].startswith("LMC0901: ")

    def test_warnings_reset_per_compilation(self, sample_program):
        compiler = LMCCompiler(max_optimization_rounds=1, extra_options=['all'])
        compiler.compile_program(sample_program)
        compiler.compile_program(sample_program)
        assert len(compiler.get_warnings()) == 1

    def test_get_warnings_returns_copy(self, compiler):
        compiler.warn("LMC0901", "test")
        compiler.get_warnings().clear()
        assert compiler.get_warnings() == ["LMC0901: test"]

    def test_program_too_large(self, compiler):
        statements = [declare(f"v{i}", i) for i in range(60)]
        statements += [output(f"v{i}") for i in range(60)]
        with pytest.raises(OutOfMailboxes):
            compiler.compile_program(program(*statements))

    def test_cleanup_makes_large_program_fit(self):
        statements = [declare(f"v{i}", i) for i in range(60)]
        statements += [assign('x', 1), output('x')]
        compiled = LMCCompiler(extra_options=['clean']).compile_program(program(*statements))
        assert compiled.assembled.size < 10

    def test_verbose_logging(self, sample_program, capsys):
        LMCCompiler(verbose=True, extra_options=['all']).compile_program(sample_program)
        err = capsys.readouterr().err
        assert "[lmcc] Options: thrashing,clean,bprop" in err
        assert "[opt]" in err


class TestCompileFile:

    def test_listing_written(self, sample_file):
        assert LMCCompiler().compile_file(str(sample_file))
        listing = sample_file.with_suffix('.lmc').read_text()
        assert listing.splitlines()[:6] == ["LDA a", "ADD b", "STA c", "LDA c", "OUT", "HLT"]
        assert "a DAT 3" in listing

    def test_image_written(self, sample_file, tmp_path):
        out = tmp_path / "out.img"
        assert LMCCompiler().compile_file(str(sample_file), str(out), fmt='image')
        words = [int(w) for w in out.read_text().split()]
        assert len(words) == 100
        assert run_image(words) == [7]

    def test_missing_file(self, tmp_path, capsys):
        assert not LMCCompiler().compile_file(str(tmp_path / "missing.json"))
        assert "File not found" in capsys.readouterr().err

    def test_compilation_error_reported(self, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps([{"type": "call", "name": "output",
                                     "args": [{"type": "var", "name": "nope"}]}]))
        assert not LMCCompiler().compile_file(str(path))
        err = capsys.readouterr().err
        assert "Compilation error: LMC0102" in err
        assert not path.with_suffix('.lmc').exists()

    def test_invalid_json_reported(self, tmp_path, capsys):
        path = tmp_path / "broken.json"
        path.write_text("[{")
        assert not LMCCompiler().compile_file(str(path))
        assert "LMC0107" in capsys.readouterr().err


class TestMain:
    """Tests for the command line entry point."""

    def test_success_exit_code(self, sample_file):
        with pytest.raises(SystemExit) as excinfo:
            main([str(sample_file), '-O', 'thrashing', '-O', 'clean'])
        assert excinfo.value.code == 0
        listing = sample_file.with_suffix('.lmc').read_text()
        assert listing.splitlines()[:4] == ["LDA a", "ADD b", "OUT", "HLT"]

    def test_image_format(self, sample_file, tmp_path):
        out = tmp_path / "sample.img"
        with pytest.raises(SystemExit) as excinfo:
            main([str(sample_file), '--format', 'image', '-o', str(out)])
        assert excinfo.value.code == 0
        assert len(out.read_text().splitlines()) == 100

    def test_unknown_option_fails(self, sample_file, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main([str(sample_file), '-O', 'turbo'])
        assert excinfo.value.code == 1
        assert "LMC0103" in capsys.readouterr().err

    def test_warnings_printed(self, sample_file, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main([str(sample_file), '-O', 'all', '--max-rounds', '1'])
        assert excinfo.value.code == 0
        assert "Warning: LMC0901" in capsys.readouterr().err
