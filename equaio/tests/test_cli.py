"""Tests for CLI module."""

import subprocess
import sys

import pytest

from equaio.cli import (
    EquaioREPL, EquaioCompleter, ScriptRunner, PROBLEM_NOT_FOUND,
    align_lines, format_address, parse_address, main,
)
from equaio.block import BlockContext


class TestAddresses:
    """Tests for dotted address syntax."""

    def test_parse(self):
        assert parse_address("0.1") == (0, 1)
        assert parse_address("2") == (2,)
        assert parse_address(".") == ()
        assert parse_address("root") == ()

    def test_parse_invalid(self):
        assert parse_address("a") is None
        assert parse_address("0..1") is None
        assert parse_address("-1") is None

    def test_format(self):
        assert format_address((0, 1)) == "0.1"
        assert format_address(()) == "."


class TestAlignLines:
    """Tests for relation alignment."""

    def test_align(self):
        lines = align_lines([["=", ["+", "x", 3], 5], ["=", "x", 2]], BlockContext())
        assert lines == ["x + 3 = 5", "    x = 2"]

    def test_non_relation(self):
        lines = align_lines([["+", "x", ["-", 3]]], BlockContext())
        assert lines == ["x - 3"]


class TestREPLCommands:
    """Tests for REPL command handling."""

    def setup_method(self):
        self.repl = EquaioREPL()

    def test_help_command(self):
        result = self.repl.handle_command(":help")
        assert ":open" in result
        assert ":apply" in result

    def test_problems_command(self):
        result = self.repl.handle_command(":problems")
        assert "Algebra (Step by Step)" in result
        assert "algebra0" in result
        assert "logic0" in result

    def test_open_unknown(self):
        assert self.repl.handle_command(":open nope") == PROBLEM_NOT_FOUND
        assert self.repl.worksheet is None

    def test_open(self):
        result = self.repl.handle_command(":open algebra0")
        assert "x + 3 = 5" in result
        assert self.repl.problem_id == "algebra0"
        assert len(self.repl.worksheet) == 1

    def test_open_usage(self):
        assert "Usage" in self.repl.handle_command(":open")

    def test_commands_need_a_problem(self):
        for command in [":actions", ":apply 0", ":reset 0", ":select 0", ":history", ":show"]:
            assert "No problem open" in self.repl.handle_command(command)

    def test_select_toggles(self):
        self.repl.handle_command(":open algebra0")
        assert self.repl.handle_command(":select 0.1") == "Selection: 0.1"
        assert (0, 1) in self.repl.selection
        self.repl.handle_command(":select 0.1")
        assert (0, 1) not in self.repl.selection

    def test_select_several(self):
        self.repl.handle_command(":open algebra2")
        assert self.repl.handle_command(":select 0 2") == "Selection: 0, 2"

    def test_select_invalid(self):
        self.repl.handle_command(":open algebra0")
        assert self.repl.handle_command(":select abc") == "Error: invalid address: abc"
        assert self.repl.handle_command(":select 9") == "Error: no term at 9"
        assert not self.repl.selection

    def test_clear(self):
        self.repl.handle_command(":open algebra0")
        self.repl.handle_command(":select 0.1")
        self.repl.handle_command(":clear")
        assert not self.repl.selection

    def test_actions(self):
        self.repl.handle_command(":open algebra0")
        assert self.repl.handle_command(":actions") == "Nothing selected"
        self.repl.handle_command(":select 0.1")
        result = self.repl.handle_command(":actions")
        assert "0: Subtract 3 from both sides" in result

    def test_apply(self):
        """Applying clears the selection and shows the history."""
        self.repl.handle_command(":open algebra0")
        self.repl.handle_command(":select 0.1")
        result = self.repl.handle_command(":apply 0")
        assert "Subtract 3 from both sides" in result
        assert not self.repl.selection
        assert len(self.repl.worksheet.get(0)) == 3

    def test_apply_out_of_range(self):
        self.repl.handle_command(":open algebra0")
        self.repl.handle_command(":select 0.1")
        result = self.repl.handle_command(":apply 5")
        assert result.startswith("Error: action index 5")
        assert len(self.repl.worksheet.get(0)) == 1
        assert (0, 1) in self.repl.selection

    def test_apply_usage(self):
        self.repl.handle_command(":open algebra0")
        assert self.repl.handle_command(":apply x") == "Usage: :apply N"

    def test_reset(self):
        self.repl.handle_command(":open algebra0")
        self.repl.handle_command(":select 0.1")
        self.repl.handle_command(":apply 0")
        self.repl.handle_command(":reset 0")
        assert len(self.repl.worksheet.get(0)) == 1

    def test_reset_out_of_range(self):
        self.repl.handle_command(":open algebra0")
        assert self.repl.handle_command(":reset 3").startswith("Error: history index 3")

    def test_history_grouped(self):
        self.repl.handle_command(":open algebra_simplify0")
        self.repl.handle_command(":select 0.1")
        self.repl.handle_command(":apply 0")
        grouped = self.repl.handle_command(":history")
        assert "(+3 auto)" in grouped
        assert "[1..4]" in grouped
        assert len(grouped.splitlines()) == 2
        assert len(self.repl.handle_command(":history all").splitlines()) == 5

    def test_seq(self):
        self.repl.handle_command(":open algebra3")
        self.repl.handle_command(":select 0")
        result = self.repl.handle_command(":seq 1")
        assert self.repl.current == 1
        assert not self.repl.selection
        assert "> [1]" in result

    def test_seq_invalid(self):
        self.repl.handle_command(":open algebra3")
        assert self.repl.handle_command(":seq 5") == "Error: no sequence 5"
        assert self.repl.current == 0

    def test_show(self):
        self.repl.handle_command(":open algebra3")
        result = self.repl.handle_command(":show")
        assert "x + y = 3" in result
        assert "x - y = 1" in result

    def test_symbols(self):
        self.repl.handle_command(":open algebra0")
        result = self.repl.handle_command(":symbols")
        assert "@0.1" in result
        assert "@0" in result

    def test_mathvar(self):
        repl = EquaioREPL(mathvar=True)
        result = repl.handle_command(":open algebra0")
        assert "\U0001D465" in result

    def test_mathvar_problem_list(self):
        repl = EquaioREPL(mathvar=True)
        result = repl.handle_command(":problems")
        assert "(2\U0001D465 \u2212 1 = 3)" in result
        assert "2x - 1" not in result

    def test_quit_command(self):
        assert self.repl.running
        self.repl.handle_command(":quit")
        assert not self.repl.running

    def test_unknown_command(self):
        assert "Unknown command" in self.repl.handle_command(":frobnicate")


class TestREPLProcessLine:
    """Tests for REPL line processing."""

    def setup_method(self):
        self.repl = EquaioREPL()

    def test_empty_line(self):
        assert self.repl.process_line("") is None
        assert self.repl.process_line("   ") is None

    def test_comment_line(self):
        assert self.repl.process_line("# comment") is None

    def test_expression_introduced(self):
        self.repl.process_line(":open algebra0")
        result = self.repl.process_line("x + 1 = 2")
        assert len(self.repl.worksheet) == 2
        assert self.repl.current == 1
        assert "x + 1 = 2" in result

    def test_deeply_nested_expression(self):
        self.repl.process_line(":open algebra0")
        assert self.repl.process_line("(" * 3000 + "x" + ")" * 3000).startswith("Error")
        assert len(self.repl.worksheet) == 1

    def test_expression_without_problem(self):
        assert "No problem open" in self.repl.process_line("x + 1 = 2")

    def test_expression_unparseable(self):
        self.repl.process_line(":open algebra0")
        assert self.repl.process_line("x +").startswith("Error")


class TestTabCompletion:
    """Tests for tab completion."""

    def setup_method(self):
        self.repl = EquaioREPL()
        self.completer = EquaioCompleter(self.repl)

    def test_commands(self):
        matches = self.completer._get_matches(":", ":")
        assert ":help" in matches
        assert ":open" in matches
        assert ":apply" in matches

    def test_partial_command(self):
        matches = self.completer._get_matches(":h", ":h")
        assert ":help" in matches
        assert ":history" in matches
        assert ":quit" not in matches

    def test_problem_ids(self):
        matches = self.completer._get_matches("alg", ":open alg")
        assert "algebra0" in matches
        assert "logic0" not in matches

    def test_addresses(self):
        self.repl.handle_command(":open algebra0")
        matches = self.completer._get_matches("0", ":select 0")
        assert "0.1" in matches
        assert "1" not in matches


class TestScriptRunner:
    """Tests for script execution."""

    def test_run_lines(self):
        runner = ScriptRunner()
        code = runner.run_lines([":open algebra0", ":select 0.1", ":apply 0"], quiet=True)
        assert code == 0
        assert len(runner.repl.worksheet.get(0)) == 3

    def test_error_stops(self, capsys):
        runner = ScriptRunner()
        code = runner.run_lines([":open nope", ":problems"], source="s.eqio")
        assert code == 1
        assert "s.eqio:1: ERROR: problem not found" in capsys.readouterr().err

    def test_run_script(self, tmp_path):
        script = tmp_path / "session.eqio"
        script.write_text("# solve\n:open algebra0\n:select 0.1\n:apply 0\n:quit\n:open nope\n")
        assert ScriptRunner().run_script(script, quiet=True) == 0

    def test_missing_script(self, tmp_path):
        assert ScriptRunner().run_script(tmp_path / "missing.eqio") == 1


class TestMain:
    """Tests for the entry point."""

    def test_list(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--list"])
        assert exc.value.code == 0
        assert "algebra0" in capsys.readouterr().out

    def test_unknown_problem(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["-p", "nope"])
        assert exc.value.code == 1
        assert PROBLEM_NOT_FOUND in capsys.readouterr().err

    def test_bad_catalog(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["-c", str(tmp_path), "--list"])
        assert exc.value.code == 1


class TestCLIIntegration:
    """Integration tests using subprocess."""

    def test_version_flag(self):
        result = subprocess.run(
            [sys.executable, "-m", "equaio.cli", "--version"],
            capture_output=True, text=True
        )
        assert result.returncode == 0
        assert "0.1.0" in result.stdout

    def test_pipe_mode(self):
        result = subprocess.run(
            [sys.executable, "-m", "equaio.cli"],
            input=":open algebra0\n:select 0.1\n:actions\n",
            capture_output=True, text=True
        )
        assert result.returncode == 0
        assert "Subtract 3 from both sides" in result.stdout
