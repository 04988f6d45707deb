#!/usr/bin/env python3
"""
equaio Command-Line Interface

Step-by-step rewriting of the bundled problems in a terminal.

Usage:
    equaio                          # Start REPL
    equaio -p algebra0              # REPL with a problem open
    equaio session.eqio             # Run a command script
    echo ":open algebra0" | equaio  # Filter mode
    equaio --list                   # List the problems and exit

Script Format (.eqio files):
    # solve x + 3 = 5
    :open algebra0
    :select 0.1
    :actions
    :apply 0

REPL Commands:
    :help              Show help
    :problems          List problems
    :open ID           Open a problem in a new worksheet
    :seq N             Switch to sequence N of the worksheet
    :select ADDR ...   Toggle sub-terms (addresses like 0.1, or . for the root)
    :symbols           Show the address of every symbol on the current line
    :clear             Clear the selection
    :actions           List the possible actions for the selection
    :apply N           Apply action N
    :reset N           Rewind the sequence to line N
    :history [all]     Show the history, grouped by manual step
    :show              Show every sequence of the worksheet
    :quit              Exit

Any other line is parsed as an expression and added to the worksheet.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from . import __version__
from .block import BlockContext, BlockTag, build, build_alignable, format_block
from .catalog import Catalog
from .errors import EquaioError, SchemaError
from .expression import AddressType, ExprType, ROOT, is_valid_address
from .grouping import group_history
from .parser import format_expression, parse
from .selection import SelectionSet
from .utils import convert_mathvar
from .worksheet import ExpressionLine, Worksheet

# Try to import readline for better REPL experience
try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False

logger = logging.getLogger(__name__)

PROBLEM_NOT_FOUND = "ERROR: problem not found"


def parse_address(text: str) -> Optional[AddressType]:
    """
    Parse a dotted address: "0.1" -> (0, 1); "." or "root" -> ().

    Returns:
        The address, or None if text is not a valid address
    """
    text = text.strip()
    if text in (".", "root"):
        return ROOT
    parts = text.split(".")
    if not all(p.isdigit() for p in parts):
        return None
    return tuple(int(p) for p in parts)


def format_address(address: AddressType) -> str:
    if not address:
        return "."
    return ".".join(str(i) for i in address)


def align_lines(exprs: Sequence[ExprType], ctx: BlockContext) -> List[str]:
    """Render expressions one per line with their relation symbols in one column."""
    rows = []
    for expr in exprs:
        lhs, rel, rhs = build_alignable(expr, ctx)
        if rel is None:
            rows.append((None, format_block(lhs)))
        else:
            rows.append((format_block(lhs), f"{format_block(rel)} {format_block(rhs)}"))
    width = max((len(left) for left, _ in rows if left is not None), default=0)
    out = []
    for left, right in rows:
        if left is None:
            out.append(right)
        else:
            out.append(f"{left.rjust(width)} {right}")
    return out


class EquaioCompleter:
    """Tab completer for the equaio REPL."""

    # Commands that can be completed
    COMMANDS = [
        ":help", ":quit", ":exit", ":q",
        ":problems", ":open", ":seq",
        ":select", ":symbols", ":clear",
        ":actions", ":apply", ":reset",
        ":history", ":show",
    ]

    def __init__(self, repl: 'EquaioREPL'):
        self.repl = repl
        self.matches: List[str] = []

    def complete(self, text: str, state: int) -> Optional[str]:
        """Return the next possible completion for 'text'."""
        if state == 0:
            line = readline.get_line_buffer() if HAS_READLINE else ""
            self.matches = self._get_matches(text, line)
        try:
            return self.matches[state]
        except IndexError:
            return None

    def _get_matches(self, text: str, line: str) -> List[str]:
        line = line.lstrip()

        if line.startswith(":open "):
            return [p for p in self.repl.catalog.problem_ids() if p.startswith(text)]

        if line.startswith(":select "):
            return [a for a in self.repl.symbol_addresses() if a.startswith(text)]

        if line.startswith(":history "):
            return [o for o in ["all"] if o.startswith(text)]

        if text.startswith(":") or (line.startswith(":") and " " not in line):
            return [c for c in self.COMMANDS if c.startswith(text)]

        return []


class EquaioREPL:
    """Interactive session over one worksheet at a time."""

    def __init__(self, catalog: Optional[Catalog] = None,
                 block_context: Optional[BlockContext] = None,
                 mathvar: bool = False):
        self.catalog = catalog or Catalog.load()
        self.block_context = block_context or BlockContext()
        self.mathvar = mathvar
        self.worksheet: Optional[Worksheet] = None
        self.problem_id: Optional[str] = None
        self.current = 0
        self.selection = SelectionSet()
        self.running = True
        self.history_file: Optional[Path] = None

    def setup_readline(self):
        """Set up readline history and tab completion."""
        if not HAS_READLINE:
            return
        self.history_file = Path.home() / ".equaio_history"
        try:
            readline.read_history_file(self.history_file)
        except (FileNotFoundError, OSError):
            pass
        readline.set_history_length(1000)

        self.completer = EquaioCompleter(self)
        readline.set_completer(self.completer.complete)
        readline.parse_and_bind("tab: complete")
        # don't break on colons or dots
        readline.set_completer_delims(" \t\n")

    def save_history(self):
        """Save readline history."""
        if HAS_READLINE and self.history_file is not None:
            try:
                readline.write_history_file(self.history_file)
            except OSError as e:
                logger.debug("could not save history: %s", e)

    # ------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------

    def render(self, text: str) -> str:
        if not self.mathvar or self.worksheet is None:
            return text
        return convert_mathvar(text, self.worksheet.context.variables)

    def top_expression(self) -> Optional[ExprType]:
        if self.worksheet is None:
            return None
        seq = self.worksheet.get(self.current)
        if seq is None:
            return None
        return seq.top.expression

    def symbol_addresses(self) -> List[str]:
        expr = self.top_expression()
        if expr is None:
            return []
        addresses = []
        for block in build(expr, self.block_context).symbols():
            text = format_address(block.address)
            if text not in addresses:
                addresses.append(text)
        return addresses

    def show_symbols(self) -> str:
        expr = self.top_expression()
        if expr is None:
            return "No sequence selected"
        rows = []
        for block in build(expr, self.block_context).symbols():
            if block.has_tag(BlockTag.CONCEALED):
                continue
            mark = "*" if block.address in self.selection else " "
            rows.append(f" {mark} {self.render(block.symbol):>6}  @{format_address(block.address)}")
        return "\n".join(rows)

    def show_selection(self) -> str:
        if not self.selection:
            return "Selection: (none)"
        return "Selection: " + ", ".join(format_address(a) for a in self.selection)

    def show_worksheet(self) -> str:
        if self.worksheet is None:
            return "No problem open. Use :open ID"
        if len(self.worksheet) == 0:
            return "Worksheet is empty"
        tops = [self.worksheet.get(i).top.expression for i in range(len(self.worksheet))]
        rows = []
        for i, text in enumerate(align_lines(tops, self.block_context)):
            mark = ">" if i == self.current else " "
            rows.append(f"{mark} [{i}] {self.render(text)}")
        rows.append(self.show_selection())
        return "\n".join(rows)

    def show_history(self, expand: bool = False) -> str:
        if self.worksheet is None:
            return "No problem open. Use :open ID"
        seq = self.worksheet.get(self.current)
        if seq is None:
            return "No sequence selected"
        history = seq.history

        if expand:
            entries = [(str(i), line, "auto" if line.is_auto_generated else "")
                       for i, line in enumerate(history)]
        else:
            entries = []
            for group in group_history(history):
                span = str(group.anchor_index)
                if len(group) > 1:
                    span += f"..{group.last_index}"
                autos = sum(1 for line in group.lines if line.is_auto_generated)
                note = f"+{autos} auto" if autos and group.has_manual_head else ""
                entries.append((span, _GroupLine(group.head, group.last), note))

        texts = align_lines([entry[1].expression for entry in entries], self.block_context)
        width = max(len(span) for span, _, _ in entries)
        rows = []
        for (span, line, note), text in zip(entries, texts):
            label = str(line.action)
            if note:
                label += f" ({note})"
            rows.append(f"  [{span.rjust(width)}] {self.render(text)}    {label}")
        return "\n".join(rows)

    # ------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------

    def open_problem(self, problem_id: str) -> str:
        if self.catalog.problem(problem_id) is None:
            return PROBLEM_NOT_FOUND
        try:
            self.worksheet = self.catalog.build_worksheet(problem_id)
        except (KeyError, SchemaError) as e:
            return f"Error: {e}"
        self.problem_id = problem_id
        self.current = 0
        self.selection.clear()
        problem = self.catalog.problem(problem_id)
        title = problem.label
        if problem.sublabel:
            title += f": {problem.sublabel}"
        return f"{title}\n{self.show_worksheet()}"

    def list_problems(self) -> str:
        rows = []
        for category, problems in self.catalog.menu():
            rows.append(category.name)
            for problem in problems:
                sub = ""
                if problem.sublabel:
                    sublabel = problem.sublabel
                    if self.mathvar:
                        sublabel = convert_mathvar(sublabel)
                    sub = f"  ({sublabel})"
                rows.append(f"  {problem.id:<20} {problem.label}{sub}")
        return "\n".join(rows)

    def _require_worksheet(self) -> Optional[str]:
        if self.worksheet is None:
            return "No problem open. Use :open ID"
        if len(self.worksheet) == 0:
            return "Worksheet is empty"
        return None

    def select(self, arg: str) -> str:
        error = self._require_worksheet()
        if error:
            return error
        if not arg:
            return "Usage: :select ADDR [ADDR ...]"
        expr = self.top_expression()
        for text in arg.split():
            address = parse_address(text)
            if address is None:
                return f"Error: invalid address: {text}"
            if not is_valid_address(expr, address):
                return f"Error: no term at {text}"
            self.selection.toggle(address, not self.selection.contains(address))
        return self.show_selection()

    def list_actions(self) -> str:
        error = self._require_worksheet()
        if error:
            return error
        seq = self.worksheet.get(self.current)
        actions = seq.get_possible_actions(self.selection)
        if not actions:
            if not self.selection:
                return "Nothing selected"
            return "No actions for the selection"
        rows = []
        for i, (action, result) in enumerate(actions):
            rows.append(f"  {i}: {action}  ->  {self.render(format_expression(result))}")
        return "\n".join(rows)

    def apply(self, arg: str) -> str:
        error = self._require_worksheet()
        if error:
            return error
        if not arg.strip().isdigit():
            return "Usage: :apply N"
        try:
            with self.worksheet.edit(self.current) as seq:
                seq.try_apply_action_by_index(self.selection, int(arg))
        except EquaioError as e:
            return f"Error: {e}"
        self.selection.clear()
        return self.show_history()

    def reset(self, arg: str) -> str:
        error = self._require_worksheet()
        if error:
            return error
        if not arg.strip().isdigit():
            return "Usage: :reset N"
        try:
            with self.worksheet.edit(self.current) as seq:
                seq.reset_to(int(arg))
        except EquaioError as e:
            return f"Error: {e}"
        self.selection.clear()
        return self.show_history()

    def switch_sequence(self, arg: str) -> str:
        error = self._require_worksheet()
        if error:
            return error
        if not arg.strip().isdigit() or self.worksheet.get(int(arg)) is None:
            return f"Error: no sequence {arg}"
        self.current = int(arg)
        self.selection.clear()
        return self.show_worksheet()

    def handle_command(self, line: str) -> Optional[str]:
        """
        Handle a REPL command (starts with :).

        Returns a message to print, or None.
        """
        parts = line[1:].split(None, 1)
        if not parts:
            return "Unknown command. Type :help for help."

        cmd = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        if cmd == "help":
            return self.help_text()

        elif cmd in ("quit", "exit", "q"):
            self.running = False
            return None

        elif cmd == "problems":
            return self.list_problems()

        elif cmd == "open":
            if not arg:
                return "Usage: :open ID"
            return self.open_problem(arg)

        elif cmd == "seq":
            return self.switch_sequence(arg)

        elif cmd == "select":
            return self.select(arg)

        elif cmd == "symbols":
            return self.show_symbols()

        elif cmd == "clear":
            self.selection.clear()
            return self.show_selection()

        elif cmd == "actions":
            return self.list_actions()

        elif cmd == "apply":
            return self.apply(arg)

        elif cmd == "reset":
            return self.reset(arg)

        elif cmd == "history":
            return self.show_history(expand=(arg == "all"))

        elif cmd == "show":
            return self.show_worksheet()

        else:
            return f"Unknown command: {cmd}. Type :help for help."

    def help_text(self) -> str:
        """Return help text."""
        return """equaio REPL Commands:
  :help              Show this help
  :problems          List the available problems
  :open ID           Open a problem
  :seq N             Switch to sequence N
  :select ADDR ...   Toggle sub-terms (e.g. :select 0.1 1)
  :symbols           Show symbol addresses of the current line
  :clear             Clear the selection
  :actions           List possible actions for the selection
  :apply N           Apply action N
  :reset N           Rewind to line N
  :history [all]     Show the history (grouped, or every line)
  :show              Show all sequences
  :quit              Exit

Addresses:
  . is the whole line, 0 its first argument, 0.1 the second argument of that.
  Selecting an operator's address selects the whole term it applies to.

Any other input is parsed as an expression and added to the worksheet.
"""

    def introduce(self, text: str) -> str:
        if self.worksheet is None:
            return "No problem open. Use :open ID"
        expr = parse(text, self.worksheet.context)
        if expr is None:
            return f"Error: cannot parse {text!r}"
        self.current = self.worksheet.introduce(expr)
        self.selection.clear()
        return self.show_worksheet()

    def process_line(self, line: str) -> Optional[str]:
        """
        Process a single line of input.

        Returns the result to print, or None.
        """
        line = line.strip()

        # Empty line or comment
        if not line or line.startswith("#"):
            return None

        if line.startswith(":"):
            return self.handle_command(line)

        return self.introduce(line)

    def run(self):
        """Run the REPL loop."""
        self.setup_readline()
        print("equaio - step-by-step expression rewriting")
        print("Type :help for help, :problems to list problems, :quit to exit")
        print()

        while self.running:
            try:
                line = input("equaio> ")
                result = self.process_line(line)
                if result:
                    print(result)
            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                print()
                continue

        self.save_history()


class _GroupLine:
    """Collapsed view of a history group: the head's action, the last line's expression."""

    def __init__(self, head: ExpressionLine, last: ExpressionLine):
        self.action = head.action
        self.expression = last.expression


def is_error(result: Optional[str]) -> bool:
    return bool(result) and (result.startswith("Error") or result.startswith("ERROR")
                             or result.startswith("Unknown"))


class ScriptRunner:
    """Runs equaio command scripts."""

    def __init__(self, repl: Optional[EquaioREPL] = None):
        self.repl = repl or EquaioREPL()

    def run_lines(self, lines, source: str = "<stdin>", quiet: bool = False) -> int:
        """
        Feed lines to the REPL, stopping at the first error.

        Returns:
            Exit code (0 for success)
        """
        for lineno, line in enumerate(lines, 1):
            result = self.repl.process_line(line)
            if is_error(result):
                print(f"{source}:{lineno}: {result}", file=sys.stderr)
                return 1
            if result and not quiet:
                print(result)
            if not self.repl.running:
                break
        return 0

    def run_script(self, path: Path, quiet: bool = False) -> int:
        """
        Run a script file.

        Args:
            path: Path to the script
            quiet: If True, only report errors

        Returns:
            Exit code (0 for success)
        """
        try:
            lines = path.read_text().splitlines()
        except OSError as e:
            print(f"Error reading {path}: {e}", file=sys.stderr)
            return 1
        return self.run_lines(lines, source=str(path), quiet=quiet)

    def run_stdin(self, quiet: bool = False) -> int:
        return self.run_lines(sys.stdin, quiet=quiet)


def configure_logging(verbosity: int):
    """-v logs INFO, -vv DEBUG; otherwise only warnings. Logs go to stderr."""
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="equaio",
        description="equaio - rewrite expressions one verified step at a time",
        epilog="Examples:\n"
               "  equaio                         Start REPL\n"
               "  equaio -p algebra0             REPL with a problem open\n"
               "  equaio session.eqio            Run a command script\n"
               "  equaio --list                  List problems\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "script",
        nargs="?",
        help="Command script to run (.eqio)"
    )

    parser.add_argument(
        "-c", "--catalog",
        help="Catalog directory with menu.json, problems.json and rules/"
    )

    parser.add_argument(
        "-p", "--problem",
        help="Open this problem on start"
    )

    parser.add_argument(
        "-l", "--list",
        action="store_true",
        help="List problems and exit"
    )

    parser.add_argument(
        "--mathvar",
        action="store_true",
        help="Show variables in mathematical italics"
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Quiet mode (only report errors)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log applied actions (-vv for debug output)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        catalog = Catalog.load(args.catalog)
    except (OSError, SchemaError) as e:
        print(f"Error loading catalog: {e}", file=sys.stderr)
        sys.exit(1)

    repl = EquaioREPL(catalog=catalog, mathvar=args.mathvar)
    runner = ScriptRunner(repl)

    if args.list:
        print(repl.list_problems())
        sys.exit(0)

    if args.problem:
        result = repl.open_problem(args.problem)
        if is_error(result):
            print(result, file=sys.stderr)
            sys.exit(1)
        if not args.quiet and not args.script:
            print(result)

    # Determine mode
    if args.script:
        sys.exit(runner.run_script(Path(args.script), quiet=args.quiet))

    elif not sys.stdin.isatty():
        # Pipe/filter mode (stdin is not a terminal)
        sys.exit(runner.run_stdin(quiet=args.quiet))

    else:
        repl.run()


if __name__ == "__main__":
    main()
