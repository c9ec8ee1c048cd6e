"""The interactive read-eval loop."""

from __future__ import annotations

import os
import signal
import sys
from collections.abc import Callable

from minishell.builtins import ShellExit
from minishell.env import Environment, ShellState
from minishell.executor import execute
from minishell.heredoc import HeredocInterrupted, prepare_heredocs
from minishell.lexer import ShellSyntaxError, check_syntax, split_with_quote, tokenize
from minishell.parser import parse

try:
    import readline
except ImportError:
    readline = None

RESET = "\001\033[0m\002"
GREEN = "\001\033[1;32m\002"
BLUE = "\001\033[1;34m\002"
WHITE = "\001\033[0;37m\002"

PROMPT = f"{GREEN}➜ {BLUE} minishell> {WHITE}"

ReadLine = Callable[[str], "str | None"]


def has_unclosed_quote(line: str) -> bool:
    """Tell whether a single or double quote is left open."""
    quote = None
    for char in line:
        if char in "'\"" and (quote is None or quote == char):
            quote = char if quote is None else None
    return quote is not None


def _say(message: str) -> None:
    sys.stdout.write(message)
    sys.stdout.flush()


def process_line(line: str, state: ShellState, read_line: ReadLine | None = None) -> bool:
    """Parse and run one command line.

    Returns False when nothing was run: a blank line, an unclosed quote, a
    syntax error or an interrupted here-document.
    """
    if not line.strip(" \t"):
        return False
    if has_unclosed_quote(line):
        _say("minishell: error: unclosed quote\n")
        return False
    if readline is not None:
        readline.add_history(line)
    tokens = tokenize(split_with_quote(line, state.env, state.last_status))
    try:
        check_syntax(tokens)
    except ShellSyntaxError as exc:
        _say(f"{exc}\n")
        state.last_status = 2
        return False
    commands = parse(tokens)
    if not commands:
        return False
    try:
        prepare_heredocs(commands, state.env, state.last_status, read_line)
    except HeredocInterrupted:
        state.last_status = 130
        return False
    execute(commands, state)
    return True


def _loop(state: ShellState) -> int:
    while True:
        try:
            line = input(PROMPT)
        except KeyboardInterrupt:
            _say("\n")
            state.last_status = 130
            continue
        except EOFError:
            _say("exit\n")
            return state.last_status
        try:
            process_line(line, state)
        except ShellExit as exc:
            return exc.status
        except KeyboardInterrupt:
            _say("\n")
            state.last_status = 130


def main(argv: list[str] | None = None) -> int:
    """Run the interactive shell and return its exit status."""
    if not os.isatty(0):
        sys.stderr.write("Error: minishell must be in an interactive shell.\n")
        return 1
    if not os.isatty(1):
        sys.stderr.write("Error: stdout is not a terminal.\n")
        return 1
    state = ShellState(Environment(os.environ.items()))
    old_int = signal.signal(signal.SIGINT, signal.default_int_handler)
    old_quit = signal.signal(signal.SIGQUIT, signal.SIG_IGN)
    try:
        return _loop(state)
    finally:
        if old_int is not None:
            signal.signal(signal.SIGINT, old_int)
        if old_quit is not None:
            signal.signal(signal.SIGQUIT, old_quit)