"""Collecting here-document bodies before a pipeline runs."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Callable, Iterable

from minishell.env import Environment, expand_variables
from minishell.parser import Command, RedirType

PROMPT = "> "

ReadLine = Callable[[str], "str | None"]


class HeredocInterrupted(Exception):
    """Raised when the user interrupts the input of a here-document."""


def _default_read_line(prompt: str) -> str | None:
    try:
        return input(prompt)
    except EOFError:
        return None


def is_quoted_delimiter(text: str | None) -> bool:
    """Tell whether a delimiter starts and ends with the same quote."""
    if not text:
        return False
    return text[0] in "'\"" and text[-1] == text[0]


def strip_quotes(text: str) -> str:
    """Remove the enclosing quotes of a quoted delimiter."""
    if not is_quoted_delimiter(text):
        return text
    return text[1:-1]


def read_heredoc(
    delimiter: str,
    env: Environment,
    last_status: int = 0,
    read_line: ReadLine | None = None,
) -> int:
    """Read lines up to ``delimiter`` and return a readable descriptor of them.

    Variables are expanded unless the delimiter was quoted. End of input
    ends the document; an interrupt raises HeredocInterrupted.
    """
    read_line = read_line or _default_read_line
    expand = not is_quoted_delimiter(delimiter)
    clean = strip_quotes(delimiter)
    lines: list[str] = []
    while True:
        try:
            line = read_line(PROMPT)
        except KeyboardInterrupt as exc:
            raise HeredocInterrupted() from exc
        if line is None or line == clean:
            break
        if expand:
            line = expand_variables(line, env, True, last_status)
        lines.append(line + "\n")
    with tempfile.TemporaryFile() as body:
        body.write("".join(lines).encode())
        body.flush()
        body.seek(0)
        return os.dup(body.fileno())


def close_heredocs(commands: Iterable[Command]) -> None:
    """Close every here-document descriptor held by ``commands``."""
    for command in commands:
        for redir in command.redirections:
            if redir.type is RedirType.HEREDOC and redir.heredoc_fd is not None:
                try:
                    os.close(redir.heredoc_fd)
                except OSError:
                    pass
                redir.heredoc_fd = None


def prepare_heredocs(
    commands: list[Command],
    env: Environment,
    last_status: int = 0,
    read_line: ReadLine | None = None,
) -> None:
    """Read every here-document of the pipeline, in order.

    On interrupt, all documents already read are closed and
    HeredocInterrupted propagates.
    """
    try:
        for command in commands:
            for redir in command.redirections:
                if redir.type is RedirType.HEREDOC:
                    redir.heredoc_fd = read_heredoc(redir.file, env, last_status, read_line)
    except HeredocInterrupted:
        close_heredocs(commands)
        raise