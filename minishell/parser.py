"""Turning a token stream into a pipeline of commands."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from minishell.env import FIELD_SEPARATOR
from minishell.lexer import QUOTE_MARK, Token, TokenType

BUILTINS = frozenset({"cd", "echo", "env", "exit", "export", "unset", "pwd"})


class RedirType(Enum):
    IN = "<"
    OUT = ">"
    APPEND = ">>"
    HEREDOC = "<<"


_REDIR_FOR_TOKEN = {
    TokenType.REDIR_IN: RedirType.IN,
    TokenType.REDIR_OUT: RedirType.OUT,
    TokenType.REDIR_APPEND: RedirType.APPEND,
    TokenType.REDIR_HEREDOC: RedirType.HEREDOC,
}


@dataclass
class Redirection:
    """One redirection; for a here-document ``file`` holds the delimiter."""

    type: RedirType
    file: str
    heredoc_fd: int | None = None


class CommandType(Enum):
    EXTERNAL = "external"
    BUILTIN = "builtin"


@dataclass
class Command:
    """One simple command of a pipeline."""

    args: list[str] = field(default_factory=list)
    redirections: list[Redirection] = field(default_factory=list)
    type: CommandType = CommandType.EXTERNAL

    @property
    def name(self) -> str | None:
        return self.args[0] if self.args else None


def count_fields_in_word(word: str | None) -> int:
    """Return how many arguments ``word`` turns into after field splitting."""
    if word is None:
        return 0
    if not word or FIELD_SEPARATOR not in word:
        return 1
    return sum(1 for part in word.split(FIELD_SEPARATOR) if part)


def is_builtin(name: str | None) -> bool:
    """Tell whether ``name`` is one of the shell's built-in commands."""
    return name in BUILTINS


def _word_fields(value: str) -> list[str]:
    value = value.replace(QUOTE_MARK, "")
    if FIELD_SEPARATOR not in value:
        return [value]
    return [part for part in value.split(FIELD_SEPARATOR) if part]


def _split_pipeline(tokens: list[Token]) -> Iterable[list[Token]]:
    segment: list[Token] = []
    for token in tokens:
        if token.type is TokenType.PIPE:
            yield segment
            segment = []
        else:
            segment.append(token)
    if segment:
        yield segment


def _parse_command(tokens: list[Token]) -> Command:
    command = Command()
    stream = iter(tokens)
    for token in stream:
        if token.type is TokenType.WORD:
            command.args.extend(_word_fields(token.value))
        elif token.type in _REDIR_FOR_TOKEN:
            target = next(stream, None)
            if target is None:
                continue
            command.redirections.append(
                Redirection(_REDIR_FOR_TOKEN[token.type], target.value.replace(QUOTE_MARK, ""))
            )
    command.type = CommandType.BUILTIN if is_builtin(command.name) else CommandType.EXTERNAL
    return command


def parse(tokens: Iterable[Token]) -> list[Command]:
    """Build the commands of a pipeline from syntax-checked tokens."""
    return [_parse_command(segment) for segment in _split_pipeline(list(tokens))]