"""Splitting a command line into words and classifying them as tokens."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from minishell.env import Environment, expand_variables

QUOTE_MARK = "\x01"
"""Prefixed to every quoted part of a word, so empty quotes survive."""

_SPACES = " \t\n\v\f\r"
_OPERATOR_CHARS = "|<>"
_WORD_BREAKS = _SPACES + _OPERATOR_CHARS
_QUOTES = "'\""

_ROUGH_PIECE = re.compile(r"<<|>>|[|<>]|[^ \t\n\v\f\r|<>]+")


class TokenType(Enum):
    WORD = "word"
    PIPE = "|"
    REDIR_IN = "<"
    REDIR_OUT = ">"
    REDIR_APPEND = ">>"
    REDIR_HEREDOC = "<<"

    @property
    def is_redirection(self) -> bool:
        return self in _REDIRECTIONS


_REDIRECTIONS = frozenset(
    {TokenType.REDIR_IN, TokenType.REDIR_OUT, TokenType.REDIR_APPEND, TokenType.REDIR_HEREDOC}
)
_OPERATORS = {t.value: t for t in TokenType if t is not TokenType.WORD}


@dataclass(frozen=True)
class Token:
    value: str
    type: TokenType


class ShellSyntaxError(Exception):
    """Raised when a token sequence is not a valid command line."""

    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__(f"syntax error near unexpected token '{token}'")


def count_tokens(line: str) -> int:
    """Count the operators and space-separated runs in ``line``, ignoring quoting."""
    return len(_ROUGH_PIECE.findall(line))


class _Lexer:
    def __init__(self, line: str, env: Environment, last_status: int) -> None:
        self.line = line
        self.pos = 0
        self.env = env
        self.last_status = last_status

    def _at_break(self) -> bool:
        return self.pos >= len(self.line) or self.line[self.pos] in _WORD_BREAKS

    def _skip_spaces(self) -> None:
        while self.pos < len(self.line) and self.line[self.pos] in _SPACES:
            self.pos += 1

    def words(self):
        heredoc = False
        while True:
            self._skip_spaces()
            if self.pos >= len(self.line):
                return
            if self.line.startswith("<<", self.pos):
                self.pos += 2
                heredoc = True
                yield "<<"
            elif self.line.startswith(">>", self.pos):
                self.pos += 2
                yield ">>"
            elif self.line[self.pos] in _OPERATOR_CHARS:
                char = self.line[self.pos]
                if char != "|":
                    heredoc = False
                self.pos += 1
                yield char
            elif heredoc:
                heredoc = False
                yield self._delimiter()
            else:
                yield self._word()

    def _delimiter(self) -> str:
        start = self.pos
        while not self._at_break():
            self.pos += 1
        return self.line[start:self.pos]

    def _word(self) -> str:
        parts = []
        while not self._at_break():
            if self.line[self.pos] in _QUOTES:
                parts.append(QUOTE_MARK + self._quoted())
            else:
                parts.append(self._plain())
        return "".join(parts)

    def _quoted(self) -> str:
        quote = self.line[self.pos]
        self.pos += 1
        end = self.line.find(quote, self.pos)
        if end < 0:
            end = len(self.line)
        content = self.line[self.pos:end]
        self.pos = min(end + 1, len(self.line))
        if quote == '"':
            return expand_variables(content, self.env, True, self.last_status)
        return content

    def _plain(self) -> str:
        start = self.pos
        while not self._at_break() and self.line[self.pos] not in _QUOTES:
            self.pos += 1
        return expand_variables(self.line[start:self.pos], self.env, False, self.last_status)


def split_with_quote(line: str, env: Environment, last_status: int = 0) -> list[str]:
    """Split ``line`` into words and operators, expanding variables.

    Quoted parts are prefixed with ``QUOTE_MARK``; the word after ``<<`` is
    kept exactly as written.
    """
    return list(_Lexer(line, env, last_status).words())


def tokenize(words: list[str]) -> list[Token]:
    """Classify each word as an operator or a plain word."""
    return [Token(word, _OPERATORS.get(word, TokenType.WORD)) for word in words]


def check_syntax(tokens: list[Token]) -> None:
    """Raise ShellSyntaxError if redirections or pipes are misplaced."""
    prev: Token | None = None
    for index, token in enumerate(tokens):
        nxt = tokens[index + 1] if index + 1 < len(tokens) else None
        if token.type.is_redirection and (nxt is None or nxt.type is not TokenType.WORD):
            raise ShellSyntaxError(token.value)
        if token.type is TokenType.PIPE:
            if prev is None or not (prev.type is TokenType.WORD or prev.type.is_redirection):
                raise ShellSyntaxError(token.value)
            if nxt is None:
                raise ShellSyntaxError(token.value)
        prev = token